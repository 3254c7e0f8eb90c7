"""
Tests for init_db — schema creation and re-running it on an existing database.
"""
import pytest

from db.database import init_db, open_db


@pytest.fixture
async def fresh_db():
    db = await open_db(":memory:")
    yield db
    await db.close()


async def _tables(db):
    async with db.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
    ) as cur:
        return sorted(r["name"] for r in await cur.fetchall())


@pytest.mark.asyncio
async def test_creates_tables(fresh_db):
    await init_db(fresh_db)
    assert await _tables(fresh_db) == ["expenses", "inventory_items"]


@pytest.mark.asyncio
async def test_idempotent(fresh_db):
    await init_db(fresh_db)
    await fresh_db.execute(
        "INSERT INTO expenses (description, amount, category, date, created_at) "
        "VALUES ('A', 1, 'other', '2024-01-01', '2024-01-01')"
    )
    await fresh_db.commit()
    await init_db(fresh_db)
    async with fresh_db.execute("SELECT COUNT(*) AS n FROM expenses") as cur:
        assert (await cur.fetchone())["n"] == 1


@pytest.mark.asyncio
async def test_inventory_defaults(fresh_db):
    await init_db(fresh_db)
    await fresh_db.execute("INSERT INTO inventory_items (name, created_at) VALUES ('Rice', 'now')")
    async with fresh_db.execute("SELECT quantity, category, expense_id FROM inventory_items") as cur:
        row = await cur.fetchone()
    assert (row["quantity"], row["category"], row["expense_id"]) == (1, "other", None)
