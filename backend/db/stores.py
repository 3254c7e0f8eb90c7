"""
Expense and inventory stores.

Each store owns one table on the shared aiosqlite connection plus an
asyncio.Lock that serialises its writes.  `create_expense_with_items` takes
both locks (expenses first, always) so an expense and the items bought on it
are written in one transaction.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

import aiosqlite

from models.schemas import Expense, ExpenseSummary, InventoryItem

logger = logging.getLogger("slipkeep.stores")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _expense_from_row(row) -> Expense:
    return Expense(
        id=row["id"],
        description=row["description"],
        amount=row["amount"],
        category=row["category"],
        date=row["date"],
        slip_path=row["slip_path"],
        created_at=row["created_at"],
    )


def _item_from_row(row) -> InventoryItem:
    return InventoryItem(
        id=row["id"],
        name=row["name"],
        quantity=row["quantity"],
        category=row["category"],
        expense_id=row["expense_id"],
        created_at=row["created_at"],
    )


# ── Expenses ──────────────────────────────────────────────────────────────────

class ExpenseStore:

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.lock = asyncio.Lock()

    async def list_expenses(self, search: str = "", category: str = "") -> list[Expense]:
        where_clauses = []
        params: list = []
        if search:
            where_clauses.append("description LIKE ?")
            params.append(f"%{search}%")
        if category:
            where_clauses.append("category = ?")
            params.append(category)
        where_sql = (" WHERE " + " AND ".join(where_clauses)) if where_clauses else ""

        async with self.db.execute(f"SELECT * FROM expenses{where_sql} ORDER BY id", params) as cur:
            rows = await cur.fetchall()
        return [_expense_from_row(r) for r in rows]

    async def get(self, expense_id: int) -> Optional[Expense]:
        async with self.db.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,)) as cur:
            row = await cur.fetchone()
        return _expense_from_row(row) if row else None

    async def _insert(self, description: str, amount: float, category: str,
                      date: Optional[str], slip_path: Optional[str]) -> int:
        """INSERT without commit — caller holds the lock and owns the transaction."""
        created_at = _now()
        cur = await self.db.execute(
            """INSERT INTO expenses (description, amount, category, date, slip_path, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (description, amount, category, date or created_at, slip_path, created_at),
        )
        return cur.lastrowid

    async def create(self, description: str, amount: float, category: str,
                     date: Optional[str] = None, slip_path: Optional[str] = None) -> Expense:
        async with self.lock:
            expense_id = await self._insert(description, amount, category, date, slip_path)
            await self.db.commit()
        logger.info("Created expense %d (%s, %.2f)", expense_id, category, amount)
        return await self.get(expense_id)

    async def update(self, expense_id: int, *, description: Optional[str] = None,
                     amount: Optional[float] = None, category: Optional[str] = None,
                     date: Optional[str] = None) -> Optional[Expense]:
        """Partial update; None leaves a field unchanged.  Returns None if the id is unknown."""
        async with self.lock:
            cur = await self.db.execute(
                """UPDATE expenses
                   SET description = COALESCE(?, description),
                       amount      = COALESCE(?, amount),
                       category    = COALESCE(?, category),
                       date        = COALESCE(?, date)
                   WHERE id = ?""",
                (description, amount, category, date, expense_id),
            )
            await self.db.commit()
        if cur.rowcount == 0:
            return None
        return await self.get(expense_id)

    async def delete(self, expense_id: int) -> bool:
        # Inventory items bought on this expense keep their expense_id.
        async with self.lock:
            cur = await self.db.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
            await self.db.commit()
        return cur.rowcount > 0

    async def summary(self) -> ExpenseSummary:
        async with self.db.execute(
            "SELECT category, SUM(amount) AS total, COUNT(*) AS n FROM expenses GROUP BY category"
        ) as cur:
            rows = await cur.fetchall()
        by_category = {r["category"]: r["total"] for r in rows}
        return ExpenseSummary(
            total=sum(by_category.values()),
            count=sum(r["n"] for r in rows),
            by_category=by_category,
        )


# ── Inventory ─────────────────────────────────────────────────────────────────

class InventoryStore:

    def __init__(self, db: aiosqlite.Connection):
        self.db = db
        self.lock = asyncio.Lock()

    async def list_items(self, expense_id: Optional[int] = None) -> list[InventoryItem]:
        if expense_id is None:
            sql, params = "SELECT * FROM inventory_items ORDER BY id", ()
        else:
            sql, params = "SELECT * FROM inventory_items WHERE expense_id = ? ORDER BY id", (expense_id,)
        async with self.db.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return [_item_from_row(r) for r in rows]

    async def get(self, item_id: int) -> Optional[InventoryItem]:
        async with self.db.execute("SELECT * FROM inventory_items WHERE id = ?", (item_id,)) as cur:
            row = await cur.fetchone()
        return _item_from_row(row) if row else None

    async def _insert(self, name: str, quantity: int, category: str,
                      expense_id: Optional[int]) -> int:
        cur = await self.db.execute(
            """INSERT INTO inventory_items (name, quantity, category, expense_id, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (name, quantity, category, expense_id, _now()),
        )
        return cur.lastrowid

    async def create(self, name: str, quantity: int = 1, category: str = "other",
                     expense_id: Optional[int] = None) -> InventoryItem:
        async with self.lock:
            item_id = await self._insert(name, quantity, category, expense_id)
            await self.db.commit()
        return await self.get(item_id)

    async def update(self, item_id: int, *, name: Optional[str] = None,
                     quantity: Optional[int] = None,
                     category: Optional[str] = None) -> Optional[InventoryItem]:
        async with self.lock:
            cur = await self.db.execute(
                """UPDATE inventory_items
                   SET name     = COALESCE(?, name),
                       quantity = COALESCE(?, quantity),
                       category = COALESCE(?, category)
                   WHERE id = ?""",
                (name, quantity, category, item_id),
            )
            await self.db.commit()
        if cur.rowcount == 0:
            return None
        return await self.get(item_id)

    async def delete(self, item_id: int) -> bool:
        async with self.lock:
            cur = await self.db.execute("DELETE FROM inventory_items WHERE id = ?", (item_id,))
            await self.db.commit()
        return cur.rowcount > 0


# ── Expense + items in one transaction ────────────────────────────────────────

async def create_expense_with_items(
    expenses: ExpenseStore,
    inventory: InventoryStore,
    *,
    description: str,
    amount: float,
    category: str,
    date: Optional[str] = None,
    slip_path: Optional[str] = None,
    items: Sequence[dict] = (),
) -> tuple[Expense, list[InventoryItem]]:
    """
    Insert an expense and every item in `items` (dicts with name, quantity,
    category — already coerced) tagged with the new expense id.  Either all
    rows land or none do.
    """
    async with expenses.lock, inventory.lock:
        try:
            expense_id = await expenses._insert(description, amount, category, date, slip_path)
            item_ids = [
                await inventory._insert(i["name"], i["quantity"], i["category"], expense_id)
                for i in items
            ]
            await expenses.db.commit()
        except Exception:
            await expenses.db.rollback()
            raise

    logger.info("Created expense %d with %d inventory items", expense_id, len(item_ids))
    expense = await expenses.get(expense_id)
    created = [await inventory.get(item_id) for item_id in item_ids]
    return expense, created
