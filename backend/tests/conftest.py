"""
Shared fixtures for backend tests.

Every test gets a fresh in-memory SQLite database with the production schema,
and fresh stores on top of it, so ids always start at 1.
"""
import io

import pytest
import aiosqlite
from PIL import Image

from db.database import SCHEMA
from db.stores import ExpenseStore, InventoryStore


@pytest.fixture
async def db():
    """Yield a fresh in-memory SQLite connection with the full schema."""
    async with aiosqlite.connect(":memory:") as conn:
        conn.row_factory = aiosqlite.Row
        await conn.executescript(SCHEMA)
        yield conn


@pytest.fixture
def expense_store(db):
    return ExpenseStore(db)


@pytest.fixture
def inventory_store(db):
    return InventoryStore(db)


@pytest.fixture
def make_image():
    """Factory: encoded image bytes of a given size/colour/format."""
    def _make(width=200, height=100, color=(255, 255, 255), fmt="PNG"):
        buf = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buf, format=fmt)
        return buf.getvalue()
    return _make
