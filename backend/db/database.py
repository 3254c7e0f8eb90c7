import logging
import os

import aiosqlite
from fastapi import Request

logger = logging.getLogger("slipkeep.db")
# ":memory:" by default: expenses and inventory live only as long as the process
DB_PATH = os.environ.get("DB_PATH", ":memory:")


async def open_db(path: str = None) -> aiosqlite.Connection:
    """Open the single connection shared by both stores."""
    path = path or DB_PATH
    if path != ":memory:" and os.path.dirname(path):
        os.makedirs(os.path.dirname(path), exist_ok=True)
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    return db


async def init_db(db: aiosqlite.Connection):
    """Create all tables if they don't exist."""
    await db.executescript(SCHEMA)
    await db.commit()
    logger.info("Initialized at %s", DB_PATH)


# ── FastAPI dependencies ──────────────────────────────────────────────────────
# Stores are created once on startup (main.py) and hung off app.state, so
# handlers receive them explicitly and tests can override them per app.

def get_expense_store(request: Request):
    return request.app.state.expenses


def get_inventory_store(request: Request):
    return request.app.state.inventory


def get_scan_coordinator(request: Request):
    return request.app.state.scans


SCHEMA = """
-- AUTOINCREMENT: ids start at 1 and are never reused after a delete
CREATE TABLE IF NOT EXISTS expenses (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    description  TEXT NOT NULL,
    amount       REAL NOT NULL,
    category     TEXT NOT NULL,
    date         TEXT NOT NULL,          -- as supplied, defaults to creation time
    slip_path    TEXT,                   -- stored slip file, if submitted with one
    created_at   TEXT NOT NULL
);

-- Items bought on an expense.  expense_id is a plain back-reference with no
-- FOREIGN KEY: deleting an expense leaves its items in place.
CREATE TABLE IF NOT EXISTS inventory_items (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         TEXT NOT NULL,
    quantity     INTEGER NOT NULL DEFAULT 1,
    category     TEXT NOT NULL DEFAULT 'other',
    expense_id   INTEGER,
    created_at   TEXT NOT NULL
);
"""
