"""
Expenses Router

GET    /api/expenses                — list expenses (optional search / category filter)
GET    /api/expenses/stats/summary  — total, count and per-category sums
GET    /api/expenses/{id}           — single expense
POST   /api/expenses                — create
PUT    /api/expenses/{id}           — partial update
DELETE /api/expenses/{id}           — remove (linked inventory items are kept)
"""
import logging

from fastapi import APIRouter, Depends, Response

from db.database import get_expense_store
from db.stores import ExpenseStore
from models.schemas import Expense, ExpenseCreate, ExpenseSummary, ExpenseUpdate
from services.errors import NotFoundError
from services.validation import coerce_amount, is_blank, require_fields

logger = logging.getLogger("slipkeep.expenses")
router = APIRouter()


@router.get("", response_model=list[Expense])
async def list_expenses(
    search: str = "",
    category: str = "",
    store: ExpenseStore = Depends(get_expense_store),
):
    return await store.list_expenses(search=search, category=category)


# Declared before /{expense_id} so "stats" is never read as an id
@router.get("/stats/summary", response_model=ExpenseSummary)
async def expense_summary(store: ExpenseStore = Depends(get_expense_store)):
    return await store.summary()


@router.get("/{expense_id}", response_model=Expense)
async def get_expense(expense_id: int, store: ExpenseStore = Depends(get_expense_store)):
    expense = await store.get(expense_id)
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


@router.post("", response_model=Expense, status_code=201)
async def create_expense(body: ExpenseCreate, store: ExpenseStore = Depends(get_expense_store)):
    require_fields(description=body.description, amount=body.amount, category=body.category)
    return await store.create(
        description=body.description.strip(),
        amount=coerce_amount(body.amount),
        category=body.category.strip(),
        date=None if is_blank(body.date) else body.date,
    )


@router.put("/{expense_id}", response_model=Expense)
async def update_expense(
    expense_id: int,
    body: ExpenseUpdate,
    store: ExpenseStore = Depends(get_expense_store),
):
    """Blank strings and omitted fields keep the stored value."""
    expense = await store.update(
        expense_id,
        description=None if is_blank(body.description) else body.description.strip(),
        amount=None if is_blank(body.amount) else coerce_amount(body.amount),
        category=None if is_blank(body.category) else body.category.strip(),
        date=None if is_blank(body.date) else body.date,
    )
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


@router.delete("/{expense_id}", status_code=204)
async def delete_expense(expense_id: int, store: ExpenseStore = Depends(get_expense_store)):
    if not await store.delete(expense_id):
        raise NotFoundError("Expense not found")
    return Response(status_code=204)
