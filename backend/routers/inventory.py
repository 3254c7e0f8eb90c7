"""
Inventory Router

GET    /api/inventory          — list items (optional ?expenseId= filter)
GET    /api/inventory/{id}     — single item
POST   /api/inventory          — create (name required)
PUT    /api/inventory/{id}     — partial update
DELETE /api/inventory/{id}     — remove
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from db.database import get_inventory_store
from db.stores import InventoryStore
from models.schemas import InventoryCreate, InventoryItem, InventoryUpdate
from services.errors import NotFoundError
from services.validation import coerce_quantity, is_blank, require_fields

router = APIRouter()


@router.get("", response_model=list[InventoryItem])
async def list_inventory(
    expense_id: Optional[int] = Query(default=None, alias="expenseId"),
    store: InventoryStore = Depends(get_inventory_store),
):
    return await store.list_items(expense_id=expense_id)


@router.get("/{item_id}", response_model=InventoryItem)
async def get_inventory_item(item_id: int, store: InventoryStore = Depends(get_inventory_store)):
    item = await store.get(item_id)
    if not item:
        raise NotFoundError("Inventory item not found")
    return item


@router.post("", response_model=InventoryItem, status_code=201)
async def create_inventory_item(
    body: InventoryCreate,
    store: InventoryStore = Depends(get_inventory_store),
):
    require_fields(name=body.name)
    return await store.create(
        name=body.name.strip(),
        quantity=coerce_quantity(body.quantity),
        category="other" if is_blank(body.category) else body.category.strip(),
        expense_id=body.expense_id,
    )


@router.put("/{item_id}", response_model=InventoryItem)
async def update_inventory_item(
    item_id: int,
    body: InventoryUpdate,
    store: InventoryStore = Depends(get_inventory_store),
):
    item = await store.update(
        item_id,
        name=None if is_blank(body.name) else body.name.strip(),
        quantity=None if is_blank(body.quantity) else coerce_quantity(body.quantity),
        category=None if is_blank(body.category) else body.category.strip(),
    )
    if not item:
        raise NotFoundError("Inventory item not found")
    return item


@router.delete("/{item_id}", status_code=204)
async def delete_inventory_item(item_id: int, store: InventoryStore = Depends(get_inventory_store)):
    if not await store.delete(item_id):
        raise NotFoundError("Inventory item not found")
    return Response(status_code=204)
