"""
Slips Router

POST /api/slips/upload          — store a receipt image / PDF
POST /api/slips/scan            — crop + OCR + field extraction for the review form
POST /api/slips/create-expense  — create an expense (and its inventory items) from a reviewed slip
"""
import json
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as PydanticValidationError

from db.database import get_expense_store, get_inventory_store, get_scan_coordinator
from db.stores import ExpenseStore, InventoryStore, create_expense_with_items
from models.schemas import CropRegion, ImageSize, ScanResult, SlipExpenseResult, SlipInfo
from services.errors import MalformedItemsPayload, ValidationError
from services.ocr_service import LanguageHint
from services.scan_service import ScanCoordinator
from services.slip_service import parse_items_payload, save_slip
from services.validation import coerce_amount, coerce_quantity, is_blank, require_fields

logger = logging.getLogger("slipkeep.slips")
router = APIRouter()

UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")


# ── Upload ────────────────────────────────────────────────────────────────────

@router.post("/upload", response_model=SlipInfo, status_code=201)
async def upload_slip(slip: UploadFile = File(...)):
    contents = await slip.read()
    return save_slip(contents, slip.filename, slip.content_type, UPLOAD_DIR)


# ── Scan (prepare → OCR → extract) ────────────────────────────────────────────

def _parse_crop(raw: Optional[str]) -> Optional[CropRegion]:
    """A crop the client sent but we can't read is treated like no crop at all."""
    if is_blank(raw):
        return None
    try:
        return CropRegion(**json.loads(raw))
    except (json.JSONDecodeError, TypeError, PydanticValidationError) as e:
        logger.warning("Unreadable crop %r, using full image: %s", raw, e)
        return None


@router.post("/scan", response_model=ScanResult, response_model_exclude_none=True)
async def scan_slip(
    slip: UploadFile = File(...),
    crop: Optional[str] = Form(None),                    # JSON {x, y, width, height}
    display_width: Optional[float] = Form(None, alias="displayWidth"),
    display_height: Optional[float] = Form(None, alias="displayHeight"),
    language: LanguageHint = Form(LanguageHint.PRIMARY),
    session: str = Form("default"),
    scans: ScanCoordinator = Depends(get_scan_coordinator),
):
    """
    Run OCR on an uploaded slip and pre-fill expense fields from the text.
    Crop coordinates are in the displayed image's pixel space; send
    displayWidth/displayHeight when the image was shown resized.  A newer scan
    for the same `session` makes this one return 409.
    """
    contents = await slip.read()
    crop_region = _parse_crop(crop)
    display = None
    if display_width is not None and display_height is not None:
        display = ImageSize(width=display_width, height=display_height)
    elif crop_region is not None and (display_width is not None or display_height is not None):
        # Half a display size can't rescale the crop; natural pixels would cut the wrong region
        logger.warning("Crop sent with only one of displayWidth/displayHeight, using full image")
        crop_region = None

    return await scans.scan(
        session,
        contents,
        crop=crop_region,
        display_size=display,
        hint=language,
    )


# ── Create expense from slip ──────────────────────────────────────────────────

def _coerce_item(entry: dict) -> dict:
    try:
        quantity = coerce_quantity(entry.get("quantity"))
    except ValidationError as e:
        logger.warning("Item %r: %s — using quantity 1", entry.get("name"), e)
        quantity = 1
    category = entry.get("category")
    return {
        "name": str(entry["name"]).strip(),
        "quantity": quantity,
        "category": "other" if is_blank(category) else str(category).strip(),
    }


@router.post("/create-expense", response_model=SlipExpenseResult, status_code=201)
async def create_expense_from_slip(
    slip: Optional[UploadFile] = File(None),
    description: Optional[str] = Form(None),
    amount: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    items: Optional[str] = Form(None),                   # JSON [{name, quantity, category}]
    expenses: ExpenseStore = Depends(get_expense_store),
    inventory: InventoryStore = Depends(get_inventory_store),
):
    """
    Create an expense from a reviewed slip, plus one inventory item per entry
    in `items`.  A malformed `items` payload doesn't block the expense: it is
    logged, no items are created, and the reason comes back in `itemsError`.
    """
    require_fields(description=description, amount=amount, category=category)
    amount_value = coerce_amount(amount)

    items_error = None
    new_items: list[dict] = []
    if not is_blank(items):
        try:
            new_items = [_coerce_item(entry) for entry in parse_items_payload(items)]
        except MalformedItemsPayload as e:
            logger.warning("Ignoring items on slip submission: %s", e)
            items_error = str(e)

    slip_path = None
    if slip is not None and slip.filename:
        contents = await slip.read()
        slip_path = save_slip(contents, slip.filename, slip.content_type, UPLOAD_DIR).path

    expense, created = await create_expense_with_items(
        expenses,
        inventory,
        description=description.strip(),
        amount=amount_value,
        category=category.strip(),
        date=None if is_blank(date) else date,
        slip_path=slip_path,
        items=new_items,
    )
    return SlipExpenseResult(expense=expense, inventory_items=created, items_error=items_error)
