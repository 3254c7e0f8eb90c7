from pydantic import BaseModel, Field
from typing import Optional, List, Union


# ── OCR / Extraction ───────────────────────────────────
class RawOcrText(BaseModel):
    """Recognized text, one entry per line, in reading order."""
    lines: tuple[str, ...] = ()

    class Config:
        frozen = True

    @classmethod
    def from_text(cls, text: str) -> "RawOcrText":
        return cls(lines=tuple(text.splitlines()))

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class CandidateItem(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)
    category: str = "food"


class ExtractedReceipt(BaseModel):
    description: Optional[str] = None
    amount: Optional[str] = None      # decimal string exactly as captured, no symbol
    date: Optional[str] = None        # YYYY-MM-DD
    items: List[CandidateItem] = []

    class Config:
        frozen = True


# ── Image Preparation ──────────────────────────────────
class CropRegion(BaseModel):
    x: float = Field(ge=0)
    y: float = Field(ge=0)
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class ImageSize(BaseModel):
    width: float
    height: float


class ScanResult(BaseModel):
    token: int
    text: str
    crop_applied: bool = Field(alias="cropApplied")
    receipt: ExtractedReceipt

    class Config:
        populate_by_name = True


# ── Expense ────────────────────────────────────────────
class ExpenseCreate(BaseModel):
    # Everything optional so missing fields surface as a 400 ValidationError
    # from the router rather than FastAPI's generic 422.
    description: Optional[str] = None
    amount: Optional[Union[float, str]] = None
    category: Optional[str] = None
    date: Optional[str] = None


class ExpenseUpdate(ExpenseCreate):
    pass


class Expense(BaseModel):
    id: int
    description: str
    amount: float
    category: str
    date: str
    slip_path: Optional[str] = Field(default=None, alias="slipPath")
    created_at: str = Field(alias="createdAt")

    class Config:
        populate_by_name = True


class ExpenseSummary(BaseModel):
    total: float
    count: int
    by_category: dict[str, float] = Field(alias="byCategory")

    class Config:
        populate_by_name = True


# ── Inventory ──────────────────────────────────────────
class InventoryCreate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[Union[int, float, str]] = None
    category: Optional[str] = None
    expense_id: Optional[int] = Field(default=None, alias="expenseId")

    class Config:
        populate_by_name = True


class InventoryUpdate(BaseModel):
    name: Optional[str] = None
    quantity: Optional[Union[int, float, str]] = None
    category: Optional[str] = None


class InventoryItem(BaseModel):
    id: int
    name: str
    quantity: int
    category: str
    expense_id: Optional[int] = Field(default=None, alias="expenseId")
    created_at: str = Field(alias="createdAt")

    class Config:
        populate_by_name = True


# ── Slips ──────────────────────────────────────────────
class SlipInfo(BaseModel):
    filename: str
    original_name: str = Field(alias="originalName")
    path: str
    size: int
    uploaded_at: str = Field(alias="uploadedAt")

    class Config:
        populate_by_name = True


class SlipExpenseResult(BaseModel):
    expense: Expense
    inventory_items: List[InventoryItem] = Field(alias="inventoryItems")
    items_error: Optional[str] = Field(default=None, alias="itemsError")

    class Config:
        populate_by_name = True
