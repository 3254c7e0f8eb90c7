"""
Field checks and coercions shared by the JSON and multipart endpoints.
"""
import math
import re
from typing import Optional, Union

from services.errors import ValidationError

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(**fields) -> None:
    """Raise ValidationError naming every blank field."""
    missing = [name for name, value in fields.items() if is_blank(value)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def coerce_amount(value: Union[float, int, str]) -> float:
    """'12.50' / 12.5 → 12.5.  Non-numeric strings are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"amount must be a number, got {value!r}")
    try:
        amount = float(str(value).strip().lstrip("$")) if isinstance(value, str) else float(value)
    except ValueError as e:
        raise ValidationError(f"amount must be a number, got {value!r}") from e
    if not math.isfinite(amount):
        raise ValidationError(f"amount must be a finite number, got {value!r}")
    return amount


def coerce_quantity(value: Optional[Union[int, float, str]], default: int = 1) -> int:
    """
    Integer quantity: blank → `default`, 2.7 → 2, '3 pcs' → 3.
    Negative or non-numeric values are rejected.
    """
    if is_blank(value):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"quantity must be an integer, got {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"quantity must be an integer, got {value!r}")
    if isinstance(value, (int, float)):
        quantity = int(value)
    else:
        m = _LEADING_INT_RE.match(value)
        if not m:
            raise ValidationError(f"quantity must be an integer, got {value!r}")
        quantity = int(m.group(1))
    if quantity < 0:
        raise ValidationError(f"quantity must not be negative, got {value!r}")
    return quantity
