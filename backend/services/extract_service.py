"""
Receipt Field Extractor — turns raw OCR text into an ExtractedReceipt.

Receipts have no fixed schema, so each field is pulled out by an ordered list
of (pattern, converter) rules evaluated by `first_match`: the first rule whose
pattern matches *and* whose converter produces a value wins.  Fields are
independent except that the amount is found first so item extraction can drop
the total line.

Everything here is pure and never raises; a field that can't be found is left
as None and the user fills it in by hand.
"""
import logging
import re
from datetime import date
from typing import Callable, Optional, Sequence, TypeVar, Union

from models.schemas import CandidateItem, ExtractedReceipt, RawOcrText

logger = logging.getLogger("slipkeep.extract")

T = TypeVar("T")
Rule = tuple[re.Pattern, Callable[[re.Match], Optional[T]]]

CURRENCY = r"[$€£฿]"


def first_match(rules: Sequence[Rule], text: str) -> Optional[T]:
    """Return the converted value of the first rule that matches `text`.

    A rule whose pattern matches but whose converter returns None (e.g. a
    date-shaped string that isn't a real date) is skipped, not fatal.
    """
    for pattern, convert in rules:
        m = pattern.search(text)
        if m is None:
            continue
        value = convert(m)
        if value is not None:
            return value
    return None


def normalize_lines(text: str) -> list[str]:
    """Split into stripped, non-empty lines; order is preserved."""
    return [line.strip() for line in text.splitlines() if line.strip()]


# ── Amount ────────────────────────────────────────────────────────────────────
#   "TOTAL: $42.50" / "Amount 12" / "Sum 9.9"   (label first)
#   "$42.50"                                    (bare currency amount)
#   "42.50 TOTAL"                               (label after)

def _plain_amount(m: re.Match) -> str:
    """'1,234.56' → '1234.56'."""
    return m.group(1).replace(",", "")


# Thousands-grouped or plain digits.  A number followed by more digits, a comma
# or a further decimal was cut short, so the rule doesn't match at all.
_LABELLED_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)(?![\d,]|\.\d)"
_PRICE_NUMBER = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+\.\d{2})(?!\d)"

AMOUNT_RULES: list[Rule] = [
    (re.compile(rf"(?i)\b(?:total|amount|sum)\b\s*:?\s*{CURRENCY}?\s*{_LABELLED_NUMBER}"), _plain_amount),
    (re.compile(rf"{CURRENCY}\s?{_PRICE_NUMBER}"), _plain_amount),
    (re.compile(rf"(?i)(?<![\d.,]){_PRICE_NUMBER}\s*(?:total|amount)\b"), _plain_amount),
]


def extract_amount(text: str) -> Optional[str]:
    return first_match(AMOUNT_RULES, text)


# ── Date ──────────────────────────────────────────────────────────────────────

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def _full_year(raw: str) -> Optional[int]:
    year = int(raw)
    if len(raw) == 4:
        return year
    if len(raw) == 2:
        return 2000 + year if year < 50 else 1900 + year
    return None


def _safe_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _numeric_date(m: re.Match) -> Optional[str]:
    """03/15/2024 → 2024-03-15.  Month-first, then day-first for 15/03/2024."""
    first, second = int(m.group(1)), int(m.group(2))
    year = _full_year(m.group(3))
    if year is None:
        return None
    return _safe_date(year, first, second) or _safe_date(year, second, first)


def _iso_date(m: re.Match) -> Optional[str]:
    return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _month_name_date(m: re.Match) -> Optional[str]:
    return _safe_date(int(m.group(3)), MONTHS[m.group(1)[:3].lower()], int(m.group(2)))


# Abbreviation or full name only, so "Market" or "Decaf" never read as a month
MONTH_NAME = (
    r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)

DATE_RULES: list[Rule] = [
    (re.compile(r"(?<!\d)(\d{1,2})[-/](\d{1,2})[-/](\d{2,4})(?!\d)"), _numeric_date),
    (re.compile(r"(?<!\d)(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)"), _iso_date),
    (re.compile(
        rf"(?i)\b{MONTH_NAME}\b[.,]?\s+(\d{{1,2}}),?\s+(\d{{4}})(?!\d)"
    ), _month_name_date),
]


def extract_date(text: str) -> Optional[str]:
    return first_match(DATE_RULES, text)


# ── Description (merchant) ────────────────────────────────────────────────────

PHONE_RE = re.compile(r"\d{10,}")
ADDRESS_RE = re.compile(r"(?i)\b(?:address|street|rd|ave|blvd)\b")

DESCRIPTION_REJECTS: list[Callable[[str], bool]] = [
    lambda line: len(line) <= 3,
    lambda line: PHONE_RE.search(line) is not None,
    lambda line: ADDRESS_RE.search(line) is not None,
]


def extract_description(lines: Sequence[str]) -> Optional[str]:
    """First of the top three lines that doesn't look like noise, a phone number or an address."""
    for line in lines[:3]:
        if not any(reject(line) for reject in DESCRIPTION_REJECTS):
            return line.strip()
    return None


# ── Line items ────────────────────────────────────────────────────────────────
#   "Latte 4.50" / "Club Sandwich $8.95"

ITEM_LINE_RE = re.compile(rf"^((?:[^\W\d_]|[ \t])+?)[ \t]*{CURRENCY}?[ \t]*(\d+\.\d{{2}})$")
ITEM_STOP_RE = re.compile(r"(?i)total|subtotal|tax|address|phone|thank")
FALLBACK_ITEM_LIMIT = 5


def extract_items(lines: Sequence[str], amount: Optional[str]) -> list[CandidateItem]:
    """
    Strict pass: "<name> <price>" lines, minus the one whose price is the total.
    Fallback pass (only when no line had that shape at all): plausible
    name-only lines, capped at FALLBACK_ITEM_LIMIT.
    """
    matches = [m for m in (ITEM_LINE_RE.match(line) for line in lines) if m]
    if matches:
        return [
            CandidateItem(name=m.group(1).strip())
            for m in matches
            if m.group(2) != amount
        ]

    fallback = [
        line for line in lines
        if line[0].isalpha() and 3 <= len(line) <= 30 and not ITEM_STOP_RE.search(line)
    ]
    return [CandidateItem(name=line) for line in fallback[:FALLBACK_ITEM_LIMIT]]


# ── Entry point ───────────────────────────────────────────────────────────────

def extract(raw: Union[RawOcrText, str]) -> ExtractedReceipt:
    text = raw.text if isinstance(raw, RawOcrText) else raw
    lines = normalize_lines(text)
    joined = "\n".join(lines)

    amount = extract_amount(joined)
    result = ExtractedReceipt(
        description=extract_description(lines),
        amount=amount,
        date=extract_date(joined),
        items=extract_items(lines, amount),
    )
    logger.debug(
        "Extracted from %d lines: description=%r amount=%r date=%r items=%d",
        len(lines), result.description, result.amount, result.date, len(result.items),
    )
    return result
