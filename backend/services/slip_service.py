"""
Slip files — validation and storage of uploaded receipts, plus parsing of the
JSON `items` field sent alongside a slip submission.
"""
import json
import logging
import os
import random
import time
from datetime import datetime, timezone

from models.schemas import SlipInfo
from services.errors import MalformedItemsPayload, UploadTooLargeError, ValidationError

logger = logging.getLogger("slipkeep.slips")

MAX_SLIP_BYTES = int(os.environ.get("MAX_SLIP_BYTES", str(10 * 1024 * 1024)))
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".pdf"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "application/pdf"}


def validate_slip(filename: str, content_type: str, size: int) -> str:
    """Check type and size; returns the lowercased extension."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise ValidationError("Only image files (JPEG, PNG, GIF) and PDFs are allowed")
    if size > MAX_SLIP_BYTES:
        raise UploadTooLargeError(
            f"File too large: {size} bytes (limit {MAX_SLIP_BYTES // (1024 * 1024)} MB)"
        )
    return ext


def save_slip(contents: bytes, filename: str, content_type: str, upload_dir: str) -> SlipInfo:
    ext = validate_slip(filename, content_type, len(contents))
    os.makedirs(upload_dir, exist_ok=True)

    stored_name = f"slip-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
    path = os.path.join(upload_dir, stored_name)
    with open(path, "wb") as f:
        f.write(contents)
    logger.info("Saved slip %s (%d bytes) as %s", filename, len(contents), stored_name)

    return SlipInfo(
        filename=stored_name,
        original_name=filename,
        path=path,
        size=len(contents),
        uploaded_at=datetime.now(timezone.utc).isoformat(),
    )


def parse_items_payload(raw: str) -> list[dict]:
    """
    Decode the `items` form field: a JSON array of {name, quantity?, category?}.
    Entries without a usable name are dropped.  Anything that isn't a JSON
    array raises MalformedItemsPayload.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedItemsPayload(f"items is not valid JSON: {e.msg}") from e
    if not isinstance(data, list):
        raise MalformedItemsPayload(f"items must be a JSON array, got {type(data).__name__}")

    items = []
    for entry in data:
        if not isinstance(entry, dict) or not str(entry.get("name") or "").strip():
            logger.warning("Skipping item without a name: %r", entry)
            continue
        items.append(entry)
    return items
