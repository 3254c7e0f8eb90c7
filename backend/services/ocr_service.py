"""
OCR Service — wraps Tesseract (via pytesseract) behind a single call:
prepared image bytes + a language hint in, RawOcrText out.

Recognition can take seconds, so routers go through `recognize_async`, which
runs the blocking call in a worker thread and bounds it with a timeout so a
wedged engine surfaces as RecognitionFailedError instead of a hung request.
"""
import asyncio
import io
import logging
import os
from enum import Enum

import numpy as np
import pytesseract
from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from models.schemas import RawOcrText
from services.errors import RecognitionFailedError

logger = logging.getLogger("slipkeep.ocr")

OCR_PRIMARY_LANG = os.environ.get("OCR_PRIMARY_LANG", "eng")
OCR_SECONDARY_LANG = os.environ.get("OCR_SECONDARY_LANG", "tha")
OCR_TIMEOUT = float(os.environ.get("OCR_TIMEOUT", "30"))
TESSERACT_CONFIG = "--psm 6"


class LanguageHint(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    BOTH = "both"


def resolve_language(hint: LanguageHint) -> str:
    """Map a hint onto Tesseract's language id (e.g. 'eng', 'tha', 'eng+tha')."""
    if hint == LanguageHint.PRIMARY:
        return OCR_PRIMARY_LANG
    if hint == LanguageHint.SECONDARY:
        return OCR_SECONDARY_LANG
    return f"{OCR_PRIMARY_LANG}+{OCR_SECONDARY_LANG}"


def preprocess_image(image: Image.Image) -> Image.Image:
    """
    Improve OCR accuracy by preprocessing the receipt image:
    - Convert to grayscale
    - Upscale if small
    - Invert dark-background / white-text bands
    - Enhance contrast and sharpen
    """
    img = image.convert("L")

    w, h = img.size
    if w < 800:
        scale = 800 / w
        img = img.resize((int(w * scale), int(h * scale)), Image.LANCZOS)

    # Scan in ~40 horizontal bands; a band averaging below 80 is mostly dark,
    # so flip it to black-on-white.
    arr = np.array(img)
    band_height = max(1, arr.shape[0] // 40)
    for y in range(0, arr.shape[0], band_height):
        band = arr[y:y + band_height, :]
        if band.mean() < 80:
            arr[y:y + band_height, :] = 255 - band
    img = Image.fromarray(arr)

    img = ImageEnhance.Contrast(img).enhance(2.0)
    img = img.filter(ImageFilter.SHARPEN)
    return img


def recognize(
    image_bytes: bytes,
    hint: LanguageHint = LanguageHint.PRIMARY,
    timeout: float = OCR_TIMEOUT,
) -> RawOcrText:
    """Run Tesseract on a prepared image buffer and return its lines."""
    lang = resolve_language(hint)
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise RecognitionFailedError(f"Cannot open image: {e}") from e

    processed = preprocess_image(image)
    try:
        text = pytesseract.image_to_string(
            processed, lang=lang, config=TESSERACT_CONFIG, timeout=timeout,
        )
    except pytesseract.TesseractNotFoundError as e:
        raise RecognitionFailedError("Tesseract OCR binary not found in PATH") from e
    except pytesseract.TesseractError as e:
        # Most commonly a missing traineddata file for `lang`
        raise RecognitionFailedError(f"OCR failed for language '{lang}': {e.message}") from e
    except RuntimeError as e:
        # pytesseract signals its own timeout with a bare RuntimeError
        raise RecognitionFailedError(f"OCR failed: {e}") from e

    raw = RawOcrText.from_text(text.strip())
    logger.info("Recognized %d lines (lang=%s)", len(raw.lines), lang)
    return raw


async def recognize_async(
    image_bytes: bytes,
    hint: LanguageHint = LanguageHint.PRIMARY,
    timeout: float = OCR_TIMEOUT,
) -> RawOcrText:
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(recognize, image_bytes, hint, timeout),
            timeout=timeout + 5,
        )
    except asyncio.TimeoutError as e:
        raise RecognitionFailedError(f"OCR timed out after {timeout:.0f}s") from e
