"""
Image Preparation — turns an uploaded slip plus an optional user crop into the
JPEG buffer handed to OCR.

The crop is drawn on a *displayed* copy of the image (resized for on-screen
editing), so its coordinates are rescaled to the natural, full-resolution
pixel grid before anything is cut out.
"""
import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener

from models.schemas import CropRegion, ImageSize
from services.errors import InvalidCropError, RecognitionFailedError

logger = logging.getLogger("slipkeep.image")

register_heif_opener()

JPEG_QUALITY = 95


def _open_image(source: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(source))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise RecognitionFailedError(f"Cannot open image: {e}") from e

    # Phone photos are often rotated in EXIF only
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return buf.getvalue()


def scale_crop(crop: CropRegion, display: ImageSize, natural: ImageSize) -> CropRegion:
    """Map a crop drawn on the displayed image onto natural-resolution pixels."""
    if display.width <= 0 or display.height <= 0:
        raise InvalidCropError(f"Display size {display.width}×{display.height} has no area")
    sx = natural.width / display.width
    sy = natural.height / display.height
    return CropRegion(
        x=crop.x * sx,
        y=crop.y * sy,
        width=crop.width * sx,
        height=crop.height * sy,
    )


def _crop_box(region: CropRegion, width: int, height: int) -> tuple[int, int, int, int]:
    """Pixel box for Image.crop, clamped so x+width ≤ W and y+height ≤ H."""
    left = max(0, min(width, round(region.x)))
    top = max(0, min(height, round(region.y)))
    right = max(left, min(width, round(region.x + region.width)))
    bottom = max(top, min(height, round(region.y + region.height)))
    if right <= left or bottom <= top:
        raise InvalidCropError(
            f"Crop ({region.x:.0f},{region.y:.0f} {region.width:.0f}×{region.height:.0f}) "
            f"is empty within a {width}×{height} image"
        )
    return left, top, right, bottom


def prepare(
    source: bytes,
    crop: Optional[CropRegion] = None,
    display_size: Optional[ImageSize] = None,
) -> bytes:
    """
    Decode `source`, optionally crop it, and re-encode as JPEG (quality 95).

    `display_size` is the size the crop was drawn at; it defaults to the
    natural size (no rescaling).  Raises InvalidCropError for a crop with no
    area and RecognitionFailedError when the bytes aren't a readable image.
    """
    img = _open_image(source)
    if crop is None:
        return _encode_jpeg(img)

    natural = ImageSize(width=img.width, height=img.height)
    scaled = scale_crop(crop, display_size or natural, natural)
    box = _crop_box(scaled, img.width, img.height)
    logger.debug("Crop %s on display %s → box %s", crop, display_size, box)
    return _encode_jpeg(img.crop(box))


def prepare_with_fallback(
    source: bytes,
    crop: Optional[CropRegion] = None,
    display_size: Optional[ImageSize] = None,
) -> tuple[bytes, bool]:
    """Like prepare(), but a bad crop falls back to the full image.

    Returns (jpeg_bytes, crop_applied).
    """
    if crop is None:
        return prepare(source), False
    try:
        return prepare(source, crop, display_size), True
    except InvalidCropError as e:
        logger.info("Ignoring crop, using full image: %s", e)
        return prepare(source), False
