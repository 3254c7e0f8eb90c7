"""
Tests for image preparation — crop rescaling, clamping and the full-image fallback.
"""
import io

import pytest
from PIL import Image

from models.schemas import CropRegion, ImageSize
from services.errors import InvalidCropError, RecognitionFailedError
from services.image_service import prepare, prepare_with_fallback, scale_crop


def _size(jpeg: bytes) -> tuple[int, int]:
    img = Image.open(io.BytesIO(jpeg))
    assert img.format == "JPEG"
    return img.size


# ── scale_crop ───────────────────────────────────────────────────────────────

class TestScaleCrop:

    def test_display_to_natural(self):
        crop = CropRegion(x=10, y=10, width=50, height=50)
        scaled = scale_crop(crop, ImageSize(width=200, height=200), ImageSize(width=800, height=800))
        assert scaled == CropRegion(x=40, y=40, width=200, height=200)

    def test_independent_axes(self):
        crop = CropRegion(x=10, y=10, width=20, height=20)
        scaled = scale_crop(crop, ImageSize(width=100, height=50), ImageSize(width=300, height=200))
        assert scaled == CropRegion(x=30, y=40, width=60, height=80)

    def test_same_size_is_identity(self):
        crop = CropRegion(x=1, y=2, width=3, height=4)
        size = ImageSize(width=10, height=10)
        assert scale_crop(crop, size, size) == crop

    def test_zero_display_rejected(self):
        crop = CropRegion(x=0, y=0, width=5, height=5)
        with pytest.raises(InvalidCropError):
            scale_crop(crop, ImageSize(width=0, height=100), ImageSize(width=100, height=100))


# ── prepare ──────────────────────────────────────────────────────────────────

class TestPrepare:

    def test_no_crop_reencodes_full_image(self, make_image):
        assert _size(prepare(make_image(320, 240))) == (320, 240)

    def test_crop_extracts_rescaled_region(self, make_image):
        source = make_image(800, 800)
        out = prepare(source, CropRegion(x=10, y=10, width=50, height=50),
                      ImageSize(width=200, height=200))
        assert _size(out) == (200, 200)

    def test_crop_without_display_size_uses_natural_pixels(self, make_image):
        out = prepare(make_image(400, 300), CropRegion(x=0, y=0, width=100, height=50))
        assert _size(out) == (100, 50)

    def test_crop_clamped_to_bounds(self, make_image):
        out = prepare(make_image(100, 100), CropRegion(x=80, y=80, width=50, height=50))
        assert _size(out) == (20, 20)

    def test_zero_width_crop_rejected(self, make_image):
        with pytest.raises(InvalidCropError):
            prepare(make_image(100, 100), CropRegion(x=10, y=10, width=0, height=50))

    def test_crop_outside_image_rejected(self, make_image):
        with pytest.raises(InvalidCropError):
            prepare(make_image(100, 100), CropRegion(x=150, y=10, width=20, height=20))

    def test_source_bytes_untouched(self, make_image):
        source = make_image(100, 100)
        before = bytes(source)
        prepare(source, CropRegion(x=0, y=0, width=10, height=10))
        assert source == before

    def test_unreadable_bytes(self):
        with pytest.raises(RecognitionFailedError):
            prepare(b"definitely not an image")

    def test_rgba_converted(self):
        buf = io.BytesIO()
        Image.new("RGBA", (50, 40), (0, 0, 0, 0)).save(buf, format="PNG")
        assert _size(prepare(buf.getvalue())) == (50, 40)


# ── prepare_with_fallback ────────────────────────────────────────────────────

class TestPrepareWithFallback:

    def test_valid_crop_applied(self, make_image):
        out, applied = prepare_with_fallback(
            make_image(100, 100), CropRegion(x=0, y=0, width=40, height=30),
        )
        assert applied is True
        assert _size(out) == (40, 30)

    def test_degenerate_crop_falls_back_to_full_image(self, make_image):
        out, applied = prepare_with_fallback(
            make_image(100, 80), CropRegion(x=10, y=10, width=0, height=0),
        )
        assert applied is False
        assert _size(out) == (100, 80)

    def test_zero_display_falls_back(self, make_image):
        out, applied = prepare_with_fallback(
            make_image(60, 60), CropRegion(x=1, y=1, width=5, height=5),
            ImageSize(width=0, height=0),
        )
        assert applied is False
        assert _size(out) == (60, 60)

    def test_no_crop(self, make_image):
        out, applied = prepare_with_fallback(make_image(30, 20))
        assert applied is False
        assert _size(out) == (30, 20)
