"""
Tests for the recognition adapter — Tesseract itself is never invoked;
pytesseract.image_to_string is replaced so language mapping and error
translation can be checked in isolation.
"""
import pytest
import pytesseract
from PIL import Image

from services import ocr_service
from services.errors import RecognitionFailedError
from services.ocr_service import (
    LanguageHint,
    preprocess_image,
    recognize,
    recognize_async,
    resolve_language,
)


@pytest.fixture
def fake_tesseract(monkeypatch):
    """Record calls to image_to_string and return canned text."""
    calls = []

    def _fake(image, lang=None, config="", timeout=0, **kwargs):
        calls.append({"image": image, "lang": lang, "config": config, "timeout": timeout})
        return "  COFFEE SHOP\nTOTAL $4.50\n\n"

    monkeypatch.setattr(ocr_service.pytesseract, "image_to_string", _fake)
    return calls


def _raise(exc):
    def _fake(*args, **kwargs):
        raise exc
    return _fake


# ── resolve_language ─────────────────────────────────────────────────────────

class TestResolveLanguage:

    def test_primary(self, monkeypatch):
        monkeypatch.setattr(ocr_service, "OCR_PRIMARY_LANG", "eng")
        assert resolve_language(LanguageHint.PRIMARY) == "eng"

    def test_secondary(self, monkeypatch):
        monkeypatch.setattr(ocr_service, "OCR_SECONDARY_LANG", "tha")
        assert resolve_language(LanguageHint.SECONDARY) == "tha"

    def test_both(self, monkeypatch):
        monkeypatch.setattr(ocr_service, "OCR_PRIMARY_LANG", "eng")
        monkeypatch.setattr(ocr_service, "OCR_SECONDARY_LANG", "deu")
        assert resolve_language(LanguageHint.BOTH) == "eng+deu"

    def test_hint_from_string_value(self):
        assert LanguageHint("both") is LanguageHint.BOTH


# ── preprocess_image ─────────────────────────────────────────────────────────

class TestPreprocessImage:

    def test_grayscale_and_upscaled(self):
        out = preprocess_image(Image.new("RGB", (400, 200), (255, 255, 255)))
        assert out.mode == "L"
        assert out.size == (800, 400)

    def test_wide_image_not_resized(self):
        out = preprocess_image(Image.new("RGB", (1000, 100), (255, 255, 255)))
        assert out.size == (1000, 100)

    def test_dark_image_inverted(self):
        out = preprocess_image(Image.new("RGB", (800, 80), (0, 0, 0)))
        assert out.getpixel((10, 10)) == 255


# ── recognize ────────────────────────────────────────────────────────────────

class TestRecognize:

    def test_returns_lines(self, fake_tesseract, make_image):
        raw = recognize(make_image())
        assert raw.lines == ("COFFEE SHOP", "TOTAL $4.50")

    def test_language_and_config_passed(self, fake_tesseract, make_image, monkeypatch):
        monkeypatch.setattr(ocr_service, "OCR_PRIMARY_LANG", "eng")
        monkeypatch.setattr(ocr_service, "OCR_SECONDARY_LANG", "tha")
        recognize(make_image(), LanguageHint.BOTH, timeout=12)
        assert fake_tesseract[0]["lang"] == "eng+tha"
        assert fake_tesseract[0]["config"] == "--psm 6"
        assert fake_tesseract[0]["timeout"] == 12

    def test_image_preprocessed_before_ocr(self, fake_tesseract, make_image):
        recognize(make_image(200, 100))
        assert fake_tesseract[0]["image"].mode == "L"

    def test_unreadable_image(self, fake_tesseract):
        with pytest.raises(RecognitionFailedError, match="Cannot open image"):
            recognize(b"not an image")
        assert fake_tesseract == []

    def test_missing_binary(self, monkeypatch, make_image):
        monkeypatch.setattr(ocr_service.pytesseract, "image_to_string",
                            _raise(pytesseract.TesseractNotFoundError()))
        with pytest.raises(RecognitionFailedError, match="not found"):
            recognize(make_image())

    def test_missing_language_pack(self, monkeypatch, make_image):
        monkeypatch.setattr(ocr_service.pytesseract, "image_to_string",
                            _raise(pytesseract.TesseractError(1, "Failed loading language 'tha'")))
        with pytest.raises(RecognitionFailedError, match="tha"):
            recognize(make_image(), LanguageHint.SECONDARY)

    def test_engine_timeout(self, monkeypatch, make_image):
        monkeypatch.setattr(ocr_service.pytesseract, "image_to_string",
                            _raise(RuntimeError("Tesseract process timeout")))
        with pytest.raises(RecognitionFailedError, match="timeout"):
            recognize(make_image())


class TestRecognizeAsync:

    @pytest.mark.asyncio
    async def test_runs_in_thread(self, fake_tesseract, make_image):
        raw = await recognize_async(make_image())
        assert raw.text == "COFFEE SHOP\nTOTAL $4.50"

    @pytest.mark.asyncio
    async def test_failure_propagates(self, monkeypatch, make_image):
        monkeypatch.setattr(ocr_service.pytesseract, "image_to_string",
                            _raise(pytesseract.TesseractNotFoundError()))
        with pytest.raises(RecognitionFailedError):
            await recognize_async(make_image())
