"""
Scan coordination — prepare → recognize → extract, with superseded results
dropped.

A client that re-crops or picks a new image while a scan is still running
starts a new scan for the same session.  Every scan gets a token from a
monotonically increasing sequence; when recognition finishes, the result is
only used if its token is still the latest one for that session.
"""
import itertools
import logging
from typing import Optional

from models.schemas import CropRegion, ImageSize, ScanResult
from services.errors import StaleScanError
from services.extract_service import extract
from services.image_service import prepare_with_fallback
from services.ocr_service import LanguageHint, recognize_async

logger = logging.getLogger("slipkeep.scan")


class ScanCoordinator:

    def __init__(self):
        self._seq = itertools.count(1)
        self._latest: dict[str, int] = {}

    def begin(self, session: str) -> int:
        token = next(self._seq)
        self._latest[session] = token
        return token

    def is_current(self, session: str, token: int) -> bool:
        return self._latest.get(session) == token

    async def scan(
        self,
        session: str,
        image_bytes: bytes,
        crop: Optional[CropRegion] = None,
        display_size: Optional[ImageSize] = None,
        hint: LanguageHint = LanguageHint.PRIMARY,
    ) -> ScanResult:
        token = self.begin(session)
        try:
            prepared, crop_applied = prepare_with_fallback(image_bytes, crop, display_size)
            raw = await recognize_async(prepared, hint)

            if not self.is_current(session, token):
                logger.info("Discarding scan %d for session %r — superseded by %d",
                            token, session, self._latest.get(session))
                raise StaleScanError(f"Scan {token} was superseded by a newer scan")

            return ScanResult(
                token=token,
                text=raw.text,
                crop_applied=crop_applied,
                receipt=extract(raw),
            )
        finally:
            # Only the latest scan of a session clears it; a superseded one
            # leaves the newer token in place.
            if self.is_current(session, token):
                del self._latest[session]
