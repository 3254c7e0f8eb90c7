"""
Error taxonomy shared by services and routers.

AppError subclasses carry the HTTP status they map to; routers/errors.py turns
them into `{"error": ...}` responses.  InvalidCropError and
MalformedItemsPayload never reach the client — callers catch them and fall
back (full image / no items).
"""


class AppError(Exception):
    """Base for errors that end a single request with a client-visible message."""
    status_code = 500


class ValidationError(AppError):
    """A required field is missing or a value can't be coerced."""
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class UploadTooLargeError(AppError):
    status_code = 413


class RecognitionFailedError(AppError):
    """The OCR engine could not produce text (unreadable image, missing language pack, timeout)."""
    status_code = 422


class StaleScanError(AppError):
    """A newer scan for the same session started before this one finished."""
    status_code = 409


class InvalidCropError(ValueError):
    """Crop region collapses to zero width or height."""
    pass


class MalformedItemsPayload(ValueError):
    """The `items` form field on a slip submission isn't a JSON array."""
    pass
