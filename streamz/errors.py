# streamz/errors.py
from __future__ import annotations


class StreamzError(Exception):
    """Base error; rendered as ``{"error", "message", "code"}`` JSON."""

    status_code = 500
    error = "Internal server error"
    code = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None):
        self.message = message or self.error
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.error, "message": self.message, "code": self.code}


class NotFound(StreamzError):
    status_code = 404
    error = "Not found"
    code = "NOT_FOUND"


class BadRequest(StreamzError):
    status_code = 400
    error = "Bad request"
    code = "BAD_REQUEST"


class Unauthorized(StreamzError):
    status_code = 401
    error = "Unauthorized"
    code = "INVALID_ADMIN_TOKEN"


class Conflict(StreamzError):
    status_code = 409
    error = "Duplicate entry"
    code = "DUPLICATE_ENTRY"


class PayloadTooLarge(StreamzError):
    status_code = 413
    error = "File too large"
    code = "FILE_TOO_LARGE"


class InvalidLocator(StreamzError):
    """A stored locator that does not name exactly one storage key."""

    error = "Invalid storage locator"
    code = "INVALID_LOCATOR"


class ObjectMissing(StreamzError):
    """Metadata row exists but storage has no object under its key."""

    error = "Video content missing"
    code = "OBJECT_MISSING"


class StorageError(StreamzError):
    status_code = 502
    error = "Storage error"
    code = "STORAGE_ERROR"


class UpstreamTimeout(StreamzError):
    status_code = 504
    error = "Upstream timeout"
    code = "UPSTREAM_TIMEOUT"


class TransferError(StreamzError):
    error = "Transfer failed"
    code = "TRANSFER_ERROR"
