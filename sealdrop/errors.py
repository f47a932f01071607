"""Error kinds raised by the storage core.

Every rejection is raised synchronously and carries the HTTP status the API
layer renders it with. Messages never include payload contents.
"""

from __future__ import annotations


class SealDropError(Exception):
    """Base class for all storage-core errors.

    Attributes:
        kind: Stable machine-readable error name.
        status_code: HTTP status used when rendered by the API.
    """

    kind = "SealDropError"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(SealDropError):
    kind = "InvalidInput"
    status_code = 400
    default_message = "No payload provided"


class PayloadTooLarge(SealDropError):
    kind = "PayloadTooLarge"
    status_code = 400
    default_message = "Payload exceeds the size limit"


class QuotaExceeded(SealDropError):
    """Origin has used up its writes for the current window."""

    kind = "QuotaExceeded"
    status_code = 429
    default_message = "Quota exceeded"

    def __init__(self, message: str | None = None, retry_after_seconds: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class InvalidId(SealDropError):
    kind = "InvalidId"
    status_code = 400
    default_message = "Invalid ID format"


class NotFound(SealDropError):
    kind = "NotFound"
    status_code = 404
    default_message = "Entry not found"


class StorageUnavailable(SealDropError):
    """The database could not be reached."""

    kind = "StorageUnavailable"
    status_code = 503
    default_message = "Storage unavailable"
