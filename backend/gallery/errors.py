"""Exception taxonomy for the photo gallery service.

Client-caused failures carry a stable ``code`` that routers copy into the
``error`` field of the JSON response. Server-side failures (``OSError`` from
the content directory, :class:`StoreError` from the record store) are mapped
to generic codes by the routers so internals never leak in production.
"""
from typing import List, Optional


class GalleryError(Exception):
    """Base class for all gallery-specific errors."""


class UploadValidationError(GalleryError):
    """An upload was rejected before any side effect took place.

    Attributes:
        code: Machine-readable error code (``"invalid_extension"``, ...).
        messages: Human-readable descriptions, at least one.
    """

    def __init__(self, code: str, messages: List[str]) -> None:
        self.code = code
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class PayloadTooLarge(GalleryError):
    """The uploaded file exceeded the configured byte ceiling."""

    def __init__(self, limit: int, received: Optional[int] = None) -> None:
        self.limit = limit
        self.received = received
        super().__init__(f"File size exceeds maximum limit of {limit} bytes")


class StoreError(GalleryError):
    """A record store statement failed."""


class CleanupError(GalleryError):
    """Removing an orphaned file after a failed insert did not succeed.

    Only ever logged; the failure that triggered the cleanup is what the
    caller sees.
    """

    def __init__(self, file_name: str, cause: BaseException) -> None:
        self.file_name = file_name
        self.cause = cause
        super().__init__(f"Failed to clean up {file_name}: {cause}")
