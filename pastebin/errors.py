"""
Error taxonomy for paste operations.
"""
from enum import Enum


class PasteError(Exception):
    """Base class for all paste errors."""


class InvalidInput(PasteError):
    """Caller supplied invalid input to create()."""


class InvalidContent(InvalidInput):
    """Content is missing, not a string, or blank."""


class InvalidTTL(InvalidInput):
    """ttl_seconds is not a positive integer."""


class InvalidMaxViews(InvalidInput):
    """max_views is not a positive integer."""


class NotFoundReason(str, Enum):
    MISSING = "missing"
    EXPIRED = "expired"
    VIEW_LIMIT = "view_limit"


class NotFound(PasteError):
    """
    Paste does not exist, has expired, or ran out of views.

    The reason is for logging only; callers outside the core must treat
    all reasons the same way.
    """

    def __init__(self, paste_id: str, reason: NotFoundReason = NotFoundReason.MISSING):
        super().__init__(f"Paste {paste_id} not found ({reason.value})")
        self.paste_id = paste_id
        self.reason = reason


class StoreUnavailable(PasteError):
    """The persistence engine could not be reached."""
