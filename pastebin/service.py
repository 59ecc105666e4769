"""
Paste service: creation, dual expiry policy, and view consumption.
All business rules live here; the store is a dumb persistence substrate.
"""
import logging
import random
import time
from typing import Any, Callable, Optional

from pastebin.clock import SystemClock, ms_to_iso
from pastebin.database import RecordStore, paste_key
from pastebin.errors import (
    InvalidContent,
    InvalidMaxViews,
    InvalidTTL,
    NotFound,
    NotFoundReason,
    StoreUnavailable,
)
from pastebin.ids import DEFAULT_LENGTH, generate_id
from pastebin.models import PasteRecord, PasteView

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 0.05


def _backoff(attempt: int) -> None:
    """Sleep a random slice of an exponentially growing window."""
    window = min(MAX_BACKOFF_SECONDS, 0.001 * 2 ** min(attempt, 16))
    time.sleep(random.uniform(0, window))


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass; True must not pass as 1
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def validate_create(content: Any, ttl_seconds: Any, max_views: Any) -> None:
    """
    Validate create() input before anything is written.

    Raises:
        InvalidContent: If content is not a non-blank string
        InvalidTTL: If ttl_seconds is given and not a positive integer
        InvalidMaxViews: If max_views is given and not a positive integer
    """
    if not isinstance(content, str) or not content.strip():
        raise InvalidContent("content is required and must be a non-empty string")
    if ttl_seconds is not None and not _is_positive_int(ttl_seconds):
        raise InvalidTTL("ttl_seconds must be an integer >= 1")
    if max_views is not None and not _is_positive_int(max_views):
        raise InvalidMaxViews("max_views must be an integer >= 1")


class PasteService:
    """Orchestrates paste records over a RecordStore."""

    def __init__(
        self,
        store: RecordStore,
        clock=None,
        id_generator: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.id_generator = id_generator or (lambda: generate_id(DEFAULT_LENGTH))

    def _now(self, now_ms: Optional[int]) -> int:
        return self.clock.now_ms() if now_ms is None else now_ms

    def create(
        self,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        *,
        now_ms: Optional[int] = None,
    ) -> PasteRecord:
        """
        Create and persist a new paste.

        Args:
            content: Text content of the paste
            ttl_seconds: Optional time-to-live in seconds
            max_views: Optional maximum view count
            now_ms: Optional override for the current instant

        Returns:
            The stored record (its id is the public identifier)

        Raises:
            InvalidContent, InvalidTTL, InvalidMaxViews: On bad input
            StoreUnavailable: If the store cannot be reached
        """
        validate_create(content, ttl_seconds, max_views)

        now = self._now(now_ms)
        record = PasteRecord(
            id=self.id_generator(),
            content=content,
            created_at=now,
            expires_at=now + ttl_seconds * 1000 if ttl_seconds is not None else None,
            max_views=max_views,
            views=0,
        )
        self.store.put(paste_key(record.id), record, ttl_seconds)
        logger.info(f"Paste {record.id} saved successfully")
        return record

    def peek(self, paste_id: str, *, now_ms: Optional[int] = None) -> PasteView:
        """
        Inspect a paste without consuming a view.

        Raises:
            NotFound: If missing, expired, or out of views
            StoreUnavailable: If the store cannot be reached
        """
        record = self._load_live(paste_id, self._now(now_ms))
        return self._view(record)

    def consume(self, paste_id: str, *, now_ms: Optional[int] = None) -> PasteView:
        """
        Read a paste and consume one view.

        The fetch/check/increment sequence is applied with compare-and-swap
        and restarted from a fresh read on conflict, so concurrent consumers
        can never take more than max_views views between them. A lost
        round means another consumer's view landed, so retries continue
        until this view lands or the paste is gone.

        Returns:
            The content with remaining_views counted after this view

        Raises:
            NotFound: If missing, expired, or out of views
            StoreUnavailable: If the store cannot be reached
        """
        now = self._now(now_ms)
        key = paste_key(paste_id)
        attempt = 0

        while True:
            record = self._load_live(paste_id, now)
            updated = record.with_view()
            if self.store.replace(key, record, updated):
                break
            attempt += 1
            logger.debug(f"Consume conflict on paste {paste_id} (attempt {attempt})")
            _backoff(attempt)

        logger.info(f"View count incremented for paste {paste_id}")
        if updated.is_exhausted():
            self._discard(paste_id, NotFoundReason.VIEW_LIMIT)
        return self._view(updated)

    def is_healthy(self) -> bool:
        """Check if the store is reachable."""
        try:
            self.store.ping()
            return True
        except StoreUnavailable as e:
            logger.error(f"Health check failed: {e}")
        return False

    def _load_live(self, paste_id: str, now: int) -> PasteRecord:
        record = self.store.get(paste_key(paste_id))
        if record is None:
            logger.info(f"Paste {paste_id} not found")
            raise NotFound(paste_id, NotFoundReason.MISSING)

        if record.is_expired(now):
            logger.info(f"Paste {paste_id} has expired (TTL)")
            self._discard(paste_id, NotFoundReason.EXPIRED)
            raise NotFound(paste_id, NotFoundReason.EXPIRED)

        if record.is_exhausted():
            logger.info(f"Paste {paste_id} view limit exceeded")
            self._discard(paste_id, NotFoundReason.VIEW_LIMIT)
            raise NotFound(paste_id, NotFoundReason.VIEW_LIMIT)

        return record

    def _discard(self, paste_id: str, reason: NotFoundReason) -> None:
        # Best effort: native TTL reclaims the key if this fails.
        try:
            self.store.delete(paste_key(paste_id))
            logger.info(f"Paste {paste_id} deleted ({reason.value})")
        except StoreUnavailable as e:
            logger.warning(f"Could not delete paste {paste_id} ({reason.value}): {e}")

    @staticmethod
    def _view(record: PasteRecord) -> PasteView:
        return PasteView(
            content=record.content,
            remaining_views=record.remaining_views(),
            expires_at=ms_to_iso(record.expires_at) if record.expires_at is not None else None,
        )
