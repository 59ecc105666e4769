"""
Record store layer: Redis engine with an in-memory engine for development/testing.
Stores serialized paste records with native per-key expiry and compare-and-swap updates.
"""
import heapq
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from redis import Redis
from pydantic import ValidationError
from redis.exceptions import RedisError, WatchError

from pastebin.clock import SystemClock
from pastebin.config import Settings
from pastebin.errors import StoreUnavailable
from pastebin.models import PasteRecord

logger = logging.getLogger(__name__)

KEY_PREFIX = "paste:"


def paste_key(paste_id: str) -> str:
    return f"{KEY_PREFIX}{paste_id}"


class RecordStore(ABC):
    """Key-value persistence for paste records. No business logic."""

    @abstractmethod
    def put(self, key: str, record: PasteRecord, ttl_seconds: Optional[int] = None) -> None:
        """Store or overwrite a record, optionally expiring it after ttl_seconds."""

    @abstractmethod
    def get(self, key: str) -> Optional[PasteRecord]:
        """Return the stored record, or None."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a record. Deleting a missing key is a no-op."""

    @abstractmethod
    def replace(self, key: str, expected: PasteRecord, record: PasteRecord) -> bool:
        """
        Compare-and-swap.

        Writes `record` only if the stored value still equals `expected`,
        keeping the key's remaining TTL.

        Returns:
            True if written, False on conflict or if the key is gone
        """

    @abstractmethod
    def ping(self) -> None:
        """Raise StoreUnavailable if the engine cannot be reached."""

    def close(self) -> None:
        """Release engine resources."""


def _decode(key: str, raw: Optional[str]) -> Optional[PasteRecord]:
    """Parse a stored value; unreadable values are treated as missing."""
    if raw is None:
        return None
    try:
        return PasteRecord.from_json(raw)
    except ValidationError as e:
        logger.error(f"Unreadable record under {key}, treating as missing: {e.error_count()} error(s)")
        return None


class InMemoryStore(RecordStore):
    """Simple in-memory store for development/testing (when Redis unavailable)."""

    def __init__(self, clock=None):
        self.store: Dict[str, str] = {}
        self.ttl_timestamps: Dict[str, int] = {}
        self._deadlines: List[Tuple[int, str]] = []
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

    def _evict_if_expired(self, key: str) -> None:
        # Caller must hold self._lock.
        deadline = self.ttl_timestamps.get(key)
        if deadline is not None and self._clock.now_ms() >= deadline:
            self.store.pop(key, None)
            del self.ttl_timestamps[key]

    def _purge_expired(self) -> None:
        # Caller must hold self._lock. Heap entries go stale when a key is
        # re-put or deleted; only an entry matching ttl_timestamps evicts.
        now = self._clock.now_ms()
        while self._deadlines and self._deadlines[0][0] <= now:
            deadline, key = heapq.heappop(self._deadlines)
            if self.ttl_timestamps.get(key) == deadline:
                self.store.pop(key, None)
                del self.ttl_timestamps[key]

    def put(self, key: str, record: PasteRecord, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._purge_expired()
            self.store[key] = record.to_json()
            if ttl_seconds:
                deadline = self._clock.now_ms() + ttl_seconds * 1000
                self.ttl_timestamps[key] = deadline
                heapq.heappush(self._deadlines, (deadline, key))
            else:
                self.ttl_timestamps.pop(key, None)

    def get(self, key: str) -> Optional[PasteRecord]:
        with self._lock:
            self._evict_if_expired(key)
            raw = self.store.get(key)
        return _decode(key, raw)

    def delete(self, key: str) -> None:
        with self._lock:
            self.store.pop(key, None)
            self.ttl_timestamps.pop(key, None)

    def replace(self, key: str, expected: PasteRecord, record: PasteRecord) -> bool:
        with self._lock:
            self._evict_if_expired(key)
            current = _decode(key, self.store.get(key))
            if current is None or current != expected:
                return False
            self.store[key] = record.to_json()
            return True

    def ping(self) -> None:
        return None


@contextmanager
def _redis_errors(action: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error(f"Redis {action} failed: {type(e).__name__}: {str(e)}")
        raise StoreUnavailable(f"Redis {action} failed") from e


class RedisStore(RecordStore):
    """Records stored as JSON strings; native expiry via SET EX."""

    def __init__(self, client: Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: Optional[float] = None) -> "RedisStore":
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    def put(self, key: str, record: PasteRecord, ttl_seconds: Optional[int] = None) -> None:
        with _redis_errors("put"):
            self.redis.set(key, record.to_json(), ex=ttl_seconds)

    def get(self, key: str) -> Optional[PasteRecord]:
        with _redis_errors("get"):
            raw = self.redis.get(key)
        return _decode(key, raw)

    def delete(self, key: str) -> None:
        with _redis_errors("delete"):
            self.redis.delete(key)

    def replace(self, key: str, expected: PasteRecord, record: PasteRecord) -> bool:
        with _redis_errors("replace"):
            with self.redis.pipeline() as pipe:
                try:
                    pipe.watch(key)
                    current = _decode(key, pipe.get(key))
                    if current is None or current != expected:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.set(key, record.to_json(), keepttl=True)
                    pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Concurrent update on {key}, replace rejected")
                    return False

    def ping(self) -> None:
        with _redis_errors("ping"):
            self.redis.ping()

    def close(self) -> None:
        self.redis.close()


def open_store(settings: Settings) -> RecordStore:
    """
    Connect to Redis, falling back to the in-memory store if allowed.

    Args:
        settings: Application settings

    Returns:
        A ready RecordStore

    Raises:
        StoreUnavailable: If Redis is unreachable and fallback is disabled
    """
    logger.info(f"Attempting to connect to Redis: {settings.REDIS_URL[:30]}...")
    try:
        store = RedisStore.from_url(settings.REDIS_URL, settings.REDIS_TIMEOUT_SECONDS)
    except ValueError as e:
        logger.error(f"Invalid REDIS_URL: {str(e)}")
        return _fallback(settings, e)

    try:
        store.ping()
    except StoreUnavailable as e:
        store.close()
        return _fallback(settings, e)

    logger.info("Redis connected successfully")
    return store


def _fallback(settings: Settings, cause: Exception) -> RecordStore:
    if not settings.ALLOW_MEMORY_FALLBACK:
        raise StoreUnavailable("Redis unreachable and in-memory fallback disabled") from cause
    logger.warning("Using in-memory fallback for development. Data will NOT persist across restarts.")
    return InMemoryStore()
