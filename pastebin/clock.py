"""
Clock sources. All instants are epoch milliseconds (UTC).
"""
import time
from datetime import datetime, timezone


class SystemClock:
    """Wall-clock time."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class FixedClock:
    """Deterministic clock for tests; only moves when told to."""

    def __init__(self, now_ms: int = 0):
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms

    def advance(self, ms: int) -> None:
        self._now_ms += ms


def ms_to_iso(ms: int) -> str:
    """Render epoch milliseconds as ISO-8601 UTC, e.g. 2026-01-01T00:00:00.000Z."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
