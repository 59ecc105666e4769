import json

import pytest

from pastebin.clock import FixedClock, ms_to_iso
from pastebin.database import InMemoryStore, paste_key
from pastebin.errors import (
    InvalidContent,
    InvalidMaxViews,
    InvalidTTL,
    NotFound,
    NotFoundReason,
    StoreUnavailable,
)
from pastebin import service as service_module
from pastebin.service import PasteService


class UndeletableStore(InMemoryStore):
    def delete(self, key: str) -> None:
        raise StoreUnavailable("delete refused")


class RacingStore(InMemoryStore):
    """Lets another consumer take a view right before our first write."""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.replace_calls = 0

    def replace(self, key, expected, record):
        self.replace_calls += 1
        if self.replace_calls == 1:
            self.put(key, expected.with_view())
        return super().replace(key, expected, record)


class DeadStore(InMemoryStore):
    def ping(self) -> None:
        raise StoreUnavailable("no route to host")


def test_create_then_peek_returns_exact_content(service: PasteService) -> None:
    content = "  line one\n\tline two <b>&</b>  \n"
    record = service.create(content)

    view = service.peek(record.id)

    assert view.content == content
    assert view.remaining_views is None
    assert view.expires_at is None


def test_create_persists_record_layout(service: PasteService, store: InMemoryStore, clock: FixedClock) -> None:
    now = clock.now_ms()
    record = service.create("hello", ttl_seconds=60, max_views=3)

    assert len(record.id) == 10
    raw = json.loads(store.store[paste_key(record.id)])
    assert raw == {
        "id": record.id,
        "content": "hello",
        "created_at": now,
        "expires_at": now + 60_000,
        "max_views": 3,
        "views": 0,
    }
    assert store.ttl_timestamps[paste_key(record.id)] == now + 60_000


def test_create_without_ttl_sets_no_native_expiry(service: PasteService, store: InMemoryStore) -> None:
    record = service.create("hello", max_views=3)

    assert paste_key(record.id) in store.store
    assert paste_key(record.id) not in store.ttl_timestamps


def test_create_uses_injected_id_generator(store: InMemoryStore, clock: FixedClock) -> None:
    service = PasteService(store, clock=clock, id_generator=lambda: "fixed-id-01")

    record = service.create("hello")

    assert record.id == "fixed-id-01"
    assert store.get("paste:fixed-id-01") is not None


@pytest.mark.parametrize("content", ["", "   ", "\n\t ", None, 42])
def test_create_rejects_bad_content(service: PasteService, store: InMemoryStore, content) -> None:
    with pytest.raises(InvalidContent):
        service.create(content)
    assert store.store == {}


@pytest.mark.parametrize("ttl_seconds", [0, -1, 1.5, True, "5"])
def test_create_rejects_bad_ttl(service: PasteService, store: InMemoryStore, ttl_seconds) -> None:
    with pytest.raises(InvalidTTL):
        service.create("hello", ttl_seconds=ttl_seconds)
    assert store.store == {}


@pytest.mark.parametrize("max_views", [0, -3, 2.5, True])
def test_create_rejects_bad_max_views(service: PasteService, store: InMemoryStore, max_views) -> None:
    with pytest.raises(InvalidMaxViews):
        service.create("hello", max_views=max_views)
    assert store.store == {}


def test_single_view_paste_burns_after_reading(service: PasteService, store: InMemoryStore) -> None:
    record = service.create("hello", max_views=1)

    view = service.consume(record.id)

    assert view.content == "hello"
    assert view.remaining_views == 0
    assert store.get(paste_key(record.id)) is None
    with pytest.raises(NotFound):
        service.consume(record.id)


def test_exactly_max_views_consumes_succeed(service: PasteService) -> None:
    record = service.create("hello", max_views=4)

    remaining = [service.consume(record.id).remaining_views for _ in range(4)]

    assert remaining == [3, 2, 1, 0]
    with pytest.raises(NotFound):
        service.consume(record.id)


def test_ttl_boundary_with_time_override(service: PasteService, store: InMemoryStore, clock: FixedClock) -> None:
    t0 = clock.now_ms()
    record = service.create("hi", ttl_seconds=1, now_ms=t0)

    assert service.peek(record.id, now_ms=t0 + 500).content == "hi"
    assert service.consume(record.id, now_ms=t0 + 999).content == "hi"

    with pytest.raises(NotFound) as excinfo:
        service.peek(record.id, now_ms=t0 + 1000)

    assert excinfo.value.reason is NotFoundReason.EXPIRED
    assert store.store == {}


def test_ttl_expiry_with_clock(service: PasteService, clock: FixedClock) -> None:
    record = service.create("hi", ttl_seconds=2)

    clock.advance(1999)
    assert service.consume(record.id).content == "hi"

    clock.advance(1)
    with pytest.raises(NotFound):
        service.consume(record.id)


def test_peek_reports_expiry_as_iso(service: PasteService, clock: FixedClock) -> None:
    record = service.create("hi", ttl_seconds=60)

    view = service.peek(record.id)

    assert view.expires_at == ms_to_iso(clock.now_ms() + 60_000)
    assert view.expires_at == "2023-11-14T22:14:20.000Z"


def test_peek_never_consumes(service: PasteService) -> None:
    record = service.create("hello", max_views=2)

    for _ in range(5):
        assert service.peek(record.id).remaining_views == 2

    assert service.consume(record.id).remaining_views == 1
    assert service.peek(record.id).remaining_views == 1


def test_peek_deletes_exhausted_record(service: PasteService, store: InMemoryStore) -> None:
    record = service.create("hello", max_views=1)
    key = paste_key(record.id)
    store.put(key, record.with_view())

    with pytest.raises(NotFound) as excinfo:
        service.peek(record.id)

    assert excinfo.value.reason is NotFoundReason.VIEW_LIMIT
    assert store.get(key) is None


def test_missing_paste_is_not_found(service: PasteService) -> None:
    with pytest.raises(NotFound) as excinfo:
        service.peek("doesnotexist")
    assert excinfo.value.reason is NotFoundReason.MISSING


def test_deleted_paste_stays_gone(service: PasteService) -> None:
    record = service.create("hello", max_views=1)
    service.consume(record.id)

    for _ in range(3):
        with pytest.raises(NotFound):
            service.peek(record.id)
        with pytest.raises(NotFound):
            service.consume(record.id)


def test_failed_cleanup_still_reports_not_found(clock: FixedClock) -> None:
    store = UndeletableStore(clock=clock)
    service = PasteService(store, clock=clock)
    t0 = clock.now_ms()
    record = service.create("hi", ttl_seconds=1)

    with pytest.raises(NotFound):
        service.consume(record.id, now_ms=t0 + 5000)


def test_last_view_survives_failed_cleanup(clock: FixedClock) -> None:
    store = UndeletableStore(clock=clock)
    service = PasteService(store, clock=clock)
    record = service.create("hello", max_views=1)

    assert service.consume(record.id).content == "hello"
    with pytest.raises(NotFound):
        service.consume(record.id)


def test_consume_retries_after_conflict(clock: FixedClock) -> None:
    store = RacingStore(clock)
    service = PasteService(store, clock=clock)
    record = service.create("hello", max_views=2)

    view = service.consume(record.id)

    assert store.replace_calls == 2
    assert view.remaining_views == 0
    with pytest.raises(NotFound):
        service.consume(record.id)


def test_consume_outlasts_long_conflict_streaks(store: InMemoryStore, clock: FixedClock, monkeypatch) -> None:
    service = PasteService(store, clock=clock)
    record = service.create("hello", max_views=5)
    real_replace = store.replace
    sleeps = []
    calls = []

    def conflict_forty_times(key, expected, updated):
        calls.append(key)
        if len(calls) <= 40:
            return False
        return real_replace(key, expected, updated)

    monkeypatch.setattr(store, "replace", conflict_forty_times)
    monkeypatch.setattr(service_module.time, "sleep", sleeps.append)

    view = service.consume(record.id)

    assert view.remaining_views == 4
    assert len(calls) == 41
    assert len(sleeps) == 40
    assert all(0 <= s <= service_module.MAX_BACKOFF_SECONDS for s in sleeps)


def test_is_healthy(service: PasteService, clock: FixedClock) -> None:
    assert service.is_healthy() is True
    assert PasteService(DeadStore(clock=clock), clock=clock).is_healthy() is False
