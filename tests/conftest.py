import pytest
from fastapi.testclient import TestClient

from pastebin.clock import FixedClock
from pastebin.config import Settings
from pastebin.database import InMemoryStore
from pastebin.main import create_app
from pastebin.service import PasteService

CLOCK_START = 1_700_000_000_000


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(CLOCK_START)


@pytest.fixture
def store(clock: FixedClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def service(store: InMemoryStore, clock: FixedClock) -> PasteService:
    return PasteService(store, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(TEST_MODE=True, APP_DOMAIN="http://paste.test")


@pytest.fixture
def client(settings: Settings, store: InMemoryStore, clock: FixedClock) -> TestClient:
    return TestClient(create_app(settings, store=store, clock=clock))
