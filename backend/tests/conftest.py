"""Shared test fixtures and configuration for backend tests."""
import itertools

import pytest
from fastapi.testclient import TestClient

from chatbridge.cache import CacheRegistry
from chatbridge.config import BridgeConfig
from chatbridge.connection.state import SessionStateStore
from chatbridge.contacts import ContactResolver
from chatbridge.main import create_app
from chatbridge.session import InMemorySession


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_ready_store(session: InMemorySession) -> SessionStateStore:
    """A state store that already owns *session* in the ready state."""
    store = SessionStateStore()
    store.begin(session)
    store.mark_ready()
    return store


def seed_messages(session: InMemorySession, chat_id: str, count: int, start: int = 1_700_000_001):
    """Append *count* messages with consecutive timestamps starting at *start*."""
    return [
        session.add_message(chat_id, f"message {i + 1}", timestamp=start + i)
        for i in range(count)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    """In-memory session driven by hand (no automatic QR / ready)."""
    return InMemorySession(auto_ready=False)


@pytest.fixture
def caches(clock):
    return CacheRegistry(clock=clock)


@pytest.fixture
def ready_store(session):
    return make_ready_store(session)


@pytest.fixture
def resolver(ready_store, caches):
    return ContactResolver(ready_store, caches, concurrency=5)


@pytest.fixture
def bridge_config():
    return BridgeConfig(session={"reconnect_delay_seconds": 0.05, "pairing_timeout_seconds": 1})


@pytest.fixture
def api_client(bridge_config, session):
    """TestClient around a fresh app whose session has not paired yet.

    Requests and ``client.portal.call`` share the app's event loop, so tests
    drive session events with ``api_client.portal.call(session.simulate_qr)``.
    """
    app = create_app(bridge_config, session_factory=lambda: session)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def ready_client(api_client, session):
    """TestClient whose session has gone through QR and ready."""
    api_client.portal.call(session.simulate_qr)
    api_client.portal.call(session.simulate_ready)
    return api_client


@pytest.fixture
def session_sequence():
    """Factory handing out a new InMemorySession on every call."""
    created = []
    counter = itertools.count(1)

    def factory():
        created.append(InMemorySession(auto_ready=False, qr_payload=f"qr-{next(counter)}"))
        return created[-1]

    factory.created = created
    return factory
