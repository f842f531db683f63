"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from catalog import get_registry  # noqa: E402
from dispatch import Dispatcher, PayloadBuilder  # noqa: E402
from inference import StubInferenceBackend  # noqa: E402
from ratelimit import RateLimiter, SQLiteCounterStore  # noqa: E402


class FakeClock:
    """Settable UTC clock for rate limit tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime):
        self.now = now


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def stub_backend():
    return StubInferenceBackend()


@pytest.fixture
def sqlite_store():
    store = SQLiteCounterStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def limiter(sqlite_store, clock):
    return RateLimiter(durable_store=sqlite_store, clock=clock)


@pytest.fixture
def builder():
    # Fixed seed source keeps payloads reproducible
    return PayloadBuilder(get_registry(), rng=lambda: 42)


@pytest.fixture
def dispatcher(stub_backend, limiter, builder):
    return Dispatcher(backend=stub_backend, limiter=limiter, builder=builder)


@pytest.fixture
def client(dispatcher):
    """TestClient with the dispatcher dependency overridden. Lifespan is not run."""
    from fastapi.testclient import TestClient

    from api.dependencies import get_dispatcher
    from main import app

    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()
