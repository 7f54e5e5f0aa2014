"""
Test configuration and fixtures for the link cloaker.

Every test gets a fresh container: an in-memory SQLite database (or the
dict store), a cache driven by a fake clock, an in-memory queue and a
seeded random generator, so picks and cache expiry are reproducible.
"""

import random

import pytest
from fastapi.testclient import TestClient

from cloaker_app.cache.strategies import InMemoryCache
from cloaker_app.config import Settings
from cloaker_app.dependencies import ServiceContainer
from cloaker_app.queue.strategies import InMemoryQueue
from cloaker_app.storage.factory import StoreBackend, StoreFactory
from main import create_app


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite://",
        store_backend="sqlalchemy",
        cache_backend="memory",
        queue_backend="memory",
        cache_ttl=0,
        click_batch_threshold=10,
        # The worker must not flush on its own while a test is running
        click_flush_interval=3600,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["sqlalchemy", "memory"])
def store(request, settings):
    """Both store backends run the same tests."""
    return StoreFactory.create(StoreBackend(request.param), settings)


@pytest.fixture
def container(settings, store, clock):
    return ServiceContainer(
        settings,
        store=store,
        cache_backend=InMemoryCache(clock=clock),
        queue=InMemoryQueue(),
        clock=clock,
        rng=random.Random(1234),
    )


@pytest.fixture
def client(container):
    """
    Test client running the app's lifespan around the test, so the click
    worker is up and the container is drained on exit.
    """
    with TestClient(create_app(container=container)) as test_client:
        yield test_client
