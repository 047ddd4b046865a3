"""
Pytest configuration and shared fixtures for busregistry tests.

This module provides temporary SQLite databases, registry instances and
controllable clocks for cache TTL and expiration tests.
"""

import pytest
from datetime import datetime, timedelta, timezone

from busregistry.config import RegistryConfig
from busregistry.interface.registry import SubscriptionRegistry
from busregistry.runtime.cache import SubscriptionCache
from busregistry.storage.sqlite import SQLiteSubscriptionStore


PUBLISHER = "sql://orders"


# =============================================================================
# Clocks
# =============================================================================

class FakeMonotonic:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeWallClock:
    """UTC wall clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.value = start

    def __call__(self) -> datetime:
        return self.value

    def advance(self, delta: timedelta) -> None:
        self.value += delta


@pytest.fixture
def monotonic():
    """Controllable monotonic clock for the cache."""
    return FakeMonotonic()


@pytest.fixture
def wall_clock():
    """Controllable wall clock for expiration checks."""
    return FakeWallClock(datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def db_path(tmp_path):
    """Path of a fresh SQLite database file."""
    return str(tmp_path / "bus.db")


@pytest.fixture
def config(db_path):
    """Registry configuration pointing at the temporary database."""
    return RegistryConfig(connection_string=db_path, endpoint=PUBLISHER)


@pytest.fixture
def store(config):
    """SQLite store with the subscription table created."""
    store = SQLiteSubscriptionStore(config)
    store.create_table()
    return store


# =============================================================================
# Registry Fixtures
# =============================================================================

@pytest.fixture
def registry(config):
    """Initialized registry using real clocks."""
    registry = SubscriptionRegistry(config)
    registry.initialize()
    return registry


@pytest.fixture
def clocked_registry(config, monotonic, wall_clock):
    """Initialized registry whose cache and wall clocks are controllable."""
    cache = SubscriptionCache(config.cache_ttl, clock=monotonic)
    registry = SubscriptionRegistry(config, cache=cache, now=wall_clock)
    registry.initialize()
    return registry
