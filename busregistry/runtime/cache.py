"""
Read-through subscription cache for busregistry.

The cache holds one snapshot: every live subscription of the registry's
publisher, grouped by message type. A snapshot is built from a single
store read and is never modified afterwards.

State:
    EMPTY      no snapshot; the next lookup loads one
    POPULATED  snapshot present and younger than the TTL

Invalidation:
    - Explicit: any subscribe/unsubscribe/expiry sweep drops the snapshot
    - Time-based: the snapshot's age is checked lazily on the next lookup

Concurrency:
    Publishing or dropping a snapshot is a single reference assignment,
    so readers never see a half-built one. Concurrent misses may each
    load a snapshot; the last one to finish wins. A load that overlaps
    an invalidation answers its own caller but is not published.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from enum import Enum
from threading import Lock
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from pydantic import BaseModel, Field

from busregistry.errors import ConfigurationError


logger = logging.getLogger(__name__)

_EMPTY: frozenset[str] = frozenset()


class CacheState(str, Enum):
    """Observable state of the subscription cache."""

    EMPTY = "empty"
    POPULATED = "populated"


class CacheStats(BaseModel):
    """Statistics for the cache."""

    hits: int = Field(default=0, description="Lookups answered from a fresh snapshot")
    misses: int = Field(default=0, description="Lookups that required a load")
    loads: int = Field(default=0, description="Snapshots successfully loaded")
    invalidations: int = Field(default=0, description="Snapshots dropped by writes")
    expirations: int = Field(default=0, description="Snapshots dropped for age")

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class CacheSnapshot:
    """Immutable message type -> subscriber endpoints mapping."""

    __slots__ = ("_targets", "_loaded_at")

    def __init__(self, targets: Mapping[str, frozenset[str]], loaded_at: float):
        self._targets = MappingProxyType(
            {mtype: frozenset(subs) for mtype, subs in targets.items()}
        )
        self._loaded_at = loaded_at

    @property
    def loaded_at(self) -> float:
        return self._loaded_at

    @property
    def message_types(self) -> frozenset[str]:
        return frozenset(self._targets)

    def targets(self, message_type: str) -> frozenset[str]:
        """Subscribers of a message type; empty if there are none."""
        return self._targets.get(message_type, _EMPTY)

    def age(self, now: float) -> float:
        return now - self._loaded_at

    def __len__(self) -> int:
        return len(self._targets)


class SubscriptionCache:
    """
    A single-snapshot cache with TTL and explicit invalidation.

    Usage:
        ```python
        cache = SubscriptionCache(ttl=timedelta(minutes=60))

        snapshot = cache.get_or_load(
            lambda: store.load_targets("orders", utc_now())
        )
        snapshot.targets("OrderPlaced")

        # After a write, drop the snapshot; the next lookup reloads
        cache.invalidate()
        ```
    """

    def __init__(
        self,
        ttl: timedelta,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl: Maximum snapshot age
            clock: Monotonic clock in seconds
        """
        if ttl <= timedelta(0):
            raise ConfigurationError(f"Cache TTL must be positive, got {ttl}")

        self._ttl = ttl.total_seconds()
        self._clock = clock
        self._snapshot: Optional[CacheSnapshot] = None
        # Bumped by every invalidation; a load started before a write must not be published
        self._generation = 0
        self._swap_lock = Lock()

        self._stats_lock = Lock()
        self._stats = CacheStats()

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self._ttl)

    @property
    def state(self) -> CacheState:
        return CacheState.POPULATED if self.get_fresh() is not None else CacheState.EMPTY

    @property
    def stats(self) -> CacheStats:
        """Get cache statistics."""
        with self._stats_lock:
            return self._stats.model_copy()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self._stats, name, getattr(self._stats, name) + 1)

    def get_fresh(self) -> Optional[CacheSnapshot]:
        """
        Return the current snapshot if it is within the TTL.

        A stale snapshot is dropped here, so the caller sees EMPTY.
        """
        snapshot = self._snapshot
        if snapshot is None:
            return None

        if snapshot.age(self._clock()) > self._ttl:
            # Only drop the snapshot we examined; a newer one may be in place
            with self._swap_lock:
                dropped = self._snapshot is snapshot
                if dropped:
                    self._snapshot = None
            if dropped:
                self._count("expirations")
            return None

        return snapshot

    def get_or_load(
        self,
        loader: Callable[[], Mapping[str, frozenset[str]]],
    ) -> CacheSnapshot:
        """
        Get the fresh snapshot, loading a new one on a miss.

        If loader raises, the cache stays EMPTY and the error propagates.

        Args:
            loader: Function performing one store read

        Returns:
            The snapshot that answers this lookup
        """
        snapshot = self.get_fresh()
        if snapshot is not None:
            self._count("hits")
            return snapshot

        self._count("misses")
        generation = self._generation
        started = self._clock()
        snapshot = CacheSnapshot(loader(), loaded_at=started)

        with self._swap_lock:
            if generation == self._generation:
                self._snapshot = snapshot
        self._count("loads")
        logger.debug(f"Subscription cache loaded: {len(snapshot)} message types")
        return snapshot

    def invalidate(self) -> None:
        """Drop the snapshot so the next lookup reloads."""
        with self._swap_lock:
            self._generation += 1
            self._snapshot = None
        self._count("invalidations")
