"""
Subscription registry for a publish/subscribe message bus.

The registry answers "who should receive this message type?" on every
publish, and records subscribe/unsubscribe requests for its own
publisher endpoint.

Usage:
    ```python
    from busregistry import RegistryConfig, SubscriptionRegistry

    registry = SubscriptionRegistry(RegistryConfig(
        connection_string="./bus.db",
        endpoint="sql://orders",
    ))

    registry.subscribe("sql://billing", "OrderPlaced")
    registry.subscribe("sql://audit", "OrderPlaced", expires_at=utc_now() + timedelta(hours=1))

    registry.get_target_endpoints("OrderPlaced")
    # frozenset({"sql://billing", "sql://audit"})
    ```

Lookups go through the cache; writes go to the store and then drop the
cached snapshot, so the next lookup always reflects the write.
"""

from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Callable, Optional

from busregistry.config import RegistryConfig
from busregistry.core.models import to_utc, utc_now
from busregistry.runtime.cache import CacheStats, SubscriptionCache
from busregistry.storage.context import ConnectionContext
from busregistry.storage.engine import SubscriptionStore
from busregistry.storage.sqlite import SQLiteSubscriptionStore


logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """
    Persistent subscription registry with a read-through cache.

    Every operation accepts an optional ConnectionContext: the connection
    the host is using to process the current inbound message. When it
    points at the registry's database, writes join the host's transaction.

    Thread Safety:
        Operations may run concurrently. Only the one-time table
        bootstrap is serialized; cache refills are not, and concurrent
        misses may each read the store.
    """

    def __init__(
        self,
        config: RegistryConfig,
        store: Optional[SubscriptionStore] = None,
        cache: Optional[SubscriptionCache] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the registry.

        Args:
            config: Registry configuration
            store: Subscription store (default: SQLite store for config)
            cache: Subscription cache (default: TTL from config)
            now: Wall clock used for expiration checks
        """
        self._config = config
        self._store = store or SQLiteSubscriptionStore(config)
        self._cache = cache or SubscriptionCache(config.cache_ttl)
        self._now = now

        self._init_lock = Lock()
        self._initialized = False

    @property
    def endpoint(self) -> str:
        """Publisher endpoint this registry manages."""
        return self._config.endpoint

    @property
    def config(self) -> RegistryConfig:
        return self._config

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def cache_stats(self) -> CacheStats:
        return self._cache.stats

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self, context: Optional[ConnectionContext] = None) -> None:
        """
        Run the one-time table bootstrap if it has not run yet.

        Bootstrap failures are logged and not raised. The registry is
        marked initialized either way, so bootstrap is never retried;
        later operations then fail against the missing table.
        """
        if self._initialized:
            return

        with self._init_lock:
            if self._initialized:
                return
            try:
                if self._config.auto_create_table:
                    self._store.create_table(context)
            except Exception:
                logger.exception(
                    f"Error initializing subscription table {self._config.table_name}"
                )
            self._initialized = True

    def invalidate_cache(self) -> None:
        """Force the next lookup to read the store."""
        self._cache.invalidate()

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_target_endpoints(
        self,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> frozenset[str]:
        """
        Get the endpoints subscribed to a message type.

        Args:
            message_type: Type of the message being published
            context: Optional ambient connection

        Returns:
            Subscriber endpoints (empty if there are none)

        Raises:
            sqlite3.Error: If the snapshot had to be reloaded and the read failed
        """
        self.initialize(context)
        snapshot = self._cache.get_or_load(
            lambda: self._store.load_targets(self.endpoint, self._now(), context)
        )
        return snapshot.targets(message_type)

    # =========================================================================
    # Mutations
    # =========================================================================

    def subscribe(
        self,
        subscriber_endpoint: str,
        message_type: str,
        expires_at: Optional[datetime] = None,
        context: Optional[ConnectionContext] = None,
    ) -> None:
        """
        Subscribe an endpoint to a message type.

        Subscribing again with the same endpoint and type only updates the
        expiration. A subscription that would already be expired is ignored.

        Args:
            subscriber_endpoint: Endpoint that wants the messages
            message_type: Message type to receive
            expires_at: When the subscription lapses (None = never)
            context: Optional ambient connection
        """
        self.initialize(context)

        now = self._now()
        if expires_at is not None and to_utc(expires_at) < to_utc(now):
            logger.debug(
                f"Ignoring expired subscription: {subscriber_endpoint} {message_type}"
            )
            return

        inserted = self._store.upsert(
            self.endpoint,
            subscriber_endpoint,
            message_type,
            expires_at,
            now,
            context,
        )
        self._cache.invalidate()
        logger.debug(
            f"{'Added' if inserted else 'Renewed'} subscription: "
            f"{subscriber_endpoint} {message_type}"
        )

    def unsubscribe(
        self,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> None:
        """Remove a subscription. Removing a missing one is not an error."""
        self.initialize(context)
        self._store.delete(self.endpoint, subscriber_endpoint, message_type, context)
        self._cache.invalidate()

    def handle_subscription_expiration_if_necessary(
        self,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> bool:
        """
        Delete a subscription if it has expired.

        Meant to be called before delivering to a specific subscriber,
        instead of sweeping expired rows on a schedule.

        Returns:
            True if an expired subscription was removed
        """
        self.initialize(context)
        deleted = self._store.delete_expired(
            self.endpoint,
            subscriber_endpoint,
            message_type,
            self._now(),
            context,
        )
        if deleted == 0:
            return False

        logger.warning(f"Subscription expired: {subscriber_endpoint} {message_type}")
        self._cache.invalidate()
        return True
