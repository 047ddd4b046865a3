"""
busregistry - Subscription registry for a publish/subscribe message bus.

Records which subscriber endpoints want which message types from this
node, and answers on every publish who should receive a message type.

Components:
- SQLiteSubscriptionStore: persistent store, reuses the host's connection
- SubscriptionCache: read-through snapshot with TTL and write invalidation
- SubscriptionRegistry: lookup/subscribe/unsubscribe/expiry operations
"""
from busregistry.config import RegistryConfig
from busregistry.core.models import Subscription, SubscriptionKey, utc_now
from busregistry.errors import ConfigurationError, RegistryError
from busregistry.storage.context import ConnectionContext
from busregistry.storage.engine import SubscriptionStore
from busregistry.storage.sqlite import SQLiteSubscriptionStore
from busregistry.runtime.cache import CacheStats, SubscriptionCache
from busregistry.interface.registry import SubscriptionRegistry
from busregistry.interface.async_registry import AsyncSubscriptionRegistry

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "RegistryConfig",
    # Models
    "Subscription",
    "SubscriptionKey",
    "utc_now",
    # Errors
    "RegistryError",
    "ConfigurationError",
    # Storage
    "ConnectionContext",
    "SubscriptionStore",
    "SQLiteSubscriptionStore",
    # Runtime
    "SubscriptionCache",
    "CacheStats",
    # Registry
    "SubscriptionRegistry",
    "AsyncSubscriptionRegistry",
]
