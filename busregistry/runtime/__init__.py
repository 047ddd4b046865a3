"""
Runtime layer for busregistry.

Provides execution-time features:
- Read-through subscription cache with TTL and write invalidation
"""

from busregistry.runtime.cache import CacheSnapshot, CacheState, CacheStats, SubscriptionCache

__all__ = [
    "CacheSnapshot",
    "CacheState",
    "CacheStats",
    "SubscriptionCache",
]
