"""
Storage layer for busregistry.

Provides the subscription store abstraction, the SQLite backend and
the ambient connection context used for transactional enlistment.
"""

from busregistry.storage.context import ConnectionContext, normalize_target, same_database
from busregistry.storage.engine import SubscriptionStore, TargetMap
from busregistry.storage.sqlite import SQLiteSubscriptionStore

__all__ = [
    "ConnectionContext",
    "normalize_target",
    "same_database",
    "SubscriptionStore",
    "TargetMap",
    "SQLiteSubscriptionStore",
]
