"""
Storage abstraction for subscriptions.

The store knows how to persist and query subscription rows. It does not
cache and it does not decide when a subscribe should be ignored; that is
the registry's job.

Every method accepts an optional ConnectionContext. When the context is
open and targets the store's own database, the store runs on that
connection and leaves transaction control to its owner.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from busregistry.core.models import Subscription
from busregistry.storage.context import ConnectionContext


# message_type -> subscriber endpoints
TargetMap = dict[str, frozenset[str]]


class SubscriptionStore(ABC):
    """
    Abstract base class for subscription stores.

    Implementations:
        - SQLiteSubscriptionStore: relational store over sqlite3
    """

    @abstractmethod
    def create_table(self, context: Optional[ConnectionContext] = None) -> None:
        """Create the subscription table. Must be safe to run repeatedly."""
        pass

    @abstractmethod
    def load_targets(
        self,
        publisher_endpoint: str,
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> TargetMap:
        """
        Load every non-expired subscription of a publisher in one read.

        Args:
            publisher_endpoint: Publisher whose subscriptions to load
            now: Rows expiring before this instant are skipped
            context: Optional ambient connection

        Returns:
            Mapping of message type to subscriber endpoints
        """
        pass

    @abstractmethod
    def upsert(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        expires_at: Optional[datetime],
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> bool:
        """
        Update the expiration of an existing row, or insert a new one.

        Returns:
            True if a new row was inserted
        """
        pass

    @abstractmethod
    def delete(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        """Delete the row for a natural key. Returns rows deleted."""
        pass

    @abstractmethod
    def delete_expired(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        """Delete the row for a natural key only if it has expired."""
        pass

    @abstractmethod
    def get(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> Optional[Subscription]:
        """Get a subscription row by natural key."""
        pass

    @abstractmethod
    def count(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        """Count rows for a natural key (0 or 1 on a healthy table)."""
        pass
