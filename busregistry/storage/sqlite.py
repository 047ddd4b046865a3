"""
SQLite subscription store for busregistry.

Schema Design:
    One table (name configurable, default message_bus_subscriptions):
    - publisher_endpoint, subscriber_endpoint, message_type: natural key
    - created_date: first subscribe time
    - expiration_date: NULL means the subscription never expires

    Timestamps are stored as fixed-width UTC ISO-8601 strings, so
    expiry checks are plain string comparisons in SQL.

Connections:
    A connection supplied through a ConnectionContext is reused when it
    is open and targets the configured database; the store then neither
    commits nor closes it. Otherwise each call opens its own connection,
    commits on success, rolls back on error and always closes it.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, TypeVar

from busregistry.config import RegistryConfig
from busregistry.core.models import Subscription, format_timestamp, parse_timestamp
from busregistry.storage.context import ConnectionContext, same_database
from busregistry.storage.engine import SubscriptionStore, TargetMap


logger = logging.getLogger(__name__)

R = TypeVar("R")

_CREATE_TABLE = """
    CREATE TABLE IF NOT EXISTS "{table}" (
        publisher_endpoint TEXT NOT NULL,
        subscriber_endpoint TEXT NOT NULL,
        message_type TEXT NOT NULL,
        created_date TEXT NOT NULL,
        expiration_date TEXT,
        PRIMARY KEY (publisher_endpoint, subscriber_endpoint, message_type)
    )
"""

_SELECT_TARGETS = """
    SELECT subscriber_endpoint, message_type FROM "{table}"
    WHERE publisher_endpoint = ?
      AND (expiration_date IS NULL OR expiration_date >= ?)
"""

_UPDATE_EXPIRATION = """
    UPDATE "{table}" SET expiration_date = ?
    WHERE publisher_endpoint = ? AND subscriber_endpoint = ? AND message_type = ?
"""

_INSERT = """
    INSERT INTO "{table}" (
        publisher_endpoint, subscriber_endpoint, message_type,
        created_date, expiration_date
    ) VALUES (?, ?, ?, ?, ?)
"""

_DELETE = """
    DELETE FROM "{table}"
    WHERE publisher_endpoint = ? AND subscriber_endpoint = ? AND message_type = ?
"""

_DELETE_EXPIRED = """
    DELETE FROM "{table}"
    WHERE publisher_endpoint = ? AND subscriber_endpoint = ? AND message_type = ?
      AND expiration_date IS NOT NULL AND expiration_date <= ?
"""

_SELECT_ONE = """
    SELECT * FROM "{table}"
    WHERE publisher_endpoint = ? AND subscriber_endpoint = ? AND message_type = ?
"""

_COUNT = """
    SELECT COUNT(*) FROM "{table}"
    WHERE publisher_endpoint = ? AND subscriber_endpoint = ? AND message_type = ?
"""


class SQLiteSubscriptionStore(SubscriptionStore):
    """
    SQLite-backed subscription store.

    Usage:
        ```python
        config = RegistryConfig(connection_string="./bus.db", endpoint="orders")
        store = SQLiteSubscriptionStore(config)
        store.create_table()

        store.upsert("orders", "billing", "OrderPlaced", None, utc_now())
        targets = store.load_targets("orders", utc_now())
        ```

    Thread Safety:
        Connections opened by the store live for one call, so concurrent
        callers never share one. Serialization of writes to the same key
        is left to SQLite.
    """

    def __init__(self, config: RegistryConfig):
        """
        Initialize the store.

        Args:
            config: Registry configuration (database target, table name, timeout)
        """
        self._config = config
        # table_name is validated by RegistryConfig before it reaches SQL
        table = config.table_name
        self._sql = {
            "create": _CREATE_TABLE.format(table=table),
            "targets": _SELECT_TARGETS.format(table=table),
            "update": _UPDATE_EXPIRATION.format(table=table),
            "insert": _INSERT.format(table=table),
            "delete": _DELETE.format(table=table),
            "delete_expired": _DELETE_EXPIRED.format(table=table),
            "select_one": _SELECT_ONE.format(table=table),
            "count": _COUNT.format(table=table),
        }

    @property
    def table_name(self) -> str:
        return self._config.table_name

    def _open_connection(self) -> sqlite3.Connection:
        """Open a fresh connection to the configured database."""
        conn = sqlite3.connect(
            self._config.connection_string,
            timeout=self._config.timeout,
            check_same_thread=False,
        )
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def can_reuse(self, context: Optional[ConnectionContext]) -> bool:
        """Whether the ambient connection targets this store's database."""
        return (
            context is not None
            and context.is_open
            and same_database(context.target, self._config.connection_string)
        )

    @contextmanager
    def connection(
        self,
        context: Optional[ConnectionContext] = None,
    ) -> Iterator[sqlite3.Connection]:
        """
        Context manager yielding a live connection.

        Reuses the ambient connection when possible; otherwise the
        yielded connection is scoped to the with-block.
        """
        if self.can_reuse(context):
            yield context.connection
            return

        conn = self._open_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def with_connection(
        self,
        action: Callable[[sqlite3.Connection], R],
        context: Optional[ConnectionContext] = None,
    ) -> R:
        """Run action against a live connection and return its result."""
        with self.connection(context) as conn:
            return action(conn)

    def create_table(self, context: Optional[ConnectionContext] = None) -> None:
        with self.connection(context) as conn:
            conn.execute(self._sql["create"])
        logger.debug(f"Subscription table ready: {self.table_name}")

    def load_targets(
        self,
        publisher_endpoint: str,
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> TargetMap:
        grouped: dict[str, set[str]] = defaultdict(set)

        with self.connection(context) as conn:
            cursor = conn.execute(
                self._sql["targets"],
                (publisher_endpoint, format_timestamp(now)),
            )
            for subscriber, message_type in cursor:
                grouped[message_type].add(subscriber)

        return {mtype: frozenset(subs) for mtype, subs in grouped.items()}

    def upsert(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        expires_at: Optional[datetime],
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> bool:
        expiration = format_timestamp(expires_at) if expires_at is not None else None

        with self.connection(context) as conn:
            cursor = conn.execute(
                self._sql["update"],
                (expiration, publisher_endpoint, subscriber_endpoint, message_type),
            )
            if cursor.rowcount > 0:
                return False

            conn.execute(
                self._sql["insert"],
                (
                    publisher_endpoint,
                    subscriber_endpoint,
                    message_type,
                    format_timestamp(now),
                    expiration,
                ),
            )
            return True

    def delete(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        with self.connection(context) as conn:
            cursor = conn.execute(
                self._sql["delete"],
                (publisher_endpoint, subscriber_endpoint, message_type),
            )
            return cursor.rowcount

    def delete_expired(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        now: datetime,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        with self.connection(context) as conn:
            cursor = conn.execute(
                self._sql["delete_expired"],
                (publisher_endpoint, subscriber_endpoint, message_type, format_timestamp(now)),
            )
            return cursor.rowcount

    def get(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> Optional[Subscription]:
        with self.connection(context) as conn:
            cursor = conn.cursor()
            cursor.row_factory = sqlite3.Row
            cursor.execute(
                self._sql["select_one"],
                (publisher_endpoint, subscriber_endpoint, message_type),
            )
            row = cursor.fetchone()

        if row is None:
            return None
        return self._deserialize_subscription(row)

    def count(
        self,
        publisher_endpoint: str,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> int:
        with self.connection(context) as conn:
            cursor = conn.execute(
                self._sql["count"],
                (publisher_endpoint, subscriber_endpoint, message_type),
            )
            return cursor.fetchone()[0]

    def _deserialize_subscription(self, row: sqlite3.Row) -> Subscription:
        """Build a Subscription from a table row."""
        return Subscription(
            publisher_endpoint=row["publisher_endpoint"],
            subscriber_endpoint=row["subscriber_endpoint"],
            message_type=row["message_type"],
            created_at=parse_timestamp(row["created_date"]),
            expires_at=parse_timestamp(row["expiration_date"]),
        )
