"""
Ambient connection handed in by the message-processing pipeline.

While the bus processes one inbound message it may already hold an open
database connection (and transaction). Passing it to the registry as a
ConnectionContext lets subscription writes commit or roll back together
with the business operation that triggered them.

The registry decides whether to reuse the connection by comparing
database targets, never by object identity.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional


MEMORY_TARGET = ":memory:"


def normalize_target(connection_string: str) -> Optional[str]:
    """
    Reduce a SQLite connection string to a comparable database identity.

    Returns None for in-memory databases: every in-memory connection is
    its own database, so it never matches another target.
    """
    target = connection_string.strip()
    if target.startswith("file:"):
        target = target[len("file:"):].split("?", 1)[0]
    if not target or target == MEMORY_TARGET:
        return None
    return str(Path(target).expanduser().resolve())


def same_database(a: Optional[str], b: Optional[str]) -> bool:
    """True if both connection strings point at the same database."""
    if a is None or b is None:
        return False
    left, right = normalize_target(a), normalize_target(b)
    return left is not None and left == right


class ConnectionContext:
    """
    A live connection plus the target it was opened against.

    Usage:
        ```python
        with ConnectionContext.open("./bus.db") as ctx:
            handle_order(ctx.connection)
            registry.subscribe("billing", "OrderPlaced", context=ctx)
        # both writes commit here, or both roll back on error
        ```

    The registry only borrows the connection; closing it, committing and
    rolling back stay with whoever created the context.
    """

    def __init__(self, connection: sqlite3.Connection, target: str):
        self._connection = connection
        self._target = target

    @classmethod
    def open(cls, target: str, timeout: float = 30.0) -> "ConnectionContext":
        """Open a new connection and wrap it."""
        conn = sqlite3.connect(target, timeout=timeout, check_same_thread=False)
        return cls(conn, target)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    @property
    def target(self) -> str:
        return self._target

    @property
    def is_open(self) -> bool:
        try:
            self._connection.total_changes
        except sqlite3.ProgrammingError:
            return False
        return True

    def commit(self) -> None:
        self._connection.commit()

    def rollback(self) -> None:
        self._connection.rollback()

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "ConnectionContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()
