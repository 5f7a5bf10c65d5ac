"""SQLite connection layer for the local chat + file store."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from notechat.errors import StorageIOError, StorageUnavailable

logger = logging.getLogger(__name__)


class Database:
    """Per-user SQLite database holding the ``chats`` and ``files`` tables."""

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() to open the connection.

        Args:
            db_path: Path to the SQLite database file (created if missing),
                or ``":memory:"``.
        """
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    @property
    def in_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    def connect(self) -> sqlite3.Connection:
        """Open a connection and return it.

        Raises:
            StorageUnavailable: If the file (or its directory) cannot be opened.
        """
        try:
            if not self.in_memory:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            if not self.in_memory:
                conn.execute("PRAGMA journal_mode = WAL")
        except (sqlite3.Error, OSError) as exc:
            raise StorageUnavailable(f"Cannot open database '{self.db_path}': {exc}") from exc
        logger.debug("Opened database %s", self.db_path)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        """Open the database and return the connection (context manager support)."""
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        """Close the connection when leaving the context manager."""
        if self._conn:
            self._conn.close()
            self._conn = None


@contextmanager
def transaction(conn: sqlite3.Connection, action: str) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements as one transaction.

    Commits on success. On any sqlite error the transaction is rolled back,
    so nothing half-written stays visible, and ``StorageIOError`` is raised.

    Args:
        conn: Open connection.
        action: Short description used in the error message ("put blob").
    """
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        try:
            conn.rollback()
        except sqlite3.Error:
            logger.exception("Rollback failed after %s", action)
        raise StorageIOError(f"Storage failure during {action}: {exc}") from exc
