"""Database schema initialization."""

from __future__ import annotations

import sqlite3

from notechat.errors import StorageUnavailable

CURRENT_VERSION = 2


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent).

    Raises:
        StorageUnavailable: If the schema cannot be created or upgraded.
    """
    from notechat.db.migrations import run_migrations

    try:
        run_migrations(conn)
    except sqlite3.Error as exc:
        raise StorageUnavailable(f"Cannot initialise database schema: {exc}") from exc
