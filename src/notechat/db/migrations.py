"""Forward-only migration runner for the notechat schema."""

from __future__ import annotations

import sqlite3

# schema_version is the bootstrap table, created before migrations run.
_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# chats.payload is the full nested chat (notes + attachment metadata) as JSON.
# files.data is the raw attachment bytes, keyed by attachment id.
_V1_SQL = """
CREATE TABLE IF NOT EXISTS chats (
    id          TEXT PRIMARY KEY,
    position    INTEGER NOT NULL,
    payload     TEXT NOT NULL,
    updated_at  DATETIME NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS files (
    id          TEXT PRIMARY KEY,
    data        BLOB NOT NULL,
    stored_at   DATETIME NOT NULL DEFAULT (datetime('now'))
);
"""

_V2_SQL = """
CREATE INDEX IF NOT EXISTS idx_chats_position ON chats(position);
"""

# Append-only. Each entry: (version: int, sql: str).
# executescript() issues an implicit COMMIT before running.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_SQL),
    (2, _V2_SQL),
]


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] if row[0] is not None else 0


def run_migrations(conn: sqlite3.Connection) -> None:
    """Apply all pending migrations in ascending version order.

    Idempotent: safe to call on a database at any version.
    """
    conn.execute(_CREATE_SCHEMA_VERSION)
    conn.commit()

    current = current_version(conn)

    for version, sql in MIGRATIONS:
        if version > current:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            conn.commit()
