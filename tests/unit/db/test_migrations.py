"""Tests for the forward-only migration runner."""

from __future__ import annotations

from notechat.db.connection import Database
from notechat.db.migrations import MIGRATIONS, current_version, run_migrations
from notechat.db.schema import CURRENT_VERSION


def _fresh_conn(tmp_path):
    """Open a new connection without running migrations."""
    db = Database(tmp_path / "test.db")
    return db.connect()


def _table_exists(conn, name: str) -> bool:
    return conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (name,)
    ).fetchone() is not None


# --- Bootstrap ---

def test_run_migrations_creates_schema_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "schema_version")
    conn.close()


def test_run_migrations_records_version(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert current_version(conn) == MIGRATIONS[-1][0]
    conn.close()


def test_current_version_matches_schema_constant():
    assert MIGRATIONS[-1][0] == CURRENT_VERSION


# --- Idempotency ---

def test_run_migrations_idempotent(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    run_migrations(conn)
    count = conn.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert count == len(MIGRATIONS)
    conn.close()


# --- Tables created ---

def test_run_migrations_creates_chats(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "chats")
    conn.close()


def test_run_migrations_creates_files(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    assert _table_exists(conn, "files")
    conn.close()


def test_run_migrations_creates_position_index(tmp_path):
    conn = _fresh_conn(tmp_path)
    run_migrations(conn)
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name='idx_chats_position'"
    ).fetchone()
    assert row is not None
    conn.close()


# --- Upgrade path ---

def test_upgrade_from_v1_applies_only_pending(tmp_path):
    conn = _fresh_conn(tmp_path)
    conn.execute(
        "CREATE TABLE schema_version (version INTEGER NOT NULL,"
        " applied_at DATETIME NOT NULL DEFAULT (datetime('now')))"
    )
    conn.executescript(MIGRATIONS[0][1])
    conn.execute("INSERT INTO schema_version (version) VALUES (1)")
    conn.execute("INSERT INTO chats (id, position, payload) VALUES ('c1', 0, '{}')")
    conn.commit()

    run_migrations(conn)

    versions = [r[0] for r in conn.execute("SELECT version FROM schema_version ORDER BY version")]
    assert versions == [1, 2]
    # existing data survives the upgrade
    assert conn.execute("SELECT COUNT(*) FROM chats").fetchone()[0] == 1
    conn.close()
