"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from notechat.db.connection import Database
from notechat.db.schema import initialize
from notechat.facade import Persistence


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / "notechat.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(tmp_db):
    """Persistence facade over tmp_db with an empty dataset."""
    return Persistence(tmp_db)


@pytest.fixture
def other_store(tmp_path):
    """A second, independent database — the "other machine" for round trips."""
    db = Database(tmp_path / "other.db")
    conn = db.connect()
    initialize(conn)
    yield Persistence(conn)
    conn.close()
