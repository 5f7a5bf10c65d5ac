"""Blob store: attachment bytes keyed by attachment id (``files`` table)."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from notechat.db.connection import transaction

logger = logging.getLogger(__name__)


class BlobStore:
    """Key → bytes store over an open connection.

    Each method is one transaction. Failures raise ``StorageIOError`` after a
    rollback. The connection is owned by the caller.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def put(self, blob_id: str, data: bytes) -> None:
        """Store *data* under *blob_id*, replacing any existing object."""
        with transaction(self._conn, f"put blob {blob_id}"):
            self._conn.execute(
                """
                INSERT INTO files (id, data) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    stored_at = datetime('now')
                """,
                (blob_id, sqlite3.Binary(bytes(data))),
            )
        logger.debug("Stored blob %s (%d bytes)", blob_id, len(data))

    def get(self, blob_id: str) -> bytes | None:
        """Return the bytes stored under *blob_id*, or None if unknown."""
        with transaction(self._conn, f"get blob {blob_id}"):
            row = self._conn.execute(
                "SELECT data FROM files WHERE id = ?", (blob_id,)
            ).fetchone()
        return bytes(row["data"]) if row else None

    def delete(self, blob_id: str) -> None:
        """Remove *blob_id*. No-op when absent."""
        with transaction(self._conn, f"delete blob {blob_id}"):
            self._conn.execute("DELETE FROM files WHERE id = ?", (blob_id,))

    def delete_many(self, blob_ids: Iterable[str]) -> int:
        """Remove every id in *blob_ids* in one transaction. Returns rows deleted."""
        ids = list(blob_ids)
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with transaction(self._conn, f"delete {len(ids)} blobs"):
            cur = self._conn.execute(
                f"DELETE FROM files WHERE id IN ({placeholders})", ids  # noqa: S608
            )
        return cur.rowcount

    def clear(self) -> None:
        """Remove every stored object."""
        with transaction(self._conn, "clear blobs"):
            self._conn.execute("DELETE FROM files")

    def ids(self) -> list[str]:
        with transaction(self._conn, "list blobs"):
            rows = self._conn.execute("SELECT id FROM files ORDER BY id").fetchall()
        return [r["id"] for r in rows]

    def count(self) -> int:
        with transaction(self._conn, "count blobs"):
            return self._conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    def total_bytes(self) -> int:
        with transaction(self._conn, "measure blobs"):
            row = self._conn.execute("SELECT SUM(LENGTH(data)) FROM files").fetchone()
        return row[0] or 0
