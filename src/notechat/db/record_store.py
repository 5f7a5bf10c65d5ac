"""Record store: chat records keyed by chat id (``chats`` table).

Each row holds the whole chat (notes + attachment metadata) as JSON plus its
list position, so ``get_all`` returns chats in the order of the last
``put_all``. Attachment bytes are never written here.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence

from notechat.db.connection import transaction
from notechat.db.models import Chat
from notechat.errors import StorageIOError

logger = logging.getLogger(__name__)


class RecordStore:
    """Chat id → chat record store over an open connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def put_all(self, chats: Sequence[Chat], *, prune: bool = False) -> None:
        """Upsert every chat in *chats* as one transaction.

        Args:
            chats: Chats in display order; list index becomes the stored position.
            prune: Also delete stored chats whose id is not in *chats*, so the
                stored set equals *chats* afterwards.
        """
        rows = [
            (chat.id, position, json.dumps(chat.to_dict(), ensure_ascii=False))
            for position, chat in enumerate(chats)
        ]
        with transaction(self._conn, f"save {len(rows)} chats"):
            if prune:
                keep = [r[0] for r in rows]
                if keep:
                    placeholders = ",".join("?" * len(keep))
                    self._conn.execute(
                        f"DELETE FROM chats WHERE id NOT IN ({placeholders})", keep  # noqa: S608
                    )
                else:
                    self._conn.execute("DELETE FROM chats")
            self._conn.executemany(
                """
                INSERT INTO chats (id, position, payload) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    position = excluded.position,
                    payload = excluded.payload,
                    updated_at = datetime('now')
                """,
                rows,
            )
        logger.debug("Saved %d chat records (prune=%s)", len(rows), prune)

    def get_all(self) -> list[Chat]:
        """Return every stored chat in stored position order.

        Raises:
            StorageIOError: On a read failure or a stored payload that no
                longer parses as a chat record.
        """
        with transaction(self._conn, "load chats"):
            rows = self._conn.execute(
                "SELECT id, payload FROM chats ORDER BY position, id"
            ).fetchall()
        chats: list[Chat] = []
        for row in rows:
            try:
                chats.append(Chat.from_dict(json.loads(row["payload"])))
            except (ValueError, TypeError) as exc:
                raise StorageIOError(f"Stored chat {row['id']} is corrupt: {exc}") from exc
        return chats

    def get(self, chat_id: str) -> Chat | None:
        """Return one stored chat, or None if unknown."""
        with transaction(self._conn, f"load chat {chat_id}"):
            row = self._conn.execute(
                "SELECT payload FROM chats WHERE id = ?", (chat_id,)
            ).fetchone()
        if row is None:
            return None
        try:
            return Chat.from_dict(json.loads(row["payload"]))
        except (ValueError, TypeError) as exc:
            raise StorageIOError(f"Stored chat {chat_id} is corrupt: {exc}") from exc

    def delete(self, chat_id: str) -> None:
        """Delete one chat record. No-op when absent. Does not touch blobs."""
        with transaction(self._conn, f"delete chat {chat_id}"):
            self._conn.execute("DELETE FROM chats WHERE id = ?", (chat_id,))

    def clear(self) -> None:
        with transaction(self._conn, "clear chats"):
            self._conn.execute("DELETE FROM chats")

    def count(self) -> int:
        with transaction(self._conn, "count chats"):
            return self._conn.execute("SELECT COUNT(*) FROM chats").fetchone()[0]
