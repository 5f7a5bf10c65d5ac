"""Persistence facade — the one surface callers use to load, edit, save,
export and import the dataset.

Every public method returns a ``Result``. Storage, archive-format and
validation failures are caught here and reported as failed results; they do
not propagate to the caller. Store calls inside one operation are issued one
after another: attachment bytes are always written before any record that
references them.
"""

from __future__ import annotations

import copy
import functools
import logging
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Generic, TypeVar

from notechat.archive import (
    ExportResult,
    discard_staged,
    export_archive,
    read_archive,
    stage_import,
)
from notechat.config import ArchiveCfg
from notechat.dataset import Dataset
from notechat.db.blob_store import BlobStore
from notechat.db.connection import Database
from notechat.db.migrations import current_version
from notechat.db.models import DEFAULT_ICON, Attachment, Chat, Note
from notechat.db.record_store import RecordStore
from notechat.db.schema import initialize
from notechat.errors import (
    IntegrityWarning,
    NotechatError,
    StorageIOError,
    ValidationError,
)
from notechat.files import format_size
from notechat.ids import new_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (filename, content type, bytes)
FileInput = tuple[str, str, bytes]


@dataclass
class Result(Generic[T]):
    """Outcome of a facade call.

    Attributes:
        value: Return value on success (and on some partial successes).
        error: The failure, or None.
        warnings: Integrity warnings collected along the way (never fatal).
        indeterminate: True when stored state may no longer match memory and
            the caller should reload before continuing.
    """

    value: T | None = None
    error: NotechatError | None = None
    warnings: list[IntegrityWarning] = field(default_factory=list)
    indeterminate: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""

    def unwrap(self) -> T:
        """Return the value, raising the stored error if the call failed."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass
class ImportReport:
    chat_count: int
    note_count: int
    attachment_count: int
    version: str
    legacy: bool = False


@dataclass
class StoreStats:
    chat_count: int
    note_count: int
    attachment_count: int
    blob_count: int
    blob_bytes: int
    dangling_ids: list[str] = field(default_factory=list)
    orphaned_ids: list[str] = field(default_factory=list)


def _guarded(action: str) -> Callable:
    """Turn any NotechatError raised by the wrapped method into a failed Result."""

    def decorator(fn: Callable[..., Result]) -> Callable[..., Result]:
        @functools.wraps(fn)
        def wrapper(self: Persistence, *args, **kwargs) -> Result:
            try:
                return fn(self, *args, **kwargs)
            except NotechatError as exc:
                logger.error("%s failed: %s", action, exc)
                return Result(error=exc)

        return wrapper

    return decorator


class Persistence:
    """Coordinates the record store and blob store around one ``Dataset``.

    The connection and the dataset are owned by the caller; ``open()`` is a
    convenience that creates both.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        dataset: Dataset | None = None,
        *,
        archive_cfg: ArchiveCfg | None = None,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self._conn = conn
        self.records = RecordStore(conn)
        self.blobs = BlobStore(conn)
        self.dataset = dataset if dataset is not None else Dataset(id_factory=id_factory)
        self.archive_cfg = archive_cfg or ArchiveCfg()
        self._new_id = id_factory

    @classmethod
    def open(
        cls,
        db_path: Path | str,
        dataset: Dataset | None = None,
        *,
        archive_cfg: ArchiveCfg | None = None,
    ) -> Result[Persistence]:
        """Open (creating if needed) the database at *db_path* and load the dataset."""
        conn: sqlite3.Connection | None = None
        try:
            conn = Database(db_path).connect()
            initialize(conn)
        except NotechatError as exc:
            if conn is not None:
                conn.close()
            logger.error("Opening %s failed: %s", db_path, exc)
            return Result(error=exc)
        store = cls(conn, dataset, archive_cfg=archive_cfg)
        loaded = store.load_all()
        if not loaded.ok:
            conn.close()
            return Result(error=loaded.error)
        return Result(value=store)

    def schema_version(self) -> int:
        return current_version(self._conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Persistence:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    @_guarded("load")
    def load_all(self) -> Result[list[Chat]]:
        """Replace the in-memory dataset with what the record store holds."""
        chats = self.records.get_all()
        self.dataset.replace(chats)
        logger.debug("Loaded %d chats", len(chats))
        return Result(value=list(chats))

    @_guarded("save")
    def save_all(self, chats: Iterable[Chat] | None = None) -> Result[None]:
        """Persist the chat set (the given one, or the current dataset).

        The stored set becomes exactly this set: records for chats not in it
        are removed. Blobs are not touched.
        """
        with self._rollback_on_failure():
            if chats is not None:
                self.dataset.replace(chats)
            self.records.put_all(self.dataset.chats, prune=True)
        return Result()

    @_guarded("store attachment")
    def append_attachment_blob(self, data: bytes) -> Result[str]:
        """Store *data* under a fresh attachment id and return the id."""
        blob_id = self._new_id()
        self.blobs.put(blob_id, data)
        return Result(value=blob_id)

    @_guarded("fetch attachment")
    def fetch_attachment_blob(self, blob_id: str) -> Result[bytes | None]:
        """Return the bytes for *blob_id* (value is None when unknown)."""
        return Result(value=self.blobs.get(blob_id))

    @_guarded("export")
    def export_archive(self) -> Result[ExportResult]:
        """Serialize the current dataset and its blobs into archive bytes."""
        exported = export_archive(
            self.dataset.chats,
            self.blobs,
            compression_level=self.archive_cfg.compression_level,
        )
        return Result(value=exported, warnings=list(exported.warnings))

    @_guarded("import")
    def import_archive(self, data: bytes) -> Result[ImportReport]:
        """Replace the whole dataset with the contents of an archive.

        The archive is fully parsed and validated first; a format error leaves
        memory and both stores exactly as they were. Bytes are then staged
        under new attachment ids, records are written in one transaction, and
        only after that is the live dataset swapped. Blobs of the replaced
        dataset are removed last, best effort.
        """
        parsed = read_archive(data)
        previous_ids = set(self.dataset.attachment_ids())

        staged = stage_import(parsed, self.blobs, id_factory=self._new_id)
        try:
            self.records.put_all(staged.chats, prune=True)
        except NotechatError:
            discard_staged(staged, self.blobs)
            raise

        self.dataset.replace(staged.chats)
        self._discard_blobs(previous_ids - set(staged.blob_ids), "replaced dataset")

        report = ImportReport(
            chat_count=len(staged.chats),
            note_count=sum(len(c.notes) for c in staged.chats),
            attachment_count=len(staged.blob_ids),
            version=parsed.manifest.version,
            legacy=parsed.legacy,
        )
        logger.info(
            "Imported %d chats, %d attachments (%d skipped)",
            report.chat_count,
            report.attachment_count,
            len(staged.warnings),
        )
        return Result(value=report, warnings=list(staged.warnings))

    def reset_all(self) -> Result[None]:
        """Clear both stores and the in-memory dataset.

        The record store is cleared even if clearing the blob store failed.
        Any failure yields an ``indeterminate`` result: reload before use.
        """
        failures: list[str] = []
        for label, clear in (("files", self.blobs.clear), ("chats", self.records.clear)):
            try:
                clear()
            except NotechatError as exc:
                logger.error("Clearing %s failed: %s", label, exc)
                failures.append(f"{label}: {exc}")

        if failures:
            return Result(
                error=StorageIOError("Reset incomplete — " + "; ".join(failures)),
                indeterminate=True,
            )
        self.dataset.clear()
        logger.info("Reset all data")
        return Result()

    # ------------------------------------------------------------------
    # Chat / note operations
    # ------------------------------------------------------------------

    def get_chat(self, chat_id: str) -> Chat | None:
        return self.dataset.get_chat(chat_id)

    def search(self, query: str) -> list[Chat]:
        return self.dataset.search(query)

    @_guarded("create chat")
    def create_chat(
        self, name: str, description: str = "", icon: str = DEFAULT_ICON
    ) -> Result[Chat]:
        with self._rollback_on_failure():
            chat = self.dataset.create_chat(name, description, icon)
            self.records.put_all(self.dataset.chats, prune=True)
        return Result(value=chat)

    @_guarded("update chat")
    def update_chat(
        self,
        chat_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        icon: str | None = None,
    ) -> Result[Chat]:
        with self._rollback_on_failure():
            chat = self.dataset.update_chat(
                chat_id, name=name, description=description, icon=icon
            )
            self.records.put_all(self.dataset.chats, prune=True)
        return Result(value=chat)

    @_guarded("delete chat")
    def delete_chat(self, chat_id: str) -> Result[Chat]:
        """Delete a chat, its record and every attachment blob it owns.

        Best effort: the record is deleted even when the blob deletion
        failed (orphaned blobs are preferable to a stale record). A record
        failure keeps the chat in memory, matching the store.
        """
        chat = self.dataset.require_chat(chat_id)
        errors: list[str] = []

        try:
            self.blobs.delete_many(chat.attachment_ids())
        except NotechatError as exc:
            logger.warning("Blobs of chat %s not deleted: %s", chat_id, exc)
            errors.append(f"files: {exc}")

        try:
            self.records.delete(chat_id)
        except NotechatError as exc:
            errors.append(f"chats: {exc}")
            return Result(
                value=chat,
                error=StorageIOError("Chat not deleted — " + "; ".join(errors)),
            )

        self.dataset.remove_chat(chat_id)
        if errors:
            return Result(
                value=chat,
                error=StorageIOError("Chat deleted, attachments left behind — " + errors[0]),
            )
        return Result(value=chat)

    @_guarded("append note")
    def append_note(
        self,
        chat_id: str,
        text: str | None = None,
        files: Iterable[FileInput] = (),
    ) -> Result[Note]:
        """Append a note with optional attachments to a chat and save.

        Each file's bytes go to the blob store before the note referencing
        them is saved. If saving fails those blobs are removed again.
        """
        self.dataset.require_chat(chat_id)
        file_list = list(files)
        if not (text or "").strip() and not file_list:
            raise ValidationError("A note needs text, attachments, or both")

        written: list[str] = []
        attachments: list[Attachment] = []
        try:
            for filename, content_type, data in file_list:
                blob_id = self._new_id()
                self.blobs.put(blob_id, data)
                written.append(blob_id)
                attachments.append(
                    Attachment(
                        name=filename,
                        size=format_size(len(data)),
                        type=content_type,
                        id=blob_id,
                    )
                )
            with self._rollback_on_failure():
                note = self.dataset.append_note(chat_id, text, attachments)
                self.records.put_all(self.dataset.chats, prune=True)
        except NotechatError:
            self._discard_blobs(written, "failed note")
            raise
        return Result(value=note)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @_guarded("stats")
    def stats(self) -> Result[StoreStats]:
        """Counts plus referential-integrity findings for the stored data."""
        chats = self.records.get_all()
        referenced = [blob_id for c in chats for blob_id in c.attachment_ids()]
        stored = set(self.blobs.ids())
        return Result(
            value=StoreStats(
                chat_count=len(chats),
                note_count=sum(len(c.notes) for c in chats),
                attachment_count=len(referenced),
                blob_count=len(stored),
                blob_bytes=self.blobs.total_bytes(),
                dangling_ids=[i for i in referenced if i not in stored],
                orphaned_ids=sorted(stored - set(referenced)),
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rollback_on_failure(self) -> _Snapshot:
        return _Snapshot(self.dataset)

    def _discard_blobs(self, blob_ids: Iterable[str], why: str) -> None:
        ids = list(blob_ids)
        if not ids:
            return
        try:
            self.blobs.delete_many(ids)
        except NotechatError as exc:
            logger.warning("Could not remove %d blobs of %s: %s", len(ids), why, exc)


class _Snapshot:
    """Restore the dataset's chat list if the enclosed block raises."""

    def __init__(self, dataset: Dataset) -> None:
        self._dataset = dataset
        self._saved = copy.deepcopy(dataset.chats)

    def __enter__(self) -> None:
        return None

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._dataset.replace(self._saved)
        return False
