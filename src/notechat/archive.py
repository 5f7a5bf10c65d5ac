"""Archive codec — whole-dataset export/import via zipfile.

Layout of an archive::

    notechat_data/data.json                                   manifest
    notechat_data/files/chat_{chatId}/{attachmentId}_{name}   one entry per attachment

Import also accepts the legacy flat document (``{version, timestamp, chats}``
as a single JSON file, attachment bytes inline as base64 ``data:`` URLs).
Format detection happens in ``read_archive``; there is one codec, not two.

Missing attachment bytes never abort an export or import: the attachment is
dropped and an ``IntegrityWarning`` is recorded and logged.
"""

from __future__ import annotations

import base64
import binascii
import io
import json
import logging
import zipfile
import zlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from urllib.parse import unquote_to_bytes

from notechat.db.blob_store import BlobStore
from notechat.db.models import Attachment, Chat, Manifest, Note, now_iso
from notechat.errors import ArchiveFormatError, IntegrityWarning, NotechatError
from notechat.files import safe_filename
from notechat.ids import new_id

logger = logging.getLogger(__name__)

ARCHIVE_ROOT = "notechat_data"
MANIFEST_PATH = f"{ARCHIVE_ROOT}/data.json"
FILES_DIR = f"{ARCHIVE_ROOT}/files"
FORMAT_VERSION = "2.0"
LEGACY_VERSION = "1.0"


@dataclass
class ExportResult:
    data: bytes
    attachment_count: int = 0
    warnings: list[IntegrityWarning] = field(default_factory=list)


@dataclass
class ParsedArchive:
    """A fully read archive: validated manifest plus every binary entry by path."""

    manifest: Manifest
    entries: dict[str, bytes] = field(default_factory=dict)
    legacy: bool = False


@dataclass
class StagedImport:
    """Chats rebuilt from an archive, with their bytes already in the blob store."""

    chats: list[Chat]
    blob_ids: list[str] = field(default_factory=list)
    warnings: list[IntegrityWarning] = field(default_factory=list)


def archive_filename(today: date | None = None) -> str:
    """Default download name: ``notechat_backup_YYYY-MM-DD.zip``."""
    return f"notechat_backup_{(today or date.today()).isoformat()}.zip"


def entry_path(chat_id: str, attachment_id: str, filename: str) -> str:
    return f"{FILES_DIR}/chat_{chat_id}/{attachment_id}_{safe_filename(filename)}"


def _warn(warnings: list[IntegrityWarning], chat: Chat, note: Note, att: Attachment, ref: str) -> None:
    w = IntegrityWarning(chat.id, note.id, att.name, ref)
    logger.warning("%s", w)
    warnings.append(w)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def export_archive(
    chats: Sequence[Chat],
    blobs: BlobStore,
    *,
    version: str = FORMAT_VERSION,
    compression_level: int | None = None,
) -> ExportResult:
    """Serialize *chats* and every blob they reference into one zip archive.

    Blobs are read one at a time in chat → note → attachment order.

    Raises:
        StorageIOError: If the blob store cannot be read.
    """
    warnings: list[IntegrityWarning] = []
    files: list[tuple[str, bytes]] = []
    manifest_chats: list[dict] = []

    for chat in chats:
        notes_out: list[dict] = []
        for note in chat.notes:
            atts_out: list[dict] = []
            for att in note.attachments:
                data = blobs.get(att.id) if att.id else None
                if data is None:
                    _warn(warnings, chat, note, att, f"blob {att.id}")
                    continue
                path = entry_path(chat.id, att.id, att.name)
                files.append((path, data))
                atts_out.append(att.to_manifest(path))
            note_out = note.to_dict()
            note_out["attachments"] = atts_out
            notes_out.append(note_out)
        chat_out = chat.to_dict()
        chat_out["notes"] = notes_out
        manifest_chats.append(chat_out)

    manifest = {"version": version, "timestamp": now_iso(), "chats": manifest_chats}

    buf = io.BytesIO()
    with zipfile.ZipFile(
        buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
    ) as zf:
        zf.writestr(MANIFEST_PATH, json.dumps(manifest, indent=2, ensure_ascii=False))
        for path, data in files:
            zf.writestr(path, data)

    logger.info(
        "Exported %d chats, %d attachments (%d skipped)",
        len(manifest_chats),
        len(files),
        len(warnings),
    )
    return ExportResult(data=buf.getvalue(), attachment_count=len(files), warnings=warnings)


# ---------------------------------------------------------------------------
# Import: read and validate (no side effects)
# ---------------------------------------------------------------------------


def read_archive(data: bytes) -> ParsedArchive:
    """Detect the format of *data*, parse and validate its manifest.

    Nothing is written anywhere; a format error here leaves every store as it was.

    Raises:
        ArchiveFormatError: Unreadable container, missing or unparsable
            manifest, missing chat list, malformed records, duplicate chat ids.
    """
    if zipfile.is_zipfile(io.BytesIO(data)):
        raw, entries = _read_zip(data)
        legacy = False
    else:
        raw = _parse_json(data, "archive")
        entries = {}
        legacy = True

    try:
        manifest = Manifest.from_dict(raw)
    except ValueError as exc:
        raise ArchiveFormatError(f"Invalid archive manifest: {exc}") from exc

    seen: set[str] = set()
    for chat in manifest.chats:
        if chat.id in seen:
            raise ArchiveFormatError(f"Invalid archive manifest: duplicate chat id '{chat.id}'")
        seen.add(chat.id)

    return ParsedArchive(manifest=manifest, entries=entries, legacy=legacy)


def _read_zip(data: bytes) -> tuple[object, dict[str, bytes]]:
    try:
        with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
            names = set(zf.namelist())
            if MANIFEST_PATH not in names:
                raise ArchiveFormatError(f"Archive has no manifest ({MANIFEST_PATH})")
            raw = _parse_json(zf.read(MANIFEST_PATH), MANIFEST_PATH)
            entries = {
                name: zf.read(name)
                for name in names
                if name.startswith(f"{FILES_DIR}/") and not name.endswith("/")
            }
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        OSError,
        EOFError,
        NotImplementedError,  # unsupported compression method
        RuntimeError,  # encrypted member
    ) as exc:
        raise ArchiveFormatError(f"Unreadable archive: {exc}") from exc
    return raw, entries


def _parse_json(data: bytes, what: str) -> object:
    try:
        return json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise ArchiveFormatError(f"Cannot parse {what} as JSON: {exc}") from exc


def decode_data_url(value: str) -> bytes | None:
    """Decode a ``data:[<type>][;base64],<payload>`` URL. None if malformed."""
    if not value.startswith("data:") or "," not in value:
        return None
    header, payload = value.split(",", 1)
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=True)
        return unquote_to_bytes(payload)
    except (binascii.Error, ValueError):
        return None


# ---------------------------------------------------------------------------
# Import: staging
# ---------------------------------------------------------------------------


def stage_import(
    parsed: ParsedArchive,
    blobs: BlobStore,
    *,
    id_factory: Callable[[], str] = new_id,
) -> StagedImport:
    """Write every resolvable attachment to *blobs* under a fresh id.

    Returns the rebuilt chats; the caller persists them and only then swaps
    them in as the live dataset. Attachments whose bytes cannot be located
    are left out of their note; a note left with neither text nor
    attachments is left out of its chat.

    Raises:
        StorageIOError: If a blob write fails. Blobs already staged by this
            call are removed (best effort) before the error propagates.
    """
    staged = StagedImport(chats=[])
    try:
        for src_chat in parsed.manifest.chats:
            chat = Chat(
                id=src_chat.id,
                name=src_chat.name,
                description=src_chat.description,
                icon=src_chat.icon,
                created_at=src_chat.created_at,
            )
            for src_note in src_chat.notes:
                note = Note(id=src_note.id, timestamp=src_note.timestamp, text=src_note.text)
                for att in src_note.attachments:
                    data, ref = _resolve_bytes(parsed, att)
                    if data is None:
                        _warn(staged.warnings, chat, note, att, ref)
                        continue
                    blob_id = id_factory()
                    blobs.put(blob_id, data)
                    staged.blob_ids.append(blob_id)
                    note.attachments.append(
                        Attachment(name=att.name, size=att.size, type=att.type, id=blob_id)
                    )
                if not (note.text or "").strip() and not note.attachments:
                    logger.warning(
                        "Note %s in chat %s has no text and no attachments left; dropped",
                        note.id,
                        chat.id,
                    )
                    continue
                chat.notes.append(note)
            staged.chats.append(chat)
    except NotechatError:
        discard_staged(staged, blobs)
        raise
    return staged


def discard_staged(staged: StagedImport, blobs: BlobStore) -> None:
    """Best-effort removal of blobs written by ``stage_import``."""
    try:
        blobs.delete_many(staged.blob_ids)
    except NotechatError as exc:
        logger.warning("Could not discard %d staged blobs: %s", len(staged.blob_ids), exc)


def _resolve_bytes(parsed: ParsedArchive, att: Attachment) -> tuple[bytes | None, str]:
    if isinstance(att.path, str) and att.path:
        return parsed.entries.get(att.path), f"archive entry {att.path}"
    if isinstance(att.inline_data, str) and att.inline_data:
        return decode_data_url(att.inline_data), "inline data"
    return None, "no path or inline data"
