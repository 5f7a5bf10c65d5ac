"""Domain models for chats, notes and attachment metadata.

Records cross two boundaries: the ``chats`` table (JSON payload per chat) and
the archive manifest. ``from_dict`` validates the shape at both and raises
``ValueError`` on anything malformed; callers map that onto their own error
kind. Attachment bytes never live on these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_ICON = "💡"


def now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a trailing Z."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _require(data: Any, key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{kind} record must be an object, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise ValueError(f"{kind} record is missing '{key}'")
    return data[key]


def _as_list(value: Any, key: str, kind: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{kind} '{key}' must be a list, got {type(value).__name__}")
    return value


@dataclass
class Attachment:
    name: str
    size: str
    type: str = ""
    id: str | None = None  # blob store key; None only while staged from a manifest
    path: str | None = None  # archive entry path; set only on manifest records
    inline_data: str | None = None  # base64 data: URL; legacy flat documents only

    def to_record(self) -> dict[str, Any]:
        """Metadata as kept in the record store."""
        return {"id": self.id, "name": self.name, "size": self.size, "type": self.type}

    def to_manifest(self, path: str) -> dict[str, Any]:
        """Metadata as written to the archive manifest."""
        return {"name": self.name, "size": self.size, "type": self.type, "path": path}

    @classmethod
    def from_dict(cls, data: Any) -> Attachment:
        name = _require(data, "name", "Attachment")
        raw_id = data.get("id")
        return cls(
            name=str(name),
            size=str(data.get("size", "")),
            type=str(data.get("type") or ""),
            id=str(raw_id) if raw_id is not None else None,
            path=data.get("path"),
            inline_data=data.get("data"),
        )


@dataclass
class Note:
    id: str
    timestamp: str
    text: str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id}
        if self.text:
            out["text"] = self.text
        out["timestamp"] = self.timestamp
        out["attachments"] = [a.to_record() for a in self.attachments]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> Note:
        note_id = _require(data, "id", "Note")
        timestamp = _require(data, "timestamp", "Note")
        raw = _as_list(data.get("attachments"), "attachments", "Note")
        return cls(
            id=str(note_id),
            timestamp=str(timestamp),
            text=data.get("text") or None,
            attachments=[Attachment.from_dict(a) for a in raw],
        )


@dataclass
class Chat:
    id: str
    name: str
    description: str = ""
    icon: str = DEFAULT_ICON
    created_at: str = field(default_factory=now_iso)
    notes: list[Note] = field(default_factory=list)

    def attachment_ids(self) -> list[str]:
        """Blob ids referenced by this chat's notes, in note order."""
        return [a.id for n in self.notes for a in n.attachments if a.id is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "createdAt": self.created_at,
            "notes": [n.to_dict() for n in self.notes],
        }

    @classmethod
    def from_dict(cls, data: Any) -> Chat:
        chat_id = _require(data, "id", "Chat")
        name = _require(data, "name", "Chat")
        raw = _as_list(data.get("notes"), "notes", "Chat")
        return cls(
            id=str(chat_id),
            name=str(name),
            description=str(data.get("description") or ""),
            icon=str(data.get("icon") or DEFAULT_ICON),
            created_at=str(data.get("createdAt") or now_iso()),
            notes=[Note.from_dict(n) for n in raw],
        )


@dataclass
class Manifest:
    """Top-level archive document: format version, export time, chat list.

    Attachments inside ``chats`` carry ``path`` instead of a live ``id``.
    """

    version: str
    timestamp: str
    chats: list[Chat] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Manifest:
        if not isinstance(data, dict):
            raise ValueError("Manifest must be a JSON object")
        chats = data.get("chats")
        if not isinstance(chats, list):
            raise ValueError("Manifest has no 'chats' list")
        return cls(
            version=str(data.get("version") or ""),
            timestamp=str(data.get("timestamp") or ""),
            chats=[Chat.from_dict(c) for c in chats],
        )
