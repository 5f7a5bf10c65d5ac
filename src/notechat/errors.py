"""Exception hierarchy for the persistence core.

Storage and archive errors abort the operation in progress; the facade turns
them into failed results. ``IntegrityWarning`` is a warning, not an error:
it is collected and logged while the operation carries on.
"""

from __future__ import annotations


class NotechatError(Exception):
    """Base class for every failure the persistence core reports."""


class StorageUnavailable(NotechatError):
    """The local database could not be opened or initialised."""


class StorageIOError(NotechatError):
    """A read or write failed on an open database."""


class ArchiveFormatError(NotechatError):
    """The archive is unreadable, or its manifest or chat list is missing or malformed."""


class ValidationError(NotechatError, ValueError):
    """A caller-supplied record is invalid (empty name, empty note, unknown chat)."""


class IntegrityWarning(UserWarning):
    """An attachment's bytes could not be located; the attachment was skipped.

    Attributes:
        chat_id: Owning chat.
        note_id: Owning note.
        name: Attachment filename.
        ref: Blob id or archive path that failed to resolve.
    """

    def __init__(self, chat_id: str, note_id: str, name: str, ref: str) -> None:
        self.chat_id = chat_id
        self.note_id = note_id
        self.name = name
        self.ref = ref
        super().__init__(
            f"Attachment '{name}' in chat {chat_id} / note {note_id} "
            f"has no stored bytes ({ref}) — skipped."
        )
