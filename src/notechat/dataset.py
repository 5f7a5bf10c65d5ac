"""In-memory dataset: the ordered chat list the facade loads, edits and saves.

Pure data manipulation — no storage access. Persisting is the facade's job.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from notechat.db.models import DEFAULT_ICON, Attachment, Chat, Note, now_iso
from notechat.errors import ValidationError
from notechat.ids import new_id


class Dataset:
    """Ordered chats, newest first.

    Owned explicitly by whoever constructs it and passed to the facade; there
    is no module-level dataset.
    """

    def __init__(
        self,
        chats: Iterable[Chat] = (),
        *,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.chats: list[Chat] = list(chats)
        self._new_id = id_factory

    def __len__(self) -> int:
        return len(self.chats)

    def __iter__(self):
        return iter(self.chats)

    def replace(self, chats: Iterable[Chat]) -> None:
        self.chats = list(chats)

    def clear(self) -> None:
        self.chats = []

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def get_chat(self, chat_id: str) -> Chat | None:
        return next((c for c in self.chats if c.id == chat_id), None)

    def require_chat(self, chat_id: str) -> Chat:
        chat = self.get_chat(chat_id)
        if chat is None:
            raise ValidationError(f"Unknown chat id '{chat_id}'")
        return chat

    def create_chat(self, name: str, description: str = "", icon: str = DEFAULT_ICON) -> Chat:
        """Create a chat and insert it at the front of the list.

        Raises:
            ValidationError: If *name* is empty after stripping.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Chat name must not be empty")
        chat = Chat(
            id=self._new_id(),
            name=name,
            description=(description or "").strip(),
            icon=icon or DEFAULT_ICON,
        )
        self.chats.insert(0, chat)
        return chat

    def update_chat(
        self,
        chat_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        icon: str | None = None,
    ) -> Chat:
        """Edit a chat's name, description or icon. Notes are untouched."""
        chat = self.require_chat(chat_id)
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Chat name must not be empty")
            chat.name = name
        if description is not None:
            chat.description = description.strip()
        if icon:
            chat.icon = icon
        return chat

    def remove_chat(self, chat_id: str) -> Chat:
        """Drop a chat from the list and return it (its blobs are the caller's concern)."""
        chat = self.require_chat(chat_id)
        self.chats = [c for c in self.chats if c.id != chat_id]
        return chat

    def search(self, query: str) -> list[Chat]:
        """Case-insensitive substring match on name or description."""
        q = query.lower()
        return [c for c in self.chats if q in c.name.lower() or q in c.description.lower()]

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def append_note(
        self,
        chat_id: str,
        text: str | None = None,
        attachments: Iterable[Attachment] = (),
    ) -> Note:
        """Append a note to the end of a chat.

        Raises:
            ValidationError: Unknown chat, or a note with neither text nor attachments.
        """
        chat = self.require_chat(chat_id)
        text = (text or "").strip() or None
        atts = list(attachments)
        if text is None and not atts:
            raise ValidationError("A note needs text, attachments, or both")
        note = Note(id=self._new_id(), timestamp=now_iso(), text=text, attachments=atts)
        chat.notes.append(note)
        return note

    @staticmethod
    def last_note(chat: Chat) -> Note | None:
        return chat.notes[-1] if chat.notes else None

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def attachment_ids(self) -> list[str]:
        """Every blob id referenced anywhere in the dataset."""
        return [blob_id for chat in self.chats for blob_id in chat.attachment_ids()]
