"""notechat chats / new / edit / delete / note — manage chats and append notes."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from notechat.cli.common import console, fail, load_cfg, open_store, resolve_db
from notechat.cli.errors import (
    err_chat_not_found,
    err_file_not_found,
    err_invalid_input,
    err_no_db,
)
from notechat.db.models import DEFAULT_ICON

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Database path (default: storage.db_path from config)."),
]


def _require_db(db: Path | None):
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)
    return cfg, db_path


def chats_cmd(
    search: Annotated[
        str | None,
        typer.Option("--search", "-q", help="Only chats whose name or description contains this."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """List chats, newest first."""
    cfg, db_path = _require_db(db)
    with open_store(db_path, cfg) as store:
        chats = store.search(search) if search else list(store.dataset)

    if not chats:
        console.print("[dim]No chats found.[/]" if search else "[dim]No chats yet.[/]")
        return

    table = Table("", "ID", "Name", "Notes", "Last note")
    for chat in chats:
        last = store.dataset.last_note(chat)
        preview = (last.text or "Attachment") if last else "No notes"
        table.add_row(chat.icon, chat.id, chat.name, str(len(chat.notes)), preview)
    console.print(table)


def new_cmd(
    name: Annotated[str, typer.Argument(help="Chat name.")],
    description: Annotated[
        str, typer.Option("--description", "-d", help="Chat description.")
    ] = "",
    icon: Annotated[str, typer.Option("--icon", help="Icon glyph.")] = DEFAULT_ICON,
    db: _DbOption = None,
) -> None:
    """Create a new chat."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    with open_store(db_path, cfg) as store:
        result = store.create_chat(name, description, icon)
    if not result.ok:
        fail(result, db_path)
    chat = result.unwrap()
    console.print(f"[green]✓[/] Created {chat.icon} [bold]{chat.name}[/] ({chat.id})")


def note_cmd(
    chat_id: Annotated[str, typer.Argument(help="Chat id (see: notechat chats).")],
    text: Annotated[str | None, typer.Option("--text", "-t", help="Note text.")] = None,
    file: Annotated[
        list[Path] | None,
        typer.Option("--file", "-f", help="File to attach (repeatable)."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Append a note (text and/or attachments) to a chat."""
    cfg, db_path = _require_db(db)
    paths = file or []
    for path in paths:
        if not path.is_file():
            console.print(err_file_not_found(str(path)))
            raise typer.Exit(1)

    files = [
        (p.name, mimetypes.guess_type(p.name)[0] or "application/octet-stream", p.read_bytes())
        for p in paths
    ]

    with open_store(db_path, cfg) as store:
        if store.get_chat(chat_id) is None:
            console.print(err_chat_not_found(chat_id))
            raise typer.Exit(1)
        result = store.append_note(chat_id, text, files)
    if not result.ok:
        fail(result, db_path)
    note = result.unwrap()
    console.print(f"[green]✓[/] Note {note.id} added")
    for att in note.attachments:
        console.print(f"    📎 {att.name} ({att.size})")


def edit_cmd(
    chat_id: Annotated[str, typer.Argument(help="Chat id (see: notechat chats).")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name.")] = None,
    description: Annotated[
        str | None, typer.Option("--description", "-d", help="New description.")
    ] = None,
    icon: Annotated[str | None, typer.Option("--icon", help="New icon glyph.")] = None,
    db: _DbOption = None,
) -> None:
    """Rename a chat or change its description or icon."""
    cfg, db_path = _require_db(db)
    if name is None and description is None and icon is None:
        console.print(err_invalid_input("Nothing to change: pass --name, --description or --icon"))
        raise typer.Exit(1)

    with open_store(db_path, cfg) as store:
        if store.get_chat(chat_id) is None:
            console.print(err_chat_not_found(chat_id))
            raise typer.Exit(1)
        result = store.update_chat(chat_id, name=name, description=description, icon=icon)
    if not result.ok:
        fail(result, db_path)
    chat = result.unwrap()
    console.print(f"[green]✓[/] Updated {chat.icon} [bold]{chat.name}[/] ({chat.id})")


def delete_cmd(
    chat_id: Annotated[str, typer.Argument(help="Chat id (see: notechat chats).")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: _DbOption = None,
) -> None:
    """Delete a chat with all its notes and attachments."""
    cfg, db_path = _require_db(db)
    with open_store(db_path, cfg) as store:
        chat = store.get_chat(chat_id)
        if chat is None:
            console.print(err_chat_not_found(chat_id))
            raise typer.Exit(1)

        console.print(f"\nDelete chat: [bold]{chat.name}[/]")
        console.print(
            f"  Notes: {len(chat.notes)}  |  Attachments: {len(chat.attachment_ids())}"
        )
        if not yes:
            if not typer.confirm("Confirm deletion?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
        result = store.delete_chat(chat_id)

    if not result.ok:
        fail(result, db_path)
    console.print(f"[green]✓[/] Deleted: {chat.name}")
