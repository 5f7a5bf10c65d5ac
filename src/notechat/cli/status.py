"""notechat status — counts and referential-integrity report."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from notechat.cli.common import console, fail, load_cfg, open_store, resolve_db
from notechat.cli.errors import err_no_db
from notechat.files import format_size


def status_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: storage.db_path from config)."),
    ] = None,
) -> None:
    """Show chat, note and attachment counts and any integrity problems."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with open_store(db_path, cfg) as store:
        result = store.stats()
    if not result.ok:
        fail(result, db_path)
    stats = result.unwrap()

    table = Table(show_header=False, box=None)
    table.add_row("Database", str(db_path))
    table.add_row("Chats", str(stats.chat_count))
    table.add_row("Notes", str(stats.note_count))
    table.add_row("Attachments", str(stats.attachment_count))
    table.add_row("Stored files", f"{stats.blob_count} ({format_size(stats.blob_bytes)})")
    console.print(Panel(table, title="[bold]notechat[/]", expand=False))

    if stats.dangling_ids:
        console.print(
            f"[red]✗[/] {len(stats.dangling_ids)} attachment(s) without stored contents:"
        )
        for blob_id in stats.dangling_ids:
            console.print(f"    {blob_id}")
    if stats.orphaned_ids:
        console.print(
            f"[yellow]⚠[/] {len(stats.orphaned_ids)} stored file(s) not referenced by any note.\n"
            "  Run:  notechat reset  to reclaim them (deletes everything)."
        )
    if not stats.dangling_ids and not stats.orphaned_ids:
        console.print("[green]✓[/] All attachments resolve.")
