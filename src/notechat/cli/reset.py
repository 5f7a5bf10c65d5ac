"""notechat reset — delete every chat, note and stored file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from notechat.cli.common import console, load_cfg, open_store, resolve_db
from notechat.cli.errors import err_no_db, err_reset_incomplete


def reset_cmd(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: storage.db_path from config)."),
    ] = None,
) -> None:
    """Delete all data. Export first if you want to keep it."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    with open_store(db_path, cfg) as store:
        count = len(store.dataset)
        if not yes:
            console.print(f"\nDelete [bold]{count}[/] chat(s) and all attachments?")
            if not typer.confirm("Confirm reset?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
        result = store.reset_all()

    if not result.ok:
        console.print(err_reset_incomplete(result.message))
        raise typer.Exit(1)
    console.print(f"[green]✓[/] Deleted {count} chat(s)")
