"""notechat init — create the local database and the global config file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from notechat.cli.common import console, fail, load_cfg, resolve_db
from notechat.config import ensure_global_config
from notechat.facade import Persistence


def init_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Database path (default: storage.db_path from config)."),
    ] = None,
) -> None:
    """Create the notechat database (safe to re-run; existing data is kept)."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    existed = db_path.exists()

    opened = Persistence.open(db_path, archive_cfg=cfg.archive)
    if not opened.ok:
        fail(opened, db_path)
    with opened.unwrap() as store:
        version = store.schema_version()
        chats = len(store.dataset)

    if existed:
        console.print(f"[yellow]⚠[/]  {db_path} already exists — {chats} chat(s) kept.")
    else:
        console.print(f"  [green]✓[/] {db_path}")
    console.print(f"  Schema version: {version}")

    cfg_path = ensure_global_config()
    console.print(f"  [green]✓[/] {cfg_path} (global config)")
