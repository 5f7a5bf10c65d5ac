"""notechat export / import — whole-dataset backup and restore."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from notechat.archive import archive_filename
from notechat.cli.common import console, fail, load_cfg, open_store, resolve_db
from notechat.cli.errors import err_file_not_found, err_no_db, warn_integrity

_DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Database path (default: storage.db_path from config)."),
]


def export_cmd(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Archive path (default: notechat_backup_<date>.zip)."),
    ] = None,
    db: _DbOption = None,
) -> None:
    """Export every chat, note and attachment to one zip archive."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    target = output if output is not None else cfg.archive.export_dir / archive_filename()

    with open_store(db_path, cfg) as store:
        result = store.export_archive()
    if not result.ok:
        fail(result, db_path)
    exported = result.unwrap()

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(exported.data)
    console.print(
        f"[green]✓[/] Exported to {target} ({exported.attachment_count} attachment(s))"
    )
    if result.warnings:
        console.print(warn_integrity(len(result.warnings)))


def import_cmd(
    archive: Annotated[Path, typer.Argument(help="Archive (.zip) or legacy backup (.json).")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: _DbOption = None,
) -> None:
    """Replace all data with the contents of an archive."""
    cfg = load_cfg()
    db_path = resolve_db(db, cfg)
    if not archive.is_file():
        console.print(err_file_not_found(str(archive)))
        raise typer.Exit(1)

    with open_store(db_path, cfg) as store:
        if len(store.dataset) and not yes:
            console.print(
                f"\nImport replaces [bold]{len(store.dataset)}[/] existing chat(s)."
            )
            if not typer.confirm("Continue?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)
        result = store.import_archive(archive.read_bytes())

    if not result.ok:
        fail(result, db_path, source=str(archive))
    report = result.unwrap()
    kind = "legacy backup" if report.legacy else f"archive v{report.version}"
    console.print(
        f"[green]✓[/] Imported {kind}: {report.chat_count} chat(s), "
        f"{report.note_count} note(s), {report.attachment_count} attachment(s)"
    )
    if result.warnings:
        console.print(warn_integrity(len(result.warnings)))
