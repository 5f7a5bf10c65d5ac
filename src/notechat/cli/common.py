"""Shared helpers for CLI commands: config, database resolution, error output."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from notechat.cli.errors import err_archive_format, err_config, err_invalid_input, err_storage
from notechat.config import ConfigError, NotechatConfig, load_config
from notechat.errors import ArchiveFormatError, NotechatError, ValidationError
from notechat.facade import Persistence, Result

console = Console()


def load_cfg() -> NotechatConfig:
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc


def resolve_db(db: Path | None, cfg: NotechatConfig) -> Path:
    return db if db is not None else cfg.storage.db_path


def open_store(db_path: Path, cfg: NotechatConfig) -> Persistence:
    """Open the facade over *db_path* or exit with an actionable error."""
    opened = Persistence.open(db_path, archive_cfg=cfg.archive)
    if not opened.ok:
        console.print(err_storage(opened.message, str(db_path)))
        raise typer.Exit(1)
    return opened.unwrap()


def fail(result: Result, db_path: Path, source: str = "") -> None:
    """Print the error carried by a failed *result* and exit 1."""
    error: NotechatError | None = result.error
    if isinstance(error, ArchiveFormatError):
        console.print(err_archive_format(source, str(error)))
    elif isinstance(error, ValidationError):
        console.print(err_invalid_input(str(error)))
    else:
        console.print(err_storage(result.message, str(db_path)))
    raise typer.Exit(1)
