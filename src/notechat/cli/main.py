"""notechat CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from notechat.cli.chats import chats_cmd, delete_cmd, edit_cmd, new_cmd, note_cmd
from notechat.cli.common import console, load_cfg
from notechat.cli.init import init_cmd
from notechat.cli.reset import reset_cmd
from notechat.cli.status import status_cmd
from notechat.cli.transfer import export_cmd, import_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("notechat")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"notechat {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else load_cfg().logging.level_no
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


app = typer.Typer(
    name="notechat",
    help=(
        "notechat — chats of notes and attachments, stored locally.\n\n"
        "  notechat export  Back up everything to one zip archive.\n"
        "  notechat import  Restore from an archive (replaces current data)."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output."),
    ] = False,
) -> None:
    """notechat — chats of notes and attachments, stored locally."""
    _configure_logging(verbose)


app.command("init")(init_cmd)
app.command("status")(status_cmd)
app.command("chats")(chats_cmd)
app.command("new")(new_cmd)
app.command("edit")(edit_cmd)
app.command("delete")(delete_cmd)
app.command("note")(note_cmd)
app.command("export")(export_cmd)
app.command("import")(import_cmd)
app.command("reset")(reset_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed notechat version."""
    typer.echo(f"notechat {_installed_version()}")


if __name__ == "__main__":
    app()
