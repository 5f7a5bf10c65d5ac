"""notechat rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from notechat.cli.errors import err_no_db
    console.print(err_no_db(".notechat.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str) -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  notechat init"
    )


def err_storage(message: str, db_path: str) -> str:
    """The database could not be opened or written."""
    return (
        f"[red]Error:[/] Storage failure: {message}\n"
        f"  Check that '{db_path}' is writable and the disk is not full, then retry."
    )


def err_archive_format(path: str, message: str) -> str:
    """Import file is not a usable notechat archive."""
    return (
        f"[red]Error:[/] '{path}' is not a valid notechat archive: {message}\n"
        "  Use a file created by:  notechat export\n"
        "  Nothing was changed."
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'\n"
        "  Check the path and run the command again."
    )


def err_chat_not_found(chat_id: str) -> str:
    return (
        f"[red]Error:[/] No chat with id '{chat_id}'.\n"
        "  Run:  notechat chats  to list chat ids."
    )


def err_invalid_input(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  Run the command with --help to see the expected arguments."
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix notechat.yaml or ~/.notechat/config.yaml and retry."
    )


def err_reset_incomplete(message: str) -> str:
    """Reset failed halfway — state on disk is unknown."""
    return (
        f"[red]Error:[/] {message}\n"
        "  Stored data may be partially cleared.\n"
        "  Run:  notechat reset --yes  again, or  notechat status  to inspect."
    )


def warn_integrity(count: int) -> str:
    """Attachments skipped because their bytes were missing."""
    return (
        f"[yellow]⚠[/] {count} attachment(s) skipped — their file contents were missing.\n"
        "  Run:  notechat status  to list dangling attachments."
    )
