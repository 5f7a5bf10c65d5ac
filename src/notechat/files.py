"""Attachment file helpers: human-readable sizes and extensions."""

from __future__ import annotations

import math

_UNITS = ("Bytes", "KB", "MB", "GB", "TB")
_K = 1024


def format_size(num_bytes: int) -> str:
    """Format a byte count the way attachment metadata stores it.

    Two decimals at most, trailing zeros dropped, rounding half up.

    Examples:
        0    -> "0 Bytes"
        1024 -> "1 KB"
        1536 -> "1.5 KB"
    """
    if num_bytes < 0:
        raise ValueError(f"num_bytes must be >= 0, got {num_bytes}")
    if num_bytes == 0:
        return "0 Bytes"
    i = 0
    while i < len(_UNITS) - 1 and num_bytes >= _K ** (i + 1):
        i += 1
    value = math.floor(num_bytes / _K**i * 100 + 0.5) / 100
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[i]}"


def get_extension(filename: str) -> str:
    """Return the text after the last dot, or "" for none / dotfiles like ".env"."""
    idx = filename.rfind(".")
    if idx <= 0:
        return ""
    return filename[idx + 1 :]


def safe_filename(filename: str) -> str:
    """Flatten *filename* into a single archive path segment."""
    cleaned = filename.replace("/", "_").replace("\\", "_").strip()
    if cleaned in ("", ".", ".."):
        return "file"
    return cleaned
