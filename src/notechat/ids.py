"""Identifier generation for chats, notes and attachments."""

from __future__ import annotations

import secrets
import time


class IdGenerator:
    """Time-ordered identifiers: 12 hex digits of milliseconds + 8 random hex digits.

    The time component never goes backwards within one generator, so two ids
    issued in the same millisecond still sort in issue order.
    """

    def __init__(self) -> None:
        self._last_ms = 0

    def new_id(self) -> str:
        ms = max(int(time.time() * 1000), self._last_ms + 1)
        self._last_ms = ms
        return f"{ms:012x}{secrets.token_hex(4)}"


_default = IdGenerator()


def new_id() -> str:
    """Return a new unique identifier from the process-wide generator."""
    return _default.new_id()
