"""Exception types for tagdb.

UsageError and ParseError are user-facing and shown as-is by the CLI.
StoreError wraps filesystem failures and names the record that failed.
ConsistencyWarning is never raised; it is logged and collected by ``check``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class TagDBError(Exception):
    """Base class for tagdb errors."""


class UsageError(TagDBError):
    """Missing or invalid arguments, or a reference to a nonexistent entity."""


class StoreError(TagDBError):
    """I/O failure on the record store."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)


class ParseError(TagDBError):
    """Malformed query or stack underflow while compiling/evaluating it."""


class ConsistencyWarning(UserWarning):
    """A symmetric relation was found asymmetric."""

    def __init__(self, message: str, owner: str = "", related: str = "") -> None:
        self.owner = owner
        self.related = related
        super().__init__(message)
