"""Boundary helpers: path canonicalization and text encoding.

Records always hold UTF-8 text. Names arriving from the command line are
normalized to str here before they reach the store.
"""

from __future__ import annotations

import locale
import os
import sys
from pathlib import Path

INTERNAL_ENCODING = "utf-8"


def canonicalize(path: str, base: Path | None = None) -> str:
    """Return the canonical name for a file path.

    Absolute, symlink-resolved and without a trailing separator. With ``base``
    (local stores), the path is made relative to ``base`` instead.
    """
    resolved = os.path.realpath(os.path.expanduser(path))
    if base is not None:
        resolved = os.path.relpath(resolved, os.path.realpath(base))
    if len(resolved) > 1:
        resolved = resolved.rstrip(os.sep)
    return resolved


def to_internal(text: str | bytes) -> str:
    """Convert text from the process locale to the store's internal text."""
    if isinstance(text, bytes):
        encoding = locale.getpreferredencoding(False) or INTERNAL_ENCODING
        return text.decode(encoding, errors="replace")
    # argv decoded with surrogateescape: recover the raw bytes first
    try:
        text.encode(INTERNAL_ENCODING)
    except UnicodeEncodeError:
        raw = os.fsencode(text)
        return raw.decode(INTERNAL_ENCODING, errors="replace")
    return text


def to_external(text: str) -> str:
    """Make internal text printable on the current stdout encoding."""
    encoding = getattr(sys.stdout, "encoding", None) or INTERNAL_ENCODING
    return text.encode(encoding, errors="replace").decode(encoding)
