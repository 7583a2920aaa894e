"""Name fingerprints used as record addresses.

The digest algorithm is part of the on-disk format: changing it moves every
record to a different address, so it is a constant rather than a setting.
"""

from __future__ import annotations

import hashlib

DIGEST_NAME = "md5"
DIGEST_LENGTH = 32


def digest(name: str) -> str:
    """Return the 32-hex-char MD5 digest of ``name`` encoded as UTF-8."""
    return hashlib.md5(name.encode("utf-8"), usedforsecurity=False).hexdigest()
