"""Map (kind, name) to a record address.

The address of an entity is ``<root>/<kind>/<digest(name)>``. When that slot
is taken by a different name, successive slots ``<digest>.01``,
``<digest>.02``, ... are probed until a slot belonging to the same name
(same entity) or a free slot (new entity) is found. Resolving never writes.

A slot is taken by a name if its record, or failing that its trashed record
``<slot>.trash``, carries that name on line 1. Trashed records therefore
keep their slot, and a later recover always finds it free or still theirs.

Known limitation: two processes creating colliding names at the same time
may pick the same free slot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tagdb import fingerprint
from tagdb.errors import StoreError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from tagdb.models import EntityKind

logger = logging.getLogger("tagdb.resolver")

TRASH_SUFFIX = ".trash"
_MAX_PROBES = 99


def read_identity(path: Path) -> str | None:
    """Return the identity line of a record, or None if it does not exist."""
    try:
        with path.open(encoding="utf-8") as f:
            first = f.readline()
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StoreError(f"Couldn't read record ({exc.strerror})", path) from exc
    except UnicodeDecodeError as exc:
        raise StoreError(f"Record is not valid UTF-8 (byte {exc.start})", path) from exc
    return first.rstrip("\n")


def trash_path(path: Path) -> Path:
    return path.with_name(path.name + TRASH_SUFFIX)


def is_trashed(path: Path) -> bool:
    return path.name.endswith(TRASH_SUFFIX)


class NameResolver:
    """Computes record addresses under a store root."""

    def __init__(self, root: Path, digest: Callable[[str], str] = fingerprint.digest) -> None:
        self.root = root
        self._digest = digest

    def kind_dir(self, kind: EntityKind) -> Path:
        return self.root / kind.dirname

    def candidates(self, kind: EntityKind, name: str) -> Iterator[Path]:
        """Yield the probe sequence for ``name``: base, base.01, base.02, ..."""
        base = self._digest(name)
        directory = self.kind_dir(kind)
        yield directory / base
        for inc in range(1, _MAX_PROBES + 1):
            yield directory / f"{base}.{inc:02d}"

    def owner(self, path: Path) -> str | None:
        """Name holding a slot: the live record's, else the trashed record's."""
        identity = read_identity(path)
        if identity is None:
            identity = read_identity(trash_path(path))
        return identity

    def resolve(self, kind: EntityKind, name: str) -> Path:
        """Address of ``name``: its existing slot, or the first free one."""
        for path in self.candidates(kind, name):
            owner = self.owner(path)
            if owner is None or owner == name:
                logger.debug("resolved %s %r -> %s", kind.label, name, path.name)
                return path
            logger.debug("slot %s held by %r, probing next for %r", path.name, owner, name)
        msg = f"No free slot for {kind.label} '{name}' after {_MAX_PROBES} probes"
        raise StoreError(msg, self.kind_dir(kind))

    def resolve_trashed(self, kind: EntityKind, name: str) -> Path | None:
        """Trashed record of ``name``, or None if it was never deleted."""
        trashed = trash_path(self.resolve(kind, name))
        if read_identity(trashed) == name:
            return trashed
        return None
