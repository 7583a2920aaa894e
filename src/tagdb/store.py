"""Read and write tag/file records.

RelationStore is the public API:
    store = RelationStore(cfg)
    result, tag = store.init(EntityKind.TAG, "mp3", create=True)
    _, song = store.init(EntityKind.FILE, "/music/a.mp3", create=True)
    store.relate(Action.ADD, song, tag)
    store.list_related(tag)            # SetList(['/music/a.mp3'])

Record layout (UTF-8 text, one file per entity):
    mp3                 # line 1: canonical name
    +/music/a.mp3       # active relation
    -/music/old.mp3     # tombstone, kept for history

Relations are symmetric but written as two independent single-record
updates: a failure between them leaves the pair asymmetric until the user
re-issues the operation (``tagdb check`` reports it).

Rewrites (status flips) replace the whole record under flock(LOCK_EX);
new relation lines are appended under the same lock.
"""

from __future__ import annotations

import fcntl
import fnmatch
import glob
import logging
import os
from typing import TYPE_CHECKING

from tagdb.errors import ConsistencyWarning, StoreError, UsageError
from tagdb.models import (
    Action,
    Element,
    EntityKind,
    InitResult,
    Record,
    RelateResult,
    RelationLine,
    Scope,
    SetLineResult,
    Status,
)
from tagdb.paths import canonicalize
from tagdb.resolver import NameResolver, is_trashed, read_identity, trash_path
from tagdb.setlist import SetList

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from tagdb.config import TagDBConfig

logger = logging.getLogger("tagdb.store")


class RelationStore:
    """Flat-file store of tag and file records."""

    def __init__(self, cfg: TagDBConfig, resolver: NameResolver | None = None) -> None:
        self.cfg = cfg
        self.resolver = resolver or NameResolver(cfg.root)

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def init(self, kind: EntityKind, name: str, *, create: bool = False) -> tuple[InitResult, Element]:
        """Locate the record of ``name``; create it when missing and asked to."""
        path = self.resolver.resolve(kind, name)
        element = Element(kind=kind, name=name, path=path)
        if path.exists():
            return InitResult.EXISTS, element
        if not create:
            return InitResult.NOT_FOUND, element
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(name + "\n")
        except FileExistsError:
            return InitResult.EXISTS, element
        except OSError as exc:
            raise StoreError(f"Couldn't create record for {element} ({exc.strerror})", path) from exc
        logger.debug("created %s -> %s", element, path.name)
        return InitResult.CREATED, element

    def get(self, kind: EntityKind, name: str) -> Element | None:
        """Existing element or None."""
        result, element = self.init(kind, name)
        return element if result is InitResult.EXISTS else None

    def require(self, kind: EntityKind, name: str) -> Element:
        """Existing element; a missing one is a usage error."""
        element = self.get(kind, name)
        if element is None:
            msg = f"{kind.label.capitalize()} '{name}' does not exist."
            raise UsageError(msg)
        return element

    def exists(self, kind: EntityKind, name: str) -> bool:
        return self.get(kind, name) is not None

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read_record(self, element: Element) -> Record:
        """Load a record with all its relation lines (tombstones included)."""
        return self._read_path(element.kind, element.path)

    def _read_path(self, kind: EntityKind, path: Path) -> Record:
        try:
            with path.open(encoding="utf-8") as f:
                header = f.readline()
                lines = [rl for rl in (RelationLine.parse(line) for line in f) if rl is not None]
        except OSError as exc:
            raise StoreError(f"Couldn't read record ({exc.strerror})", path) from exc
        except UnicodeDecodeError as exc:
            raise StoreError(f"Record is not valid UTF-8 (byte {exc.start})", path) from exc
        return Record(kind=kind, name=header.rstrip("\n"), path=path, lines=lines)

    def list_related(self, element: Element) -> SetList:
        """Names of entities actively related to ``element``."""
        return SetList(self.read_record(element).active_names)

    def iter_records(self, kind: EntityKind, *, trashed: bool = False) -> Iterator[Record]:
        """Iterate live (or trashed) records of a kind, in directory order."""
        directory = self.resolver.kind_dir(kind)
        try:
            entries = list(directory.iterdir())
        except OSError as exc:
            raise StoreError(f"Couldn't open {kind.dirname} directory ({exc.strerror})", directory) from exc
        for path in entries:
            if path.name.startswith(".") or not path.is_file():
                continue
            if is_trashed(path) != trashed:
                continue
            yield self._read_path(kind, path)

    def list_all(self, kind: EntityKind) -> SetList:
        """Names of every live entity of ``kind``."""
        return SetList(r.name for r in self.iter_records(kind) if r.name)

    def list_trashed(self, kind: EntityKind) -> SetList:
        """Names of every soft-deleted entity of ``kind``."""
        return SetList(r.name for r in self.iter_records(kind, trashed=True) if r.name)

    def list_matching(
        self,
        scope: Scope,
        kind: EntityKind,
        pattern: str,
        *,
        trashed: bool = False,
    ) -> SetList:
        """Names matching a shell wildcard.

        DATABASE matches stored names of ``kind`` (no escaping).
        FILESYSTEM globs the disk and returns canonical paths; a pattern that
        matches nothing is returned as-is, canonicalized.
        """
        if scope is Scope.FILESYSTEM:
            hits = glob.glob(os.path.expanduser(pattern)) or [pattern]
            return SetList(canonicalize(h, self.cfg.base_dir) for h in hits)
        names = self.list_trashed(kind) if trashed else self.list_all(kind)
        return SetList(n for n in names if fnmatch.fnmatchcase(n, pattern))

    # ------------------------------------------------------------------
    # Write: relations
    # ------------------------------------------------------------------

    def set_line(self, status: Status, element: Element, other_name: str) -> SetLineResult:
        """Set the status of the line naming ``other_name`` in ``element``'s record.

        An existing line gets its marker replaced. A missing line is appended
        when activating, and left absent when deactivating.
        """
        found = False

        def flip(line: RelationLine) -> RelationLine:
            nonlocal found
            if line.name == other_name:
                found = True
                return RelationLine(status=status, name=line.name)
            return line

        self._rewrite_with_lock(element.path, flip)
        if found:
            return SetLineResult.UPDATED
        if status is Status.INACTIVE:
            return SetLineResult.NOT_FOUND
        self._append_line(element.path, RelationLine(status=Status.ACTIVE, name=other_name))
        return SetLineResult.APPENDED

    def relate(self, action: Action, a: Element, b: Element) -> RelateResult:
        """Add or remove the symmetric relation between ``a`` and ``b``.

        Both records are updated independently; the result reports ``a``'s side.
        A pair that was active on one side only is logged before being repaired.
        """
        if a.kind is b.kind:
            msg = f"Cannot relate two {a.kind.dirname}: {a} and {b}"
            raise UsageError(msg)

        # a tombstone on one side and no line on the other are both inactive
        active_a = b.name in self.read_record(a).active_names
        active_b = a.name in self.read_record(b).active_names
        if active_a is not active_b:
            warning = ConsistencyWarning(
                f"asymmetric relation between {a} and {b} (active on {a if active_a else b} only)",
                owner=a.name,
                related=b.name,
            )
            logger.warning("%s", warning)

        res_a = self.set_line(action.status, a, b.name)
        self.set_line(action.status, b, a.name)

        logger.debug("%s %s %s -> %s", action.value, a, b, res_a.name)
        if res_a is SetLineResult.UPDATED:
            return RelateResult.UPDATED
        if res_a is SetLineResult.APPENDED:
            return RelateResult.CREATED
        return RelateResult.NOOP

    # ------------------------------------------------------------------
    # Write: soft delete / recover
    # ------------------------------------------------------------------

    def soft_delete(self, element: Element) -> None:
        """Detach ``element`` from all counterparts, then move its record to the trash.

        The record content is left untouched so recover can replay it.
        """
        record = self.read_record(element)
        for name in record.active_names:
            counterpart = self.get(element.kind.other, name)
            if counterpart is None:
                logger.warning("%s references missing %s '%s'", element, element.kind.other.label, name)
                continue
            self.set_line(Status.INACTIVE, counterpart, element.name)

        target = trash_path(element.path)
        try:
            os.replace(element.path, target)
        except OSError as exc:
            raise StoreError(f"Couldn't delete record of {element} ({exc.strerror})", element.path) from exc
        logger.info("deleted %s", element)

    def recover(self, kind: EntityKind, name: str) -> bool:
        """Restore a soft-deleted entity and every relation active in it.

        Returns False when no trashed record exists for ``name``.
        """
        trashed = self.resolver.resolve_trashed(kind, name)
        if trashed is None:
            return False
        path = self.resolver.resolve(kind, name)
        if read_identity(path) is not None:
            msg = f"Cannot recover {kind.label} '{name}': it already exists."
            raise UsageError(msg)
        try:
            os.replace(trashed, path)
        except OSError as exc:
            raise StoreError(f"Couldn't restore record of {kind.label} '{name}' ({exc.strerror})", trashed) from exc

        element = Element(kind=kind, name=name, path=path)
        for other in self.read_record(element).active_names:
            _, counterpart = self.init(kind.other, other, create=True)
            # the recovered record already holds the active line
            self.set_line(Status.ACTIVE, counterpart, name)
        logger.info("recovered %s", element)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _append_line(self, path: Path, line: RelationLine) -> None:
        data = line.render().encode("utf-8")
        try:
            with path.open("a+b") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                # hand-edited records may lack the final newline
                if f.seek(0, os.SEEK_END) > 0:
                    f.seek(-1, os.SEEK_END)
                    if f.read(1) != b"\n":
                        data = b"\n" + data
                f.write(data)
        except OSError as exc:
            raise StoreError(f"Couldn't write record ({exc.strerror})", path) from exc

    def _rewrite_with_lock(
        self,
        path: Path,
        transform: Callable[[RelationLine], RelationLine],
    ) -> None:
        """Read-modify-write a record body under exclusive flock."""
        try:
            with path.open("r+", encoding="utf-8") as f:
                fcntl.flock(f, fcntl.LOCK_EX)
                header = f.readline()
                body = f.readlines()
                new_lines = []
                changed = False
                for raw in body:
                    parsed = RelationLine.parse(raw)
                    if parsed is None:
                        new_lines.append(raw)
                        continue
                    updated = transform(parsed)
                    changed = changed or updated != parsed
                    new_lines.append(updated.render())
                if not changed:
                    return
                f.seek(0)
                f.write(header)
                f.writelines(new_lines)
                f.truncate()
        except OSError as exc:
            raise StoreError(f"Couldn't update record ({exc.strerror})", path) from exc
        except UnicodeDecodeError as exc:
            raise StoreError(f"Record is not valid UTF-8 (byte {exc.start})", path) from exc
