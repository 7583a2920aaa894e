"""User-level operations on a tag store.

Each operation takes the store and the invocation Options explicitly and
returns what it did; printing is left to the caller (see cli.py).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tagdb.errors import ConsistencyWarning, ParseError, StoreError, UsageError
from tagdb.evaluate import run_query
from tagdb.models import Action, Element, EntityKind, InitResult, Scope
from tagdb.paths import canonicalize
from tagdb.query import is_query
from tagdb.setlist import SetList

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tagdb.config import Options, TagDBConfig
    from tagdb.store import RelationStore

logger = logging.getLogger("tagdb.ops")

WILDCARD = "*"


@dataclass
class Outcome:
    """Counters for operations applied to several elements."""

    done: int = 0
    ignored: int = 0
    missing: list[str] = field(default_factory=list)


@dataclass
class TagSummary:
    files: int = 0
    tags_created: int = 0
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def has_wildcard(name: str) -> bool:
    return WILDCARD in name


def element_name(store: RelationStore, kind: EntityKind, name: str) -> str:
    """Canonical name for user input: file paths are canonicalized, tags kept as given."""
    if kind is EntityKind.FILE:
        return canonicalize(name, store.cfg.base_dir)
    return name


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def init_store(cfg: TagDBConfig) -> bool:
    """Create the store directories. Returns False if they already existed."""
    try:
        return cfg.ensure_dirs()
    except OSError as exc:
        raise StoreError(f"Unable to set up store ({exc.strerror})", cfg.root) from exc


# ---------------------------------------------------------------------------
# create / clone / merge / rename
# ---------------------------------------------------------------------------


def create(store: RelationStore, options: Options, names: Iterable[str]) -> Outcome:
    """Create empty tags; existing ones are counted as ignored."""
    if options.mode is not EntityKind.TAG:
        msg = "Operation 'create' applies only on tag elements."
        raise UsageError(msg)
    outcome = Outcome()
    for name in names:
        result, _ = store.init(EntityKind.TAG, name, create=True)
        if result is InitResult.CREATED:
            outcome.done += 1
        else:
            logger.debug("tag '%s' already exists", name)
            outcome.ignored += 1
    return outcome


def merge(store: RelationStore, options: Options, names: list[str]) -> int:
    """Give every named element the union of all their relations.

    Returns the number of elements merged (0 when fewer than two names).
    """
    if len(names) < 2:
        return 0
    kind = options.mode
    return _merge(store, [store.require(kind, element_name(store, kind, n)) for n in names])


def _merge(store: RelationStore, elements: list[Element]) -> int:
    related = SetList()
    for element in elements:
        related.update(store.list_related(element))
    for element in elements:
        for other in related:
            _, counterpart = store.init(element.kind.other, other, create=True)
            store.relate(Action.ADD, counterpart, element)
    return len(elements)


def _create_fresh(store: RelationStore, kind: EntityKind, name: str) -> Element:
    result, element = store.init(kind, name, create=True)
    if result is not InitResult.CREATED:
        msg = f"A {kind.label} named '{name}' already exists."
        raise UsageError(msg)
    return element


def clone(store: RelationStore, options: Options, source: str, target: str) -> None:
    """Create ``target`` carrying every relation of ``source``."""
    kind = options.mode
    source_element = store.require(kind, element_name(store, kind, source))
    target_name = element_name(store, kind, target)
    if kind is EntityKind.FILE and not os.path.exists(target):
        msg = f"Operation 'clone' cannot be applied on non-existing file '{target_name}'."
        raise UsageError(msg)
    _merge(store, [source_element, _create_fresh(store, kind, target_name)])


def rename(store: RelationStore, options: Options, old: str, new: str) -> None:
    """Move every relation of ``old`` to ``new``, then delete ``old``."""
    kind = options.mode
    old_element = store.require(kind, element_name(store, kind, old))
    new_element = _create_fresh(store, kind, element_name(store, kind, new))
    _merge(store, [old_element, new_element])
    store.soft_delete(old_element)


# ---------------------------------------------------------------------------
# delete / recover
# ---------------------------------------------------------------------------


def delete(store: RelationStore, options: Options, names: Iterable[str]) -> Outcome:
    """Soft-delete elements; wildcards match stored names."""
    kind = options.mode
    outcome = Outcome()
    targets = SetList()
    for name in names:
        if has_wildcard(name):
            targets.update(store.list_matching(Scope.DATABASE, kind, name))
            continue
        canonical = element_name(store, kind, name)
        if store.exists(kind, canonical):
            targets.insert(canonical)
        else:
            outcome.missing.append(canonical)
            outcome.ignored += 1

    for name in targets:
        element = store.get(kind, name)
        if element is None:
            outcome.missing.append(name)
            outcome.ignored += 1
            continue
        store.soft_delete(element)
        outcome.done += 1
    return outcome


def recover(store: RelationStore, options: Options, names: Iterable[str]) -> Outcome:
    """Restore soft-deleted elements; wildcards match trashed names."""
    kind = options.mode
    outcome = Outcome()
    targets = SetList()
    for name in names:
        if has_wildcard(name):
            targets.update(store.list_matching(Scope.DATABASE, kind, name, trashed=True))
        else:
            targets.insert(element_name(store, kind, name))

    for name in targets:
        try:
            recovered = store.recover(kind, name)
        except UsageError as exc:
            logger.warning("%s", exc)
            recovered = False
        if recovered:
            outcome.done += 1
        else:
            outcome.missing.append(name)
            outcome.ignored += 1
    return outcome


# ---------------------------------------------------------------------------
# tag
# ---------------------------------------------------------------------------


def parse_tag_args(args: Iterable[str]) -> tuple[list[str], list[str], list[str]]:
    """Split ``+tag``, ``-tag`` and file arguments."""
    add, remove, files = [], [], []
    for arg in args:
        if arg.startswith("+") and len(arg) > 1:
            add.append(arg[1:])
        elif arg.startswith("-") and len(arg) > 1:
            remove.append(arg[1:])
        else:
            files.append(arg)
    return add, remove, files


def tag(store: RelationStore, options: Options, args: Iterable[str]) -> TagSummary:
    """Add (``+name``) and remove (``-name``) tags on files.

    Added tags and file records are created on demand; removing a tag that
    does not exist is skipped.
    """
    add, remove, file_args = parse_tag_args(args)
    summary = TagSummary(added=add, removed=remove)

    files = SetList()
    for arg in file_args:
        if has_wildcard(arg):
            files.update(store.list_matching(Scope.FILESYSTEM, EntityKind.FILE, arg))
        else:
            files.insert(element_name(store, EntityKind.FILE, arg))
    summary.files = len(files)
    if not files:
        return summary

    add_tags = []
    for name in add:
        result, element = store.init(EntityKind.TAG, name, create=True)
        if result is InitResult.CREATED:
            summary.tags_created += 1
        add_tags.append(element)
    remove_tags = []
    for name in remove:
        element = store.get(EntityKind.TAG, name)
        if element is None:
            summary.skipped.append(name)
            continue
        remove_tags.append(element)

    for path in files:
        _, file_element = store.init(EntityKind.FILE, path, create=True)
        for tag_element in add_tags:
            store.relate(Action.ADD, file_element, tag_element)
        for tag_element in remove_tags:
            store.relate(Action.REMOVE, file_element, tag_element)
    return summary


# ---------------------------------------------------------------------------
# list / query
# ---------------------------------------------------------------------------


def list_elements(store: RelationStore, options: Options, pattern: str | None = None) -> SetList:
    """Elements of the current mode, optionally filtered by a name or wildcard."""
    kind = options.mode
    if pattern is None:
        return store.list_trashed(kind) if options.trash else store.list_all(kind)
    if has_wildcard(pattern):
        return store.list_matching(Scope.DATABASE, kind, pattern, trashed=options.trash)
    name = element_name(store, kind, pattern)
    if options.trash:
        return SetList([name]) if store.resolver.resolve_trashed(kind, name) else SetList()
    return SetList([name]) if store.exists(kind, name) else SetList()


def query(store: RelationStore, options: Options, criteria: Iterable[str]) -> SetList:
    """Elements of the current mode related to any of ``criteria`` (a union).

    In file mode (the default for queries) a criterion may be a boolean tag
    query such as ``mp3 & !music``. In tag mode criteria are file paths.
    """
    kind = options.mode
    criteria_kind = kind.other
    result = SetList()
    for criterion in criteria:
        if kind is EntityKind.FILE and is_query(criterion):
            logger.debug("query detected: %r", criterion)
            matched = run_query(store, criterion, operand_kind=criteria_kind)
            if matched is None:
                msg = f"Unable to interpret query '{criterion}'"
                raise ParseError(msg)
            result.update(matched)
            continue

        if has_wildcard(criterion):
            scope = Scope.FILESYSTEM if criteria_kind is EntityKind.FILE else Scope.DATABASE
            names: Iterable[str] = store.list_matching(scope, criteria_kind, criterion)
        else:
            names = [element_name(store, criteria_kind, criterion)]
        for name in names:
            element = store.get(criteria_kind, name)
            if element is not None:
                result.update(store.list_related(element))
    return result


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


def check(store: RelationStore) -> list[ConsistencyWarning]:
    """Find active relations not mirrored by their counterpart record."""
    warnings: list[ConsistencyWarning] = []
    for kind in (EntityKind.TAG, EntityKind.FILE):
        for record in store.iter_records(kind):
            for name in record.active_names:
                counterpart = store.get(kind.other, name)
                if counterpart is None:
                    message = f"{kind.label} '{record.name}' references missing {kind.other.label} '{name}'"
                elif record.name not in store.list_related(counterpart):
                    message = f"{kind.label} '{record.name}' -> {kind.other.label} '{name}' is not mirrored"
                else:
                    continue
                warning = ConsistencyWarning(message, owner=record.name, related=name)
                logger.warning("%s", warning)
                warnings.append(warning)
    return warnings
