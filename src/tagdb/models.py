"""Data models for the tag/file record store."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class EntityKind(enum.Enum):
    """The two kinds of entities tracked by the store."""

    TAG = "tags"
    FILE = "files"

    @property
    def dirname(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return "tag" if self is EntityKind.TAG else "file"

    @property
    def other(self) -> EntityKind:
        return EntityKind.FILE if self is EntityKind.TAG else EntityKind.TAG


class Status(enum.Enum):
    """Marker character at the start of a relation line."""

    ACTIVE = "+"
    INACTIVE = "-"


class Action(enum.Enum):
    ADD = "+"
    REMOVE = "-"

    @property
    def status(self) -> Status:
        return Status.ACTIVE if self is Action.ADD else Status.INACTIVE


class Scope(enum.Enum):
    """Where a wildcard pattern is matched."""

    DATABASE = "database"
    FILESYSTEM = "filesystem"


class InitResult(enum.Enum):
    NOT_FOUND = 0
    EXISTS = 1
    CREATED = 2


class SetLineResult(enum.Enum):
    NOT_FOUND = 0
    UPDATED = 1
    APPENDED = 2


class RelateResult(enum.Enum):
    NOOP = 0
    UPDATED = 1
    CREATED = 2


@dataclass
class RelationLine:
    """A single relation line from a record body: ``+name`` or ``-name``."""

    status: Status
    name: str

    @classmethod
    def parse(cls, line: str) -> RelationLine | None:
        """Parse a body line. Returns None for blank or unmarked lines."""
        line = line.rstrip("\n")
        if not line:
            return None
        try:
            status = Status(line[0])
        except ValueError:
            return None
        return cls(status=status, name=line[1:])

    def render(self) -> str:
        return f"{self.status.value}{self.name}\n"

    @property
    def active(self) -> bool:
        return self.status is Status.ACTIVE


@dataclass
class Element:
    """A resolved entity: kind + canonical name + record address."""

    kind: EntityKind
    name: str
    path: Path

    def __str__(self) -> str:
        return f"{self.kind.label} '{self.name}'"


@dataclass
class Record:
    """A record loaded from <root>/<kind>/<digest>."""

    kind: EntityKind
    name: str
    path: Path
    lines: list[RelationLine] = field(default_factory=list)

    @property
    def active_names(self) -> list[str]:
        """Names of related entities whose line is not tombstoned."""
        return [ln.name for ln in self.lines if ln.active]
