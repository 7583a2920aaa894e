"""SetList: sorted, duplicate-free list of names.

Query results and relation listings are SetLists. Iteration order is always
ascending, so output is deterministic regardless of directory order.
"""

from __future__ import annotations

import bisect
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class SetList:
    """Ordered set of strings backed by a sorted list."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._items: list[str] = sorted(set(items))

    def insert(self, name: str) -> bool:
        """Insert ``name``; returns False if it was already present."""
        i = bisect.bisect_left(self._items, name)
        if i < len(self._items) and self._items[i] == name:
            return False
        self._items.insert(i, name)
        return True

    def discard(self, name: str) -> bool:
        i = bisect.bisect_left(self._items, name)
        if i < len(self._items) and self._items[i] == name:
            del self._items[i]
            return True
        return False

    def intersect(self, other: SetList) -> SetList:
        """Entries present in both lists."""
        return SetList._from_sorted([s for s in self._items if s in other])

    def diff(self, other: SetList) -> SetList:
        """Entries of this list that are not in ``other``."""
        return SetList._from_sorted([s for s in self._items if s not in other])

    def union(self, other: SetList) -> SetList:
        result = SetList._from_sorted(list(self._items))
        result.update(other)
        return result

    def update(self, names: Iterable[str]) -> None:
        for name in names:
            self.insert(name)

    @classmethod
    def _from_sorted(cls, items: list[str]) -> SetList:
        obj = cls()
        obj._items = items
        return obj

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        i = bisect.bisect_left(self._items, name)
        return i < len(self._items) and self._items[i] == name

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SetList):
            return self._items == other._items
        return NotImplemented

    def __and__(self, other: SetList) -> SetList:
        return self.intersect(other)

    def __or__(self, other: SetList) -> SetList:
        return self.union(other)

    def __sub__(self, other: SetList) -> SetList:
        return self.diff(other)

    def __repr__(self) -> str:
        return f"SetList({self._items!r})"
