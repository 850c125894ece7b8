"""Bounded, sorted bookkeeping of the best candidates seen during a sweep."""

import bisect
import heapq
import itertools
from dataclasses import dataclass

from .config import ConfigurationError
from .geometry import SphericalCoords


@dataclass(frozen=True)
class LocalMinimum:
    """One evaluated grid point of the orientation sweep.

    ``ordinal`` is the position of the point in the sweep order
    (axis, magnitude, ratio) and breaks ties between equal misfits.
    """

    misfit: float
    axis: SphericalCoords
    rot_angle: float
    stress_ratio: float
    ordinal: tuple = ()

    @property
    def key(self) -> tuple:
        return (self.misfit, self.ordinal)


class BoundedLocalMinimaList:
    """Fixed-capacity list of LocalMinimum kept ascending by (misfit, ordinal)."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ConfigurationError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._entries: list[LocalMinimum] = []

    def accepts(self, misfit: float) -> bool:
        """Quick rejection test before building an entry."""
        return len(self._entries) < self.capacity or misfit <= self._entries[-1].misfit

    def insert(self, entry: LocalMinimum) -> bool:
        """Insert ``entry``; returns False when it would be the evicted one."""
        if len(self._entries) == self.capacity and entry.key >= self._entries[-1].key:
            return False
        bisect.insort(self._entries, entry, key=lambda e: e.key)
        if len(self._entries) > self.capacity:
            self._entries.pop()
        return True

    @property
    def best(self) -> LocalMinimum | None:
        return self._entries[0] if self._entries else None

    @property
    def worst(self) -> LocalMinimum | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    def __repr__(self) -> str:
        best = f"{self.best.misfit:.6g}" if self._entries else "-"
        return f"BoundedLocalMinimaList({len(self)}/{self.capacity}, best={best})"

    @classmethod
    def merge(cls, *lists: "BoundedLocalMinimaList",
              capacity: int | None = None) -> "BoundedLocalMinimaList":
        """k-way merge of sorted partial lists, truncated to ``capacity``."""
        if capacity is None:
            capacity = max((lst.capacity for lst in lists), default=1)
        merged = cls(capacity)
        streams = [lst._entries for lst in lists]
        merged._entries = list(
            itertools.islice(heapq.merge(*streams, key=lambda e: e.key), capacity)
        )
        return merged
