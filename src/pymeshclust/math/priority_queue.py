"""Addressable min-priority queue keyed by element."""

import heapq
import itertools
from typing import Hashable, Iterator


class PriorityQueue:
    """Mapping from element to priority with O(log n) push and pop-min.

    Each element holds at most one live priority. Re-pushing an element
    replaces its priority; the superseded heap entry stays behind as a stale
    record that ``pop`` skips. ``compact`` rebuilds the heap from the live
    entries and runs automatically once stale records outnumber live ones.

    Args:
        capacity: Maximum number of live elements (None = unbounded).
    """

    def __init__(self, capacity: int | None = None):
        self._heap: list[list] = []
        self._entries: dict[Hashable, list] = {}
        self._counter = itertools.count()
        self._capacity = capacity
        self._stale = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, element: Hashable) -> bool:
        return element in self._entries

    def __iter__(self) -> Iterator[Hashable]:
        return iter(list(self._entries))

    @property
    def heap_size(self) -> int:
        """Number of heap records, live and stale."""
        return len(self._heap)

    def priority(self, element: Hashable) -> float:
        """Current priority of ``element`` (KeyError if absent)."""
        return self._entries[element][0]

    def push(self, element: Hashable, priority: float) -> None:
        """Insert ``element`` or replace its priority."""
        if element in self._entries:
            self._invalidate(element)
        elif self._capacity is not None and len(self._entries) >= self._capacity:
            raise OverflowError(
                f"Priority queue is full (capacity {self._capacity})")
        entry = [priority, next(self._counter), element, True]
        self._entries[element] = entry
        heapq.heappush(self._heap, entry)
        self._maybe_compact()

    def remove(self, element: Hashable) -> bool:
        """Drop ``element`` if present; returns whether it was queued."""
        if element not in self._entries:
            return False
        self._invalidate(element)
        self._maybe_compact()
        return True

    def peek(self) -> tuple[Hashable, float]:
        """Return the minimum (element, priority) without removing it."""
        self._discard_stale_head()
        if not self._heap:
            raise IndexError("peek from an empty priority queue")
        priority, _, element, _ = self._heap[0]
        return element, priority

    def pop(self) -> tuple[Hashable, float]:
        """Remove and return the minimum (element, priority)."""
        self._discard_stale_head()
        if not self._heap:
            raise IndexError("pop from an empty priority queue")
        priority, _, element, _ = heapq.heappop(self._heap)
        del self._entries[element]
        return element, priority

    def compact(self) -> None:
        """Rebuild the heap from live entries only."""
        self._heap = [entry for entry in self._heap if entry[3]]
        heapq.heapify(self._heap)
        self._stale = 0

    def _invalidate(self, element: Hashable) -> None:
        entry = self._entries.pop(element)
        entry[3] = False
        self._stale += 1

    def _discard_stale_head(self) -> None:
        while self._heap and not self._heap[0][3]:
            heapq.heappop(self._heap)
            self._stale -= 1

    def _maybe_compact(self) -> None:
        if self._stale > max(64, len(self._entries)):
            self.compact()
