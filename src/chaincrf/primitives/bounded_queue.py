"""Capacity-bounded max-priority queue."""

from __future__ import annotations

import heapq
import itertools
from typing import Generic, TypeVar

from chaincrf.exceptions import InvalidInputError

T = TypeVar("T")


class BoundedPriorityQueue(Generic[T]):
    """Max-priority queue that keeps at most ``capacity`` highest-scored items.

    Offering an item to a full queue evicts the lowest-scored item (which may
    be the offered one). Offers, evictions and polls are O(log n): the queue
    keeps a max-heap for polling and a min-heap for eviction over the same
    entries, discarding entries lazily once they leave through the other heap.
    Among equal scores, earlier offers are polled first and evicted last.
    """

    __slots__ = ("_capacity", "_max_heap", "_min_heap", "_live", "_counter")

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise InvalidInputError(message=f"Queue capacity must be positive. Found capacity={capacity}")
        self._capacity = capacity
        self._max_heap: list[tuple[float, int, T]] = []
        self._min_heap: list[tuple[float, int]] = []
        self._live: dict[int, T] = {}
        self._counter = itertools.count()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._live)

    def __bool__(self) -> bool:
        return bool(self._live)

    def offer(self, score: float, item: T) -> bool:
        """Add an item with the given score.

        Returns:
            True if the item is in the queue after the offer.
        """
        if len(self._live) >= self._capacity:
            self._discard_dead(self._min_heap)
            lowest_score, _ = self._min_heap[0]
            if score <= lowest_score:
                return False
            _, neg_evicted_id = heapq.heappop(self._min_heap)
            del self._live[-neg_evicted_id]
        entry_id = next(self._counter)
        self._live[entry_id] = item
        heapq.heappush(self._max_heap, (-score, entry_id, item))
        # later offers sort lower among equal scores in the min-heap
        heapq.heappush(self._min_heap, (score, -entry_id))
        return True

    def poll(self) -> tuple[float, T] | None:
        """Remove and return the highest-scored (score, item), or None if empty."""
        while self._max_heap:
            neg_score, entry_id, item = heapq.heappop(self._max_heap)
            if entry_id in self._live:
                del self._live[entry_id]
                return -neg_score, item
        return None

    def peek(self) -> tuple[float, T] | None:
        """Return the highest-scored (score, item) without removing it."""
        while self._max_heap:
            neg_score, entry_id, item = self._max_heap[0]
            if entry_id in self._live:
                return -neg_score, item
            heapq.heappop(self._max_heap)
        return None

    def _discard_dead(self, heap: list[tuple[float, int]]) -> None:
        while heap and -heap[0][1] not in self._live:
            heapq.heappop(heap)
