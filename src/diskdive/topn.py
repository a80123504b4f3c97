"""Bounded top-N retention over a stream of scored items."""

import heapq
import itertools
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


def _size(item) -> int:
    return item.size


class TopNTracker(Generic[T]):
    """
    Keep only the N highest-scoring items seen so far.

    Backed by a min-heap of at most ``capacity`` items, so each push is
    O(log N) and memory stays bounded no matter how many items stream
    through. Items with equal scores come out in no particular order.

    Not thread-safe: feed it from a single aggregator thread.
    """

    def __init__(self, capacity: int, score: Callable[[T], int] = _size):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._score = score
        self._heap: list[tuple[int, int, T]] = []
        # Tie-breaker so items themselves are never compared
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    @property
    def min_score(self) -> int | None:
        """Score of the smallest retained item, or None when empty."""
        return self._heap[0][0] if self._heap else None

    def push(self, item: T) -> bool:
        """Offer an item. Returns True if it was retained."""
        score = self._score(item)
        if len(self._heap) < self.capacity:
            heapq.heappush(self._heap, (score, next(self._counter), item))
            return True
        if score > self._heap[0][0]:
            heapq.heapreplace(self._heap, (score, next(self._counter), item))
            return True
        return False

    def drain_descending(self) -> list[T]:
        """Remove every item and return them largest first."""
        drained: list[T] = []
        while self._heap:
            drained.append(heapq.heappop(self._heap)[2])
        drained.reverse()
        return drained
