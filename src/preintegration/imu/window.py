"""Bounded window of the most recent items, evicting oldest first."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class SlidingWindow(Generic[T]):
    """Fixed-capacity sequence ordered oldest to newest.

    Appending to a full window evicts the oldest item. Items can also be
    evicted by age or by predicate; every eviction method returns what it
    removed so callers can log or release it.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize window.

        Args:
            capacity: Maximum number of retained items
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._items: deque[T] = deque()
        self._capacity = capacity

    def append(self, item: T) -> list[T]:
        """Add ``item`` as the newest entry.

        Returns:
            Items evicted to respect the capacity (oldest first)
        """
        self._items.append(item)
        evicted = []
        while len(self._items) > self._capacity:
            evicted.append(self._items.popleft())
        return evicted

    def evict_older_than(self, threshold: float, key: Callable[[T], float]) -> list[T]:
        """Evict items from the front while ``key(item) < threshold``."""
        evicted = []
        while self._items and key(self._items[0]) < threshold:
            evicted.append(self._items.popleft())
        return evicted

    def evict_where(self, predicate: Callable[[T], bool]) -> list[T]:
        """Evict every item for which ``predicate`` is true."""
        kept: deque[T] = deque()
        evicted = []
        for item in self._items:
            (evicted if predicate(item) else kept).append(item)
        self._items = kept
        return evicted

    def clear(self) -> None:
        """Remove all items."""
        self._items.clear()

    @property
    def capacity(self) -> int:
        """Maximum number of retained items."""
        return self._capacity

    @property
    def oldest(self) -> T | None:
        """Oldest item, or None if empty."""
        return self._items[0] if self._items else None

    @property
    def latest(self) -> T | None:
        """Newest item, or None if empty."""
        return self._items[-1] if self._items else None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))
