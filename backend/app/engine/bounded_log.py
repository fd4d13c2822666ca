"""
Bounded Log

Capacity-bounded, append-only log used by the analytics store.
Once full, every append evicts the oldest entry (FIFO).  Append and
evict happen under one lock so concurrent request threads can never
lose an entry or evict twice.
"""

from __future__ import annotations

import threading
from collections import deque
from itertools import islice
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class BoundedLog(Generic[T]):
    """Thread-safe ring buffer exposing only ``append`` and windowed reads.

    Usage::

        log = BoundedLog[int](capacity=3)
        for i in range(5):
            log.append(i)
        log.read()        # [2, 3, 4]
        log.read(last=2)  # [3, 4]
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, item: T) -> Optional[T]:
        """Append *item*; return the evicted entry, if any."""
        with self._lock:
            evicted = self._items[0] if len(self._items) == self._capacity else None
            self._items.append(item)
        return evicted

    def read(self, last: Optional[int] = None) -> list[T]:
        """Return a copy of the newest *last* entries (all when ``None``),
        oldest first."""
        with self._lock:
            if last is None:
                return list(self._items)
            if last <= 0:
                return []
            # Walk back from the newest entry; cost follows the window.
            window = list(islice(reversed(self._items), last))
        window.reverse()
        return window

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
