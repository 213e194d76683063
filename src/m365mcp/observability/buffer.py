"""Fixed-capacity ring of log entries.

Slots are preallocated; once full, each write overwrites the oldest slot and
advances the cursor, so memory stays constant in steady state.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class CircularBuffer(Generic[T]):
    """Ring buffer preserving insertion order on snapshot.

    Example:
        >>> buf = CircularBuffer[int](3)
        >>> for i in range(5): buf.add(i)
        >>> buf.snapshot()
        [2, 3, 4]
    """

    __slots__ = ("_capacity", "_slots", "_size", "_cursor", "_lock")

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._slots: list[T | None] = [None] * capacity
        self._size = 0
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self._size

    def add(self, entry: T) -> None:
        with self._lock:
            self._slots[self._cursor] = entry
            self._cursor = (self._cursor + 1) % self._capacity
            if self._size < self._capacity:
                self._size += 1

    def snapshot(self) -> list[T]:
        """Entries oldest to newest."""
        with self._lock:
            if self._size < self._capacity:
                return list(self._slots[:self._size])  # type: ignore[arg-type]
            return self._slots[self._cursor:] + self._slots[:self._cursor]  # type: ignore[return-value]

    def clear(self) -> None:
        with self._lock:
            self._slots = [None] * self._capacity
            self._size = 0
            self._cursor = 0
