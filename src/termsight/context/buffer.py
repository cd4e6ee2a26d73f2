"""Fixed-capacity ring buffer of terminal lines."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class LineBuffer:
    """Array-backed ring buffer holding the most recent terminal lines.

    ``append`` is O(1) and evicts the oldest line once the buffer is full;
    ``last_n`` copies out at most ``k`` lines in O(k). A single
    ``threading.Lock`` guards the slots and cursors, so the terminal feed
    thread and request-assembly readers can share one instance.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._slots: list[Optional[str]] = [None] * capacity
        self._head = 0  # index of the oldest line
        self._count = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._count == 0

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def append(self, line: str) -> None:
        with self._lock:
            tail = (self._head + self._count) % self._capacity
            self._slots[tail] = line
            if self._count == self._capacity:
                # Full: the slot just written was the oldest line
                self._head = (self._head + 1) % self._capacity
            else:
                self._count += 1

    def extend(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.append(line)

    def last_n(self, k: int) -> list[str]:
        """Return the newest ``min(k, len)`` lines, oldest first.

        ``k <= 0`` or ``k`` larger than the current size means "everything".
        """
        with self._lock:
            count = self._count
            if k <= 0 or k > count:
                k = count
            start = self._head + (count - k)
            return [self._slots[(start + i) % self._capacity] for i in range(k)]  # type: ignore[misc]

    def to_list(self) -> list[str]:
        return self.last_n(0)

    def total_characters(self) -> int:
        return sum(len(line) for line in self.to_list())

    def clear(self) -> None:
        with self._lock:
            removed = self._count
            self._slots = [None] * self._capacity
            self._head = 0
            self._count = 0
        log.debug("Cleared line buffer, removed %d lines", removed)
