"""In-memory formatted-context cache with TTL expiry and hit/miss counters."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from termsight.context.models import CacheEntry

DEFAULT_TTL_SECONDS = 300.0


class MemoryContextCache:
    """Dict-backed cache whose entries expire ``ttl_seconds`` after being written.

    Thread-safe via ``threading.Lock``: ``get`` may evict, so reads take the
    lock too. ``clock`` is injectable so tests can advance time.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def hit_count(self) -> int:
        with self._lock:
            return self._hits

    @property
    def miss_count(self) -> int:
        with self._lock:
            return self._misses

    @property
    def hit_rate(self) -> float:
        with self._lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Optional[str]:
        """Return content for *key*, or None on miss or expiry (expired entries are evicted)."""
        if not key:
            raise ValueError("Cache key must not be empty")
        with self._lock:
            entry = self._store.get(key)
            if entry is not None and entry.is_expired(self._ttl, self._clock()):
                del self._store[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.content

    def put(self, key: str, content: str) -> None:
        if not key:
            raise ValueError("Cache key must not be empty")
        with self._lock:
            self._store[key] = CacheEntry(key=key, content=content, created_at=self._clock())

    def invalidate(self, key: Optional[str] = None) -> None:
        """Remove *key*, or everything when *key* is None or empty."""
        with self._lock:
            if key:
                self._store.pop(key, None)
            else:
                self._store.clear()

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def age(self, key: str) -> Optional[float]:
        """Seconds since *key* was written, or None when absent. Does not count as an access."""
        with self._lock:
            entry = self._store.get(key)
            return None if entry is None else entry.age(self._clock())

    def cleanup_expired(self) -> int:
        """Evict every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._store.items() if e.is_expired(self._ttl, now)]
            for k in expired:
                del self._store[k]
            return len(expired)
