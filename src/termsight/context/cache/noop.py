"""NoOp cache: always misses, never stores."""

from __future__ import annotations

from typing import Optional


class NullContextCache:
    """Stand-in used when caching is disabled, so callers need no branching."""

    hit_count = 0
    miss_count = 0
    hit_rate = 0.0

    def __len__(self) -> int:
        return 0

    def get(self, key: str) -> Optional[str]:
        return None

    def put(self, key: str, content: str) -> None:
        pass

    def invalidate(self, key: Optional[str] = None) -> None:
        pass

    def clear(self) -> None:
        pass
