"""Data models for the terminal context modules."""

from __future__ import annotations

import dataclasses
import time
from enum import Enum
from typing import Optional


class TruncationReason(str, Enum):
    NONE = "none"
    TOKEN_LIMIT = "token_limit"  # Request budget was the binding bound
    LINE_LIMIT = "line_limit"
    MODEL_LIMIT = "model_limit"  # Model's own ceiling was the binding bound
    USER_LIMIT = "user_limit"  # Policy's configured max_tokens was the binding bound


@dataclasses.dataclass
class CacheEntry:
    """Formatted context memoized under a key, with its monotonic write time."""

    key: str
    content: str
    created_at: float = dataclasses.field(default_factory=time.monotonic)

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        """Check if this entry has reached its TTL."""
        current = time.monotonic() if now is None else now
        return (current - self.created_at) >= ttl_seconds

    def age(self, now: float | None = None) -> float:
        current = time.monotonic() if now is None else now
        return current - self.created_at


@dataclasses.dataclass(frozen=True)
class TruncationResult:
    """Outcome of fitting the context window into a token budget."""

    truncated_content: str
    original_tokens: int
    truncated_tokens: int
    was_truncated: bool = False
    reason: TruncationReason = TruncationReason.NONE
    working_directory: Optional[str] = None

    @property
    def removed_tokens(self) -> int:
        return self.original_tokens - self.truncated_tokens

    @property
    def kept_percentage(self) -> float:
        if self.original_tokens <= 0:
            return 1.0
        return self.truncated_tokens / self.original_tokens

    def __str__(self) -> str:
        if not self.was_truncated:
            return f"No truncation: {self.truncated_tokens} tokens"
        return (
            f"Truncated: {self.truncated_tokens}/{self.original_tokens} tokens "
            f"({self.kept_percentage:.1%}), reason: {self.reason.value}"
        )


@dataclasses.dataclass(frozen=True)
class ContextStatistics:
    """Point-in-time snapshot of the context engine for status displays."""

    line_count: int
    token_count: int
    cache_hit_count: int
    cache_miss_count: int
    cache_hit_rate: float
    session_duration: float
    idle_time: float
    working_directory: Optional[str] = None
