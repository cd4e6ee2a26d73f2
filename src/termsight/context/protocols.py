"""Context protocols: contracts for token estimation, caching and context providers."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from termsight.context.models import TruncationResult


@runtime_checkable
class ITokenEstimator(Protocol):
    """Protocol for token estimation backends.

    Implementations may be heuristic; callers must treat counts as
    approximations.
    """

    def estimate(self, text: str) -> int:
        """Return the approximate token count for *text*. Blank text is 0."""
        ...


@runtime_checkable
class IContextCache(Protocol):
    """Protocol for formatted-context caches.

    Synchronous on purpose: the live terminal feed writes from a plain
    thread, not a coroutine.
    """

    def get(self, key: str) -> Optional[str]:
        """Return cached content, or None on miss or TTL expiry."""
        ...

    def put(self, key: str, content: str) -> None:
        """Store *content* under *key*, resetting its TTL."""
        ...

    def invalidate(self, key: Optional[str] = None) -> None:
        """Remove *key*, or every entry when *key* is None."""
        ...

    def clear(self) -> None:
        """Remove all entries."""
        ...

    @property
    def hit_count(self) -> int: ...

    @property
    def miss_count(self) -> int: ...

    @property
    def hit_rate(self) -> float: ...

    def __len__(self) -> int: ...


@runtime_checkable
class IContextProvider(Protocol):
    """What the gateway needs from the context engine."""

    def get_truncated_context(self, request_token_budget: int) -> TruncationResult:
        ...

    def set_model(self, model: str, max_context: int) -> None:
        ...
