"""Formatted-context caching: factory + backend implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from termsight.context.cache.memory import MemoryContextCache
from termsight.context.cache.noop import NullContextCache
from termsight.context.protocols import IContextCache

if TYPE_CHECKING:
    from termsight.config import ContextConfig

__all__ = [
    "context_cache_key",
    "create_context_cache",
    "MemoryContextCache",
    "NullContextCache",
]


def context_cache_key(max_lines: int) -> str:
    """Stable cache key for the context formatted from the last *max_lines* lines."""
    return f"context_{max_lines}"


def create_context_cache(config: ContextConfig | None = None, *, enabled: bool | None = None) -> IContextCache:
    """Create a context cache from settings.

    Args:
        config: A ``ContextConfig`` instance. If None, returns a
            MemoryContextCache with the default TTL.
        enabled: Overrides ``config.cache_enabled`` when given.
    """
    if config is None:
        return MemoryContextCache() if enabled is not False else NullContextCache()

    use_cache = config.cache_enabled if enabled is None else enabled
    if not use_cache:
        return NullContextCache()
    return MemoryContextCache(ttl_seconds=config.cache_ttl_seconds)
