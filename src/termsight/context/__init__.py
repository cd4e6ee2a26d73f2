"""Terminal context: ring buffer, token estimation, caching, sizing and truncation."""

from __future__ import annotations

from termsight.context.buffer import LineBuffer
from termsight.context.cache import MemoryContextCache, NullContextCache, create_context_cache
from termsight.context.directory_tracker import DirectoryChangeType, DirectoryTracker
from termsight.context.engine import ContextEngine
from termsight.context.models import CacheEntry, ContextStatistics, TruncationReason, TruncationResult
from termsight.context.policy import MODEL_DEFAULTS, SizingMode, SizingPolicy
from termsight.context.prompt_parser import ParsedPrompt, PromptParser, PromptType
from termsight.context.protocols import IContextCache, IContextProvider, ITokenEstimator
from termsight.context.tokenizer import MeterStatus, TokenEstimator, usage_status

__all__ = [
    "CacheEntry",
    "ContextEngine",
    "ContextStatistics",
    "DirectoryChangeType",
    "DirectoryTracker",
    "IContextCache",
    "IContextProvider",
    "ITokenEstimator",
    "LineBuffer",
    "MODEL_DEFAULTS",
    "MemoryContextCache",
    "MeterStatus",
    "NullContextCache",
    "ParsedPrompt",
    "PromptParser",
    "PromptType",
    "SizingMode",
    "SizingPolicy",
    "TokenEstimator",
    "TruncationReason",
    "TruncationResult",
    "create_context_cache",
    "usage_status",
]
