"""Pluggable token estimator with two backends.

Modes:
  - ``approximate``: ceil(chars / chars_per_token) (no dependencies, fast)
  - ``tiktoken``: OpenAI tiktoken (requires ``tiktoken`` extra)

Counts are estimates: sizing and truncation only ever compare them against
budgets, never against what a vendor will actually bill.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Iterable, Literal, Optional

from termsight.exceptions import TokenizerError

log = logging.getLogger(__name__)

DEFAULT_CHARS_PER_TOKEN = 4.0

# Cache for tiktoken encoders
_tiktoken_cache: dict[str, object] = {}

# Characters-per-token by model family; first matching prefix wins.
_FAMILY_RATIOS: list[tuple[str, float]] = [
    ("gpt-4", 3.5),
    ("gpt-3.5", 4.0),
    ("claude", 4.0),
    ("qwen", 4.0),
    ("deepseek", 4.0),
]


class MeterStatus(str, Enum):
    SAFE = "safe"  # < 70%
    WARNING = "warning"  # 70-90%
    CRITICAL = "critical"  # >= 90%
    OVER_LIMIT = "over_limit"  # >= 100%


def ratio_for_model(model: str) -> float:
    """Return the characters-per-token ratio for a model family."""
    name = model.lower().split("/")[-1]
    for prefix, ratio in _FAMILY_RATIOS:
        if name.startswith(prefix):
            return ratio
    return DEFAULT_CHARS_PER_TOKEN


def usage_status(tokens: int, max_tokens: int) -> MeterStatus:
    """Classify how full a context window is."""
    if max_tokens <= 0:
        return MeterStatus.OVER_LIMIT if tokens > 0 else MeterStatus.SAFE
    fraction = tokens / max_tokens
    if fraction >= 1.0:
        return MeterStatus.OVER_LIMIT
    if fraction >= 0.90:
        return MeterStatus.CRITICAL
    if fraction >= 0.70:
        return MeterStatus.WARNING
    return MeterStatus.SAFE


class TokenEstimator:
    """Estimate tokens using the configured method."""

    def __init__(
        self,
        method: Literal["approximate", "tiktoken"] = "approximate",
        chars_per_token: float = DEFAULT_CHARS_PER_TOKEN,
        model: str = "gpt-4",
        fallback_encoding: str = "cl100k_base",
    ) -> None:
        if chars_per_token <= 0:
            raise TokenizerError(f"Characters per token must be positive, got {chars_per_token}")
        self.method = method
        self.model = model
        self.chars_per_token = chars_per_token
        self._fallback_encoding = fallback_encoding

        if method == "tiktoken":
            try:
                import tiktoken  # noqa: F401
            except ImportError as e:
                raise TokenizerError(
                    "tiktoken not installed. Install with: pip install termsight[tiktoken]"
                ) from e

    @classmethod
    def for_model(cls, model: str) -> TokenEstimator:
        """Approximate estimator tuned to *model*'s family ratio."""
        return cls(chars_per_token=ratio_for_model(model), model=model)

    def estimate(self, text: str, model: Optional[str] = None) -> int:
        """Return the approximate token count for *text*."""
        if not text or not text.strip():
            return 0
        if self.method == "approximate":
            return math.ceil(len(text) / self.chars_per_token)
        return self._estimate_tiktoken(text, model or self.model)

    def estimate_lines(self, lines: Iterable[str]) -> int:
        return sum(self.estimate(line) for line in lines)

    # ── Backends ─────────────────────────────────────────────────────

    def _estimate_tiktoken(self, text: str, model: str) -> int:
        import tiktoken

        cache_key = f"{model}:{self._fallback_encoding}"
        if cache_key not in _tiktoken_cache:
            try:
                _tiktoken_cache[cache_key] = tiktoken.encoding_for_model(model)
            except KeyError:
                _tiktoken_cache[cache_key] = tiktoken.get_encoding(self._fallback_encoding)
        enc = _tiktoken_cache[cache_key]
        return len(enc.encode(text))  # type: ignore[attr-defined]
