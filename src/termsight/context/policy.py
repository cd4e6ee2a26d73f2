"""Context sizing policy: how many tokens of terminal history a request may carry."""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from termsight.config import ContextConfig


class SizingMode(str, Enum):
    AUTO = "auto"  # Per-model default
    FIXED = "fixed"  # Configured token count
    PERCENTAGE = "percentage"  # Fraction of the model's max context


# Per-model default budgets used by AUTO mode.
MODEL_DEFAULTS: dict[str, int] = {
    "gpt-3.5-turbo": 4096,
    "gpt-4": 8192,
    "gpt-4-turbo": 8192,
    "gpt-4-turbo-preview": 8192,
    "claude-3-opus": 200_000,
    "claude-3-sonnet": 200_000,
}


def _model_key(model: str) -> str:
    # "openai/gpt-4" and "gpt-4" share a default
    return model.lower().split("/")[-1]


@dataclasses.dataclass(frozen=True)
class SizingPolicy:
    """Immutable sizing rule.

    Frozen so that a policy swap is a single reference assignment: readers
    see either the old policy or the new one, never a mix.
    """

    mode: SizingMode = SizingMode.AUTO
    fixed_size: int = 2000
    percentage: float = 0.5
    min_lines: int = 10
    max_lines: int = 500
    min_tokens: int = 100
    max_tokens: int = 128_000
    model: str = ""

    @classmethod
    def from_config(cls, config: ContextConfig) -> SizingPolicy:
        return cls(
            mode=SizingMode(config.sizing_mode),
            fixed_size=config.fixed_size,
            percentage=config.percentage,
            min_lines=config.policy_min_lines,
            max_lines=config.policy_max_lines,
            min_tokens=config.min_tokens,
            max_tokens=config.max_tokens,
        )

    def target_size(self, model_max_context: int) -> int:
        """Return the token budget for a model whose window is *model_max_context*."""
        ceiling = max(model_max_context, 0)
        if self.mode == SizingMode.FIXED:
            size = self._clamp_tokens(self.fixed_size)
        elif self.mode == SizingMode.PERCENTAGE:
            fraction = min(max(self.percentage, 0.0), 1.0)
            size = self._clamp_tokens(int(ceiling * fraction))
        else:
            size = MODEL_DEFAULTS.get(_model_key(self.model), ceiling)
        return max(min(size, ceiling), 0)

    def _clamp_tokens(self, size: int) -> int:
        if self.min_tokens > 0:
            size = max(size, self.min_tokens)
        if self.max_tokens > 0:
            size = min(size, self.max_tokens)
        return size

    def validate(self) -> tuple[bool, Optional[str]]:
        """Return ``(ok, reason)``; reason is None when the policy is valid."""
        if self.mode == SizingMode.FIXED and self.fixed_size <= 0:
            return False, "FixedSize must be positive"
        if not 0.0 <= self.percentage <= 1.0:
            return False, "Percentage must be between 0.0 and 1.0"
        if self.min_lines < 0:
            return False, "MinLines cannot be negative"
        if self.max_lines > 0 and self.max_lines < self.min_lines:
            return False, "MaxLines must be >= MinLines"
        if self.min_tokens < 0:
            return False, "MinTokens cannot be negative"
        if self.max_tokens > 0 and self.max_tokens < self.min_tokens:
            return False, "MaxTokens must be >= MinTokens"
        return True, None

    def with_percentage(self, percentage: float) -> SizingPolicy:
        """Percentage-mode copy; out-of-range values are clamped into [0, 1]."""
        return dataclasses.replace(
            self,
            mode=SizingMode.PERCENTAGE,
            percentage=min(max(percentage, 0.0), 1.0),
        )

    def with_model(self, model: str) -> SizingPolicy:
        return dataclasses.replace(self, model=model)
