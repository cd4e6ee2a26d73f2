"""Context engine: terminal history in, budget-fitted grounding text out.

Composes the line buffer, formatted-context cache, token estimator and
sizing policy. The live terminal feed calls :meth:`ContextEngine.add_line`
from its own thread while request assembly calls
:meth:`ContextEngine.get_truncated_context` from any other.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from termsight.config import ContextConfig
from termsight.context.buffer import LineBuffer
from termsight.context.cache import context_cache_key, create_context_cache
from termsight.context.directory_tracker import DirectoryTracker
from termsight.context.models import ContextStatistics, TruncationReason, TruncationResult
from termsight.context.policy import SizingPolicy
from termsight.context.prompt_parser import PromptParser
from termsight.context.protocols import IContextCache, ITokenEstimator
from termsight.context.tokenizer import TokenEstimator
from termsight.exceptions import ConfigurationError
from termsight.hooks.events import ContextTruncatedEvent, HookRegistry

log = logging.getLogger(__name__)

DEFAULT_MODEL_MAX_CONTEXT = 4096


class ContextEngine:
    """Sizing, caching and truncation of recent terminal output."""

    def __init__(
        self,
        config: Optional[ContextConfig] = None,
        *,
        estimator: Optional[ITokenEstimator] = None,
        policy: Optional[SizingPolicy] = None,
        hooks: Optional[HookRegistry] = None,
        tracker: Optional[DirectoryTracker] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or ContextConfig()
        if self._config.max_lines < self._config.min_lines:
            raise ConfigurationError(
                f"max_lines ({self._config.max_lines}) must be at least min_lines ({self._config.min_lines})",
                key="max_lines",
            )

        self._estimator: ITokenEstimator = estimator or TokenEstimator(
            chars_per_token=self._config.chars_per_token
        )
        self._hooks = hooks or HookRegistry()
        self._clock = clock

        self._buffer = LineBuffer(self._config.buffer_capacity)
        self._max_lines = self._config.max_lines
        self._cache_enabled = self._config.cache_enabled
        self._cache: IContextCache = create_context_cache(self._config)

        if tracker is None and self._config.track_working_directory:
            tracker = DirectoryTracker(
                PromptParser(self._config.home_directory),
                hooks=self._hooks,
                max_history=self._config.directory_history_size,
            )
        self._tracker = tracker

        initial = policy or SizingPolicy.from_config(self._config)
        ok, reason = initial.validate()
        if not ok:
            raise ConfigurationError(f"Invalid policy: {reason}", key="policy")
        self._policy = initial
        self._model_max_context = self._config.default_model_max_context or DEFAULT_MODEL_MAX_CONTEXT

        # Guards policy/model swaps and the buffer generation counter
        self._state_lock = threading.Lock()
        self._generation = 0

        self._session_started = clock()
        self._last_activity = self._session_started

        log.info(
            "ContextEngine initialized: max_lines=%d capacity=%d cache=%s mode=%s",
            self._max_lines,
            self._buffer.capacity,
            self._cache_enabled,
            self._policy.mode.value,
        )

    # ── Properties ───────────────────────────────────────────────────

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def policy(self) -> SizingPolicy:
        return self._policy

    @property
    def cache(self) -> IContextCache:
        return self._cache

    @property
    def max_lines(self) -> int:
        return self._max_lines

    @property
    def line_count(self) -> int:
        return len(self._buffer)

    @property
    def model(self) -> str:
        return self._policy.model

    @property
    def model_max_context(self) -> int:
        return self._model_max_context

    @property
    def tracker(self) -> Optional[DirectoryTracker]:
        return self._tracker

    @property
    def working_directory(self) -> Optional[str]:
        """Shell directory seen in the feed, or None when untracked or not yet known."""
        return self._tracker.current_directory if self._tracker else None

    def is_cache_enabled(self) -> bool:
        return self._cache_enabled

    # ── Terminal feed ────────────────────────────────────────────────

    def add_line(self, line: str) -> None:
        """Record one line of terminal output. Blank lines are ignored."""
        if not line or not line.strip():
            return
        self._buffer.append(line)
        if self._tracker is not None:
            self._tracker.observe(line)
        self._touch()

    def add_lines(self, lines: Iterable[str]) -> None:
        added = False
        for line in lines:
            if line and line.strip():
                self._buffer.append(line)
                if self._tracker is not None:
                    self._tracker.observe(line)
                added = True
        if added:
            self._touch()

    def _touch(self) -> None:
        with self._state_lock:
            self._generation += 1
            self._last_activity = self._clock()
        # Invalidate after bumping the generation so a concurrent reader either
        # sees its entry wiped here or notices the bump and wipes it itself.
        self._cache.invalidate()

    def clear(self) -> None:
        """Drop all history and cached context and start a new session."""
        self._buffer.clear()
        with self._state_lock:
            self._generation += 1
            self._session_started = self._clock()
            self._last_activity = self._session_started
        self._cache.clear()
        log.info("Context cleared, new session started")

    # ── Reading ──────────────────────────────────────────────────────

    def get_context(self, max_lines: Optional[int] = None) -> str:
        """Return the newest *max_lines* lines joined with newlines, via the cache."""
        count = self._max_lines if max_lines is None else max_lines
        key = context_cache_key(count)
        cache = self._cache

        cached = cache.get(key)
        if cached is not None:
            log.debug("Context cache hit (key=%s)", key)
            return cached

        generation = self._generation
        lines = self._buffer.last_n(count)
        context = "\n".join(lines)
        cache.put(key, context)
        if self._generation != generation:
            cache.invalidate(key)

        log.debug("Built context from %d lines (key=%s)", len(lines), key)
        return context

    def get_estimated_token_count(self) -> int:
        return self._estimator.estimate(self.get_context())

    def get_total_characters(self) -> int:
        return self._buffer.total_characters()

    def snapshot(self) -> str:
        """Return the current context prefixed with a timestamp header."""
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp}] Context Snapshot:\n{self.get_context()}"

    def statistics(self) -> ContextStatistics:
        now = self._clock()
        cache = self._cache
        return ContextStatistics(
            line_count=len(self._buffer),
            token_count=self.get_estimated_token_count(),
            cache_hit_count=cache.hit_count,
            cache_miss_count=cache.miss_count,
            cache_hit_rate=cache.hit_rate,
            session_duration=now - self._session_started,
            idle_time=now - self._last_activity,
            working_directory=self.working_directory,
        )

    # ── Settings ─────────────────────────────────────────────────────

    def set_max_lines(self, max_lines: int) -> None:
        if max_lines < self._config.min_lines:
            raise ConfigurationError(
                f"MaxLines must be at least {self._config.min_lines}", key="max_lines"
            )
        self._max_lines = max_lines
        self._cache.invalidate()
        log.info("MaxLines updated to %d", max_lines)

    def set_cache_enabled(self, enabled: bool) -> None:
        self._cache = create_context_cache(self._config, enabled=enabled)
        self._cache_enabled = enabled
        log.info("Context cache enabled: %s", enabled)

    def invalidate(self) -> None:
        self._cache.invalidate()

    def set_model(self, model: str, max_context: int) -> None:
        """Record the active model so AUTO sizing and model ceilings follow it."""
        if max_context <= 0:
            raise ConfigurationError(f"Model max context must be positive, got {max_context}", key="max_context")
        with self._state_lock:
            self._policy = self._policy.with_model(model)
            self._model_max_context = max_context
        log.info("Model set to %s (max context %d)", model or "<unknown>", max_context)

    def set_model_max_context(self, max_context: int) -> None:
        self.set_model(self._policy.model, max_context)

    def update_policy(self, policy: SizingPolicy) -> None:
        """Validate and swap in *policy* as a whole. The old policy stays on failure."""
        ok, reason = policy.validate()
        if not ok:
            log.error("Invalid policy: %s", reason)
            raise ConfigurationError(f"Invalid policy: {reason}", key="policy")
        with self._state_lock:
            if not policy.model:
                policy = policy.with_model(self._policy.model)
            self._policy = policy
        log.info("Policy updated: %s", policy.mode.value)

    def set_percentage(self, percentage: float) -> None:
        self.update_policy(self._policy.with_percentage(percentage))

    # ── Sizing / truncation ──────────────────────────────────────────

    def _snapshot_policy(self) -> tuple[SizingPolicy, int]:
        with self._state_lock:
            return self._policy, self._model_max_context

    def target_size(self) -> int:
        policy, model_max = self._snapshot_policy()
        return policy.target_size(model_max)

    def effective_max(self) -> int:
        """Policy target further capped by the policy's own max_tokens."""
        policy, model_max = self._snapshot_policy()
        target = policy.target_size(model_max)
        if policy.max_tokens > 0:
            return min(target, policy.max_tokens)
        return target

    def will_truncate(self, request_token_budget: int) -> bool:
        policy, model_max = self._snapshot_policy()
        effective_max = min(policy.target_size(model_max), request_token_budget)
        return self._estimator.estimate(self.get_context()) > effective_max

    def get_truncated_context(self, request_token_budget: int) -> TruncationResult:
        """Fit the context into ``min(policy target, request_token_budget)`` tokens."""
        policy, model_max = self._snapshot_policy()
        effective_max = min(policy.target_size(model_max), request_token_budget)
        return self._with_directory(self._fit(self.get_context(), effective_max, policy, model_max))

    def get_truncated_context_with_size(self, target_tokens: int) -> TruncationResult:
        """Fit the context into an explicit token target, bypassing the policy."""
        policy, model_max = self._snapshot_policy()
        return self._with_directory(self._fit(self.get_context(), target_tokens, policy, model_max))

    def _with_directory(self, result: TruncationResult) -> TruncationResult:
        if not self._config.include_working_directory:
            return result
        directory = self.working_directory
        return dataclasses.replace(result, working_directory=directory) if directory else result

    def _fit(
        self,
        context: str,
        effective_max: int,
        policy: SizingPolicy,
        model_max: int,
    ) -> TruncationResult:
        effective_max = max(effective_max, 0)
        current = self._estimator.estimate(context)
        if current <= effective_max:
            return TruncationResult(
                truncated_content=context,
                original_tokens=current,
                truncated_tokens=current,
            )

        lines = context.split("\n")
        tokens_per_line = current / len(lines)
        target_lines = int(effective_max // max(tokens_per_line, 1.0))
        if target_lines >= len(lines):
            return TruncationResult(
                truncated_content=context,
                original_tokens=current,
                truncated_tokens=current,
            )

        # Keep the newest lines; drop more from the old end while the average
        # underestimates the suffix.
        start = len(lines) - target_lines
        truncated = "\n".join(lines[start:])
        tokens = self._estimator.estimate(truncated)
        while tokens > effective_max and start < len(lines):
            start += 1
            truncated = "\n".join(lines[start:])
            tokens = self._estimator.estimate(truncated)

        result = TruncationResult(
            truncated_content=truncated,
            original_tokens=current,
            truncated_tokens=tokens,
            was_truncated=True,
            reason=self._truncation_reason(effective_max, policy, model_max),
        )
        log.warning(
            "Context truncated: %d tokens removed, %d lines kept of %d, reason=%s",
            result.removed_tokens,
            len(lines) - start,
            len(lines),
            result.reason.value,
        )
        self._hooks.emit(ContextTruncatedEvent(result=result, budget=effective_max))
        return result

    @staticmethod
    def _truncation_reason(effective_max: int, policy: SizingPolicy, model_max: int) -> TruncationReason:
        if effective_max >= model_max:
            return TruncationReason.MODEL_LIMIT
        if policy.max_tokens > 0 and effective_max >= policy.max_tokens:
            return TruncationReason.USER_LIMIT
        return TruncationReason.TOKEN_LIMIT
