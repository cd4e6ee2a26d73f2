"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from termsight.context.policy import SizingPolicy
from termsight.exceptions import ConfigurationError
from termsight.providers.catalog import get_provider_info

if TYPE_CHECKING:
    from termsight.config import AppSettings

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ConfigurationError on fatal misconfig."""
    _check_api_key(settings)
    _check_context_limits(settings)
    _check_policy(settings)


def _check_api_key(settings: AppSettings) -> None:
    """Reject placeholder API keys for providers that need real ones."""
    info = get_provider_info(settings.llm.provider)
    if info is not None and info.requires_api_key and settings.llm.api_key in ("no-key", ""):
        raise ConfigurationError(
            f"TERMSIGHT_LLM_API_KEY is required for provider '{settings.llm.provider}'. "
            f"Set it via environment variable or --api-key.",
            key="api_key",
            provider=settings.llm.provider,
        )


def _check_context_limits(settings: AppSettings) -> None:
    ctx = settings.context
    if ctx.max_lines < ctx.min_lines:
        raise ConfigurationError(
            f"TERMSIGHT_CONTEXT_MAX_LINES ({ctx.max_lines}) must be at least "
            f"TERMSIGHT_CONTEXT_MIN_LINES ({ctx.min_lines}).",
            key="max_lines",
        )
    if ctx.max_lines > ctx.buffer_capacity:
        log.warning(
            "TERMSIGHT_CONTEXT_MAX_LINES=%d exceeds buffer capacity %d; "
            "context will never hold more than %d lines.",
            ctx.max_lines,
            ctx.buffer_capacity,
            ctx.buffer_capacity,
        )
    if settings.llm.max_context <= 0:
        raise ConfigurationError("TERMSIGHT_LLM_MAX_CONTEXT must be positive.", key="max_context")


def _check_policy(settings: AppSettings) -> None:
    ok, reason = SizingPolicy.from_config(settings.context).validate()
    if not ok:
        raise ConfigurationError(f"Invalid context sizing policy: {reason}", key="policy")
