"""Wiring: build the context engine and gateway from settings."""

from __future__ import annotations

import logging
from typing import Optional

from termsight.config import AppSettings
from termsight.context.engine import ContextEngine
from termsight.context.tokenizer import TokenEstimator
from termsight.exceptions import ProviderNotFoundError
from termsight.gateway.gateway import LLMGateway
from termsight.gateway.retry import RetryCoordinator
from termsight.hooks.events import HookRegistry
from termsight.models import ProviderConfiguration
from termsight.providers.catalog import get_provider_info
from termsight.providers.factory import register_builtin_providers

log = logging.getLogger(__name__)


def create_estimator(settings: AppSettings) -> TokenEstimator:
    return TokenEstimator(
        method=settings.tokenizer.method,
        chars_per_token=settings.context.chars_per_token,
        model=settings.tokenizer.model,
    )


def create_engine(settings: Optional[AppSettings] = None, *, hooks: Optional[HookRegistry] = None) -> ContextEngine:
    """Create a context engine from settings."""
    settings = settings or AppSettings()
    return ContextEngine(settings.context, estimator=create_estimator(settings), hooks=hooks)


def provider_configuration(settings: AppSettings) -> ProviderConfiguration:
    """Translate the ``TERMSIGHT_LLM_*`` group into a provider configuration.

    An empty model falls back to the provider's catalog default.
    """
    llm = settings.llm
    info = get_provider_info(llm.provider)
    if info is None:
        raise ProviderNotFoundError(llm.provider)
    return ProviderConfiguration(
        provider_id=info.id,
        model=llm.model or info.default_model,
        api_key=llm.api_key,
        base_url=llm.base_url,
        temperature=llm.temperature,
        max_tokens=llm.max_tokens,
        top_p=llm.top_p,
        max_retries=llm.max_retries,
        timeout=llm.timeout,
        max_context=llm.max_context,
    )


def create_gateway(
    settings: Optional[AppSettings] = None,
    *,
    engine: Optional[ContextEngine] = None,
    hooks: Optional[HookRegistry] = None,
    activate: bool = True,
) -> LLMGateway:
    """Create a gateway with every built-in provider registered.

    When *activate* is true the provider named by ``settings.llm.provider``
    is configured and made active.
    """
    settings = settings or AppSettings()
    if hooks is None:
        hooks = engine.hooks if engine is not None else HookRegistry()

    retry = RetryCoordinator(
        base_delay=settings.retry.base_delay_seconds,
        max_jitter=settings.retry.max_jitter_seconds,
    )
    gateway = LLMGateway(engine, hooks=hooks, retry=retry)
    register_builtin_providers(gateway, estimator=create_estimator(settings))

    if activate:
        gateway.configure_provider(provider_configuration(settings))
        gateway.set_active_provider(settings.llm.provider)
    return gateway
