"""Provider factory: resolves adapters from the built-in catalog."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from termsight.context.protocols import ITokenEstimator
from termsight.exceptions import ProviderNotFoundError
from termsight.providers.catalog import BUILTIN_PROVIDERS, get_provider_info
from termsight.providers.litellm_provider import LiteLLMProvider

if TYPE_CHECKING:
    from termsight.gateway.gateway import LLMGateway

log = logging.getLogger(__name__)


def create_provider(provider_id: str, *, estimator: Optional[ITokenEstimator] = None) -> LiteLLMProvider:
    """Create an unconfigured adapter for a catalog provider.

    Raises:
        ProviderNotFoundError: If *provider_id* is not in the catalog.
    """
    info = get_provider_info(provider_id)
    if info is None:
        raise ProviderNotFoundError(provider_id)
    return LiteLLMProvider(info, estimator=estimator)


def register_builtin_providers(gateway: LLMGateway, *, estimator: Optional[ITokenEstimator] = None) -> list[str]:
    """Register one adapter per catalog entry; returns the registered ids."""
    registered = []
    for provider_id in BUILTIN_PROVIDERS:
        gateway.register_provider(create_provider(provider_id, estimator=estimator))
        registered.append(provider_id)
    log.info("Registered built-in providers: %s", ", ".join(registered))
    return registered
