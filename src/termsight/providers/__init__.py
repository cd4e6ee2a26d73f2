"""LLM provider adapters and the built-in provider catalog."""

from __future__ import annotations

from termsight.providers.catalog import BUILTIN_PROVIDERS, get_provider_info
from termsight.providers.factory import create_provider, register_builtin_providers
from termsight.providers.litellm_provider import LiteLLMProvider
from termsight.providers.protocols import ILLMProvider

__all__ = [
    "BUILTIN_PROVIDERS",
    "ILLMProvider",
    "LiteLLMProvider",
    "create_provider",
    "get_provider_info",
    "register_builtin_providers",
]
