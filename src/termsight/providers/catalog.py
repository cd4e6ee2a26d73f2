"""Built-in provider catalog.

Every entry is routed through litellm; ``litellm_prefix`` selects the
vendor route (``ollama/llama3``, ``gemini/gemini-pro`` ...).
"""

from __future__ import annotations

from termsight.models import ProviderInfo

OPENAI = ProviderInfo(
    id="openai",
    name="OpenAI",
    description="OpenAI GPT models",
    supported_models=["gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "gpt-4-turbo-preview"],
    default_model="gpt-3.5-turbo",
    endpoint="https://api.openai.com/v1",
    max_context_tokens=128_000,
    context_overrides={"gpt-3.5-turbo": 16_385, "gpt-4": 8192},
    strict_models=True,
    litellm_prefix="openai/",
)

ANTHROPIC = ProviderInfo(
    id="anthropic",
    name="Anthropic",
    description="Anthropic Claude models",
    supported_models=["claude-3-opus-20240229", "claude-3-sonnet-20240229", "claude-3-haiku-20240307"],
    default_model="claude-3-haiku-20240307",
    endpoint="https://api.anthropic.com",
    max_context_tokens=200_000,
    strict_models=True,
    litellm_prefix="anthropic/",
)

OLLAMA = ProviderInfo(
    id="ollama",
    name="Ollama",
    description="Local models served by Ollama",
    supported_models=[
        "llama3",
        "llama3.1",
        "mistral",
        "mixtral",
        "codellama",
        "phi3",
        "gemma",
        "gemma2",
        "llava",
        "neural-chat",
    ],
    default_model="llama3",
    endpoint="http://localhost:11434",
    max_context_tokens=8192,
    context_overrides={"llama3.1": 128_000, "mixtral": 32_768, "mistral": 32_768},
    requires_api_key=False,
    litellm_prefix="ollama/",
)

GEMINI = ProviderInfo(
    id="gemini",
    name="Google Gemini",
    description="Google Gemini AI models",
    supported_models=["gemini-pro", "gemini-1.5-pro", "gemini-1.5-flash"],
    default_model="gemini-pro",
    endpoint="https://generativelanguage.googleapis.com/v1",
    max_context_tokens=1_000_000,
    context_overrides={"gemini-pro": 32_760},
    strict_models=True,
    litellm_prefix="gemini/",
)

OPENROUTER = ProviderInfo(
    id="openrouter",
    name="OpenRouter",
    description="Unified API for multiple LLM providers",
    supported_models=[
        "anthropic/claude-3-opus",
        "anthropic/claude-3-sonnet",
        "anthropic/claude-3-haiku",
        "openai/gpt-4",
        "openai/gpt-4-turbo",
        "openai/gpt-3.5-turbo",
        "google/gemini-pro",
        "meta-llama/llama-3-70b-instruct",
        "mistral/mistral-large",
    ],
    default_model="openai/gpt-3.5-turbo",
    endpoint="https://openrouter.ai/api/v1",
    max_context_tokens=128_000,
    context_overrides={
        "anthropic/claude-3-opus": 200_000,
        "anthropic/claude-3-sonnet": 200_000,
        "anthropic/claude-3-haiku": 200_000,
        "openai/gpt-4": 8192,
    },
    litellm_prefix="openrouter/",
)

BUILTIN_PROVIDERS: dict[str, ProviderInfo] = {
    info.id: info for info in (OPENAI, ANTHROPIC, OLLAMA, GEMINI, OPENROUTER)
}


def get_provider_info(provider_id: str) -> ProviderInfo | None:
    return BUILTIN_PROVIDERS.get(provider_id.lower())
