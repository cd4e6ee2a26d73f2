"""Nested pydantic-settings configuration for termsight.

Each group reads its own ``TERMSIGHT_<GROUP>_*`` env vars::

    export TERMSIGHT_LLM_PROVIDER=openai
    export TERMSIGHT_LLM_MODEL=gpt-4
    export TERMSIGHT_CONTEXT_MAX_LINES=200
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class ContextConfig(BaseSettings):
    """Terminal context window configuration.

    Env vars use ``TERMSIGHT_CONTEXT_`` prefix.
    """

    model_config = {"env_prefix": "TERMSIGHT_CONTEXT_"}

    buffer_capacity: int = Field(default=100, gt=0)
    max_lines: int = 100
    min_lines: int = 10
    cache_enabled: bool = True
    cache_ttl_seconds: float = Field(default=300.0, ge=0.0)
    chars_per_token: float = Field(default=4.0, gt=0.0)

    # Sizing policy
    sizing_mode: Literal["auto", "fixed", "percentage"] = "auto"
    fixed_size: int = 2000
    percentage: float = 0.5
    policy_min_lines: int = 10
    policy_max_lines: int = 500
    min_tokens: int = 100
    max_tokens: int = 128_000
    default_model_max_context: int = Field(default=4096, gt=0)

    # Working-directory tracking
    track_working_directory: bool = True
    include_working_directory: bool = True
    home_directory: Optional[str] = None
    directory_history_size: int = Field(default=50, gt=0)


class LLMConfig(BaseSettings):
    """Default provider configuration.

    Env vars use ``TERMSIGHT_LLM_`` prefix::

        export TERMSIGHT_LLM_PROVIDER=ollama
        export TERMSIGHT_LLM_MODEL=llama3
    """

    model_config = {"env_prefix": "TERMSIGHT_LLM_"}

    provider: Literal["openai", "anthropic", "ollama", "gemini", "openrouter"] = "ollama"
    model: str = ""
    api_key: str = "no-key"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 1.0
    max_retries: int = 3
    timeout: float = 30.0
    max_context: int = 4096


class RetryConfig(BaseSettings):
    """Backoff parameters for the retry coordinator.

    Env vars use ``TERMSIGHT_RETRY_`` prefix.
    """

    model_config = {"env_prefix": "TERMSIGHT_RETRY_"}

    base_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_jitter_seconds: float = Field(default=1.0, ge=0.0)


class TokenizerConfig(BaseSettings):
    """Tokenizer configuration.

    Env vars use ``TERMSIGHT_TOKENIZER_`` prefix.
    """

    model_config = {"env_prefix": "TERMSIGHT_TOKENIZER_"}

    method: Literal["approximate", "tiktoken"] = "approximate"
    model: str = "gpt-4"


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``TERMSIGHT_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "TERMSIGHT_OBSERVABILITY_"}

    log_level: str = "INFO"
    log_format: Literal["auto", "console", "json"] = "auto"


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    context: ContextConfig = ContextConfig()
    llm: LLMConfig = LLMConfig()
    retry: RetryConfig = RetryConfig()
    tokenizer: TokenizerConfig = TokenizerConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
