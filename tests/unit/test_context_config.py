"""Tests for settings groups: defaults and env overrides."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from termsight.config import (
    AppSettings,
    ContextConfig,
    LLMConfig,
    ObservabilityConfig,
    RetryConfig,
    TokenizerConfig,
)


class TestContextConfig:
    """ContextConfig should have correct defaults and accept env vars."""

    def test_defaults(self) -> None:
        config = ContextConfig()
        assert config.buffer_capacity == 100
        assert config.max_lines == 100
        assert config.min_lines == 10
        assert config.cache_enabled is True
        assert config.cache_ttl_seconds == 300.0
        assert config.sizing_mode == "auto"
        assert config.default_model_max_context == 4096

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERMSIGHT_CONTEXT_MAX_LINES", "250")
        monkeypatch.setenv("TERMSIGHT_CONTEXT_SIZING_MODE", "percentage")
        monkeypatch.setenv("TERMSIGHT_CONTEXT_PERCENTAGE", "0.25")
        monkeypatch.setenv("TERMSIGHT_CONTEXT_CACHE_ENABLED", "false")
        config = ContextConfig()
        assert config.max_lines == 250
        assert config.sizing_mode == "percentage"
        assert config.percentage == 0.25
        assert config.cache_enabled is False

    def test_rejects_unknown_mode(self) -> None:
        with pytest.raises(ValidationError):
            ContextConfig(sizing_mode="adaptive")

    def test_working_directory_defaults(self) -> None:
        config = ContextConfig()
        assert config.track_working_directory is True
        assert config.include_working_directory is True
        assert config.home_directory is None
        assert config.directory_history_size == 50

    def test_rejects_non_positive_chars_per_token(self) -> None:
        with pytest.raises(ValidationError):
            ContextConfig(chars_per_token=0)


class TestLLMConfig:
    def test_defaults(self) -> None:
        config = LLMConfig()
        assert config.provider == "ollama"
        assert config.model == ""
        assert config.api_key == "no-key"
        assert config.max_retries == 3

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERMSIGHT_LLM_PROVIDER", "openai")
        monkeypatch.setenv("TERMSIGHT_LLM_MODEL", "gpt-4")
        monkeypatch.setenv("TERMSIGHT_LLM_API_KEY", "sk-env")
        config = LLMConfig()
        assert config.provider == "openai"
        assert config.model == "gpt-4"
        assert config.api_key == "sk-env"

    def test_rejects_unknown_provider(self) -> None:
        with pytest.raises(ValidationError):
            LLMConfig(provider="acme")


class TestOtherGroups:
    def test_retry_defaults(self) -> None:
        config = RetryConfig()
        assert config.base_delay_seconds == 1.0
        assert config.max_jitter_seconds == 1.0

    def test_retry_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERMSIGHT_RETRY_BASE_DELAY_SECONDS", "0.5")
        assert RetryConfig().base_delay_seconds == 0.5

    def test_tokenizer_defaults(self) -> None:
        assert TokenizerConfig().method == "approximate"

    def test_observability_defaults(self) -> None:
        assert ObservabilityConfig().log_level == "INFO"
        assert ObservabilityConfig().log_format == "auto"

    def test_app_settings_aggregates_groups(self) -> None:
        settings = AppSettings(llm=LLMConfig(provider="anthropic"))
        assert settings.llm.provider == "anthropic"
        assert isinstance(settings.context, ContextConfig)
        assert isinstance(settings.retry, RetryConfig)
