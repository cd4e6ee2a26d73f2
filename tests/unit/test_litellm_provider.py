"""Tests for the litellm-backed provider adapter.

``litellm.acompletion`` is patched, so no network calls are made.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from litellm import exceptions as llm_exc

from termsight.cancellation import CancellationToken
from termsight.exceptions import (
    AuthenticationError,
    ConfigurationError,
    InvalidRequestError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTimeoutError,
    RateLimitError,
    TokenLimitError,
)
from termsight.models import CompletionRequest, ProviderConfiguration
from termsight.providers.catalog import OLLAMA, OPENAI, OPENROUTER
from termsight.providers.factory import create_provider, register_builtin_providers
from termsight.providers.litellm_provider import LiteLLMProvider
from termsight.providers.protocols import ILLMProvider


def _response(content: str = "Answer", **usage) -> SimpleNamespace:
    return SimpleNamespace(
        id="resp-1",
        model="gpt-4",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(
            prompt_tokens=usage.get("prompt", 12),
            completion_tokens=usage.get("completion", 3),
            total_tokens=usage.get("total", 15),
        ),
    )


def _part(content: str | None, finish_reason: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        model="gpt-4",
        choices=[SimpleNamespace(delta=SimpleNamespace(content=content), finish_reason=finish_reason)],
    )


class _Stream:
    """Async iterator standing in for litellm's CustomStreamWrapper."""

    def __init__(self, parts: list, error: Exception | None = None) -> None:
        self._parts = list(parts)
        self._error = error

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._parts:
            return self._parts.pop(0)
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration


@pytest.fixture
def openai() -> LiteLLMProvider:
    provider = LiteLLMProvider(OPENAI)
    provider.configure(ProviderConfiguration(provider_id="openai", model="gpt-4", api_key="sk-test"))
    return provider


@pytest.fixture
def ollama() -> LiteLLMProvider:
    provider = LiteLLMProvider(OLLAMA)
    provider.configure(ProviderConfiguration(provider_id="ollama", model="llama3"))
    return provider


def _request(**kwargs) -> CompletionRequest:
    kwargs.setdefault("model", "gpt-4")
    return CompletionRequest.from_prompt("hello", **kwargs)


# ── Configuration ────────────────────────────────────────────────────


class TestConfiguration:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(LiteLLMProvider(OPENAI), ILLMProvider)

    def test_api_key_required(self) -> None:
        provider = LiteLLMProvider(OPENAI)
        error = provider.validate_configuration(ProviderConfiguration(provider_id="openai", model="gpt-4"))
        assert error == "API key is required for OpenAI provider"

    def test_placeholder_key_counts_as_missing(self) -> None:
        provider = LiteLLMProvider(OPENAI)
        config = ProviderConfiguration(provider_id="openai", model="gpt-4", api_key="no-key")
        assert provider.validate_configuration(config) is not None

    def test_strict_catalog_rejects_unknown_model(self) -> None:
        provider = LiteLLMProvider(OPENAI)
        config = ProviderConfiguration(provider_id="openai", model="gpt-99", api_key="sk")
        error = provider.validate_configuration(config)
        assert error.startswith("Model 'gpt-99' is not supported. Supported models: gpt-3.5-turbo")

    def test_lenient_catalog_accepts_unknown_model(self) -> None:
        provider = LiteLLMProvider(OLLAMA)
        assert provider.validate_configuration(ProviderConfiguration(provider_id="ollama", model="qwen2")) is None

    def test_configure_invalid_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            LiteLLMProvider(OPENAI).configure(ProviderConfiguration(provider_id="openai", model="gpt-4"))

    def test_is_configured(self, openai: LiteLLMProvider, ollama: LiteLLMProvider) -> None:
        assert openai.is_configured
        assert ollama.is_configured
        assert not LiteLLMProvider(OPENAI).is_configured

    def test_max_context_capped_by_configuration(self) -> None:
        provider = LiteLLMProvider(OPENAI)
        assert provider.max_context_for_model("gpt-4-turbo") == 128_000
        provider.configure(
            ProviderConfiguration(provider_id="openai", model="gpt-4-turbo", api_key="sk", max_context=32_000)
        )
        assert provider.max_context_for_model("gpt-4-turbo") == 32_000
        assert provider.max_context_for_model("gpt-4") == 8192

    def test_litellm_model_prefix(self) -> None:
        provider = LiteLLMProvider(OPENROUTER)
        assert provider.litellm_model("openai/gpt-4") == "openrouter/openai/gpt-4"
        assert provider.litellm_model("openrouter/openai/gpt-4") == "openrouter/openai/gpt-4"

    async def test_complete_requires_configuration(self) -> None:
        with pytest.raises(ConfigurationError, match="not configured"):
            await LiteLLMProvider(OPENAI).complete(_request())


# ── Completion ───────────────────────────────────────────────────────


class TestComplete:
    async def test_maps_response(self, openai: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response()):
            response = await openai.complete(_request())

        assert response.content == "Answer"
        assert response.prompt_tokens == 12
        assert response.completion_tokens == 3
        assert response.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.provider == "openai"
        assert response.metadata == {"id": "resp-1"}

    async def test_total_tokens_falls_back_to_sum(self, openai: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response(total=0)):
            response = await openai.complete(_request())
        assert response.total_tokens == 15

    async def test_kwargs_for_hosted_provider(self, openai: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response()) as mock:
            await openai.complete(_request(max_tokens=50, stop=["\n\n"]))

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4"
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["max_tokens"] == 50
        assert kwargs["stop"] == ["\n\n"]
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
        assert kwargs["timeout"] == 30.0
        assert "api_base" not in kwargs

    async def test_kwargs_for_local_provider(self, ollama: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response()) as mock:
            await ollama.complete(_request(model="llama3"))

        kwargs = mock.call_args.kwargs
        assert kwargs["model"] == "ollama/llama3"
        assert kwargs["api_base"] == "http://localhost:11434"
        assert "api_key" not in kwargs

    async def test_base_url_overrides_endpoint(self) -> None:
        provider = LiteLLMProvider(OLLAMA)
        provider.configure(ProviderConfiguration(provider_id="ollama", model="llama3", base_url="http://gpu:11434"))
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response()) as mock:
            await provider.complete(_request(model="llama3"))
        assert mock.call_args.kwargs["api_base"] == "http://gpu:11434"

    async def test_connection_probe(self, openai: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_response()) as mock:
            assert await openai.test_connection() is True
        assert mock.call_args.kwargs["max_tokens"] == 5

    async def test_connection_failure(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.AuthenticationError(message="bad key", llm_provider="openai", model="gpt-4")
        with patch("litellm.acompletion", new_callable=AsyncMock, side_effect=error):
            assert await openai.test_connection() is False

    async def test_connection_unconfigured(self) -> None:
        assert await LiteLLMProvider(OPENAI).test_connection() is False


# ── Error mapping ────────────────────────────────────────────────────


class TestErrorMapping:
    async def _raise(self, provider: LiteLLMProvider, error: Exception):
        with patch("litellm.acompletion", new_callable=AsyncMock, side_effect=error):
            await provider.complete(_request())

    async def test_authentication(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.AuthenticationError(message="bad key", llm_provider="openai", model="gpt-4")
        with pytest.raises(AuthenticationError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is False
        assert info.value.__cause__ is error

    async def test_rate_limit_with_retry_after(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.RateLimitError(message="slow down", llm_provider="openai", model="gpt-4")
        error.response = SimpleNamespace(headers={"retry-after": "7"})
        with pytest.raises(RateLimitError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is True
        assert info.value.retry_after == 7.0

    async def test_timeout(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.Timeout(message="timed out", model="gpt-4", llm_provider="openai")
        with pytest.raises(ProviderTimeoutError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is True
        assert info.value.timeout == 30.0

    async def test_asyncio_timeout(self, openai: LiteLLMProvider) -> None:
        with pytest.raises(ProviderTimeoutError):
            await self._raise(openai, asyncio.TimeoutError())

    async def test_context_window(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.ContextWindowExceededError(message="too long", model="gpt-4", llm_provider="openai")
        with pytest.raises(TokenLimitError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is False

    async def test_bad_request(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.BadRequestError(message="malformed", model="gpt-4", llm_provider="openai")
        with pytest.raises(InvalidRequestError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is False

    async def test_connection_error_is_retryable(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.APIConnectionError(message="reset", llm_provider="openai", model="gpt-4")
        with pytest.raises(ProviderError) as info:
            await self._raise(openai, error)
        assert info.value.retryable is True

    async def test_unknown_error_is_retryable(self, openai: LiteLLMProvider) -> None:
        with pytest.raises(ProviderError) as info:
            await self._raise(openai, RuntimeError("socket closed"))
        assert info.value.retryable is True
        assert "socket closed" in info.value.message


# ── Streaming ────────────────────────────────────────────────────────


class TestStreamComplete:
    async def test_yields_deltas_then_complete(self, openai: LiteLLMProvider) -> None:
        stream = _Stream([_part("Hel"), _part(None), _part("lo"), _part(None, finish_reason="length")])
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=stream) as mock:
            chunks = [chunk async for chunk in openai.stream_complete(_request())]

        assert mock.call_args.kwargs["stream"] is True
        assert [c.content for c in chunks[:-1]] == ["Hel", "lo"]
        assert [c.chunk_index for c in chunks[:-1]] == [0, 1]
        assert chunks[1].cumulative_tokens == 2
        assert chunks[-1].is_complete
        assert chunks[-1].finish_reason == "length"

    async def test_default_finish_reason(self, openai: LiteLLMProvider) -> None:
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=_Stream([_part("x")])):
            chunks = [chunk async for chunk in openai.stream_complete(_request())]
        assert chunks[-1].finish_reason == "stop"

    async def test_mid_stream_failure_is_mapped(self, openai: LiteLLMProvider) -> None:
        error = llm_exc.APIConnectionError(message="reset", llm_provider="openai", model="gpt-4")
        stream = _Stream([_part("partial")], error=error)
        received = []
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=stream):
            with pytest.raises(ProviderError) as info:
                async for chunk in openai.stream_complete(_request()):
                    received.append(chunk)
        assert [c.content for c in received] == ["partial"]
        assert info.value.retryable is True

    async def test_cancellation_stops_reading(self, openai: LiteLLMProvider) -> None:
        token = CancellationToken()
        token.cancel()
        stream = _Stream([_part("a"), _part("b")])
        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=stream):
            chunks = [chunk async for chunk in openai.stream_complete(_request(), token)]
        assert len(chunks) == 1
        assert chunks[0].is_complete


# ── Factory ──────────────────────────────────────────────────────────


class TestProviderFactory:
    def test_create_provider(self) -> None:
        provider = create_provider("OpenAI")
        assert provider.info.id == "openai"
        assert not provider.is_configured

    def test_unknown_provider(self) -> None:
        with pytest.raises(ProviderNotFoundError):
            create_provider("acme")

    def test_register_builtin_providers(self) -> None:
        from termsight.gateway.gateway import LLMGateway

        gateway = LLMGateway()
        ids = register_builtin_providers(gateway)
        assert ids == ["openai", "anthropic", "ollama", "gemini", "openrouter"]
        assert gateway.provider_ids() == ids
        assert gateway.active_provider_id is None
