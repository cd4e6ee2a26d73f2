"""LiteLLM-backed provider adapter.

One adapter class serves every catalog vendor: litellm handles the wire
protocol, this module maps requests, responses and exceptions onto
termsight's models and error taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Optional

from termsight.cancellation import CancellationToken
from termsight.context.protocols import ITokenEstimator
from termsight.context.tokenizer import TokenEstimator
from termsight.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TokenLimitError,
)
from termsight.models import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfiguration,
    ProviderInfo,
    StreamingChunk,
)

log = logging.getLogger(__name__)

# Placeholder key used by local providers; treated as "no key"
NO_KEY = "no-key"


def _has_api_key(api_key: Optional[str]) -> bool:
    return bool(api_key and api_key.strip() and api_key != NO_KEY)


def _retry_after(exc: Exception) -> Optional[float]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class LiteLLMProvider:
    """Provider adapter routed through ``litellm.acompletion()``."""

    def __init__(self, info: ProviderInfo, *, estimator: Optional[ITokenEstimator] = None) -> None:
        self._info = info
        self._estimator = estimator or TokenEstimator()
        self._config: Optional[ProviderConfiguration] = None

    # ── Metadata ─────────────────────────────────────────────────────

    @property
    def info(self) -> ProviderInfo:
        return self._info

    @property
    def configuration(self) -> Optional[ProviderConfiguration]:
        return self._config

    @property
    def is_configured(self) -> bool:
        if self._config is None:
            return False
        return not self._info.requires_api_key or _has_api_key(self._config.api_key)

    def supported_models(self) -> list[str]:
        return list(self._info.supported_models)

    def default_model(self) -> str:
        return self._info.default_model

    def supports_streaming(self) -> bool:
        return self._info.supports_streaming

    def max_context_for_model(self, model: str) -> int:
        """Model window, capped by the configured ``max_context`` when set."""
        context = self._info.max_context_for_model(model)
        if self._config is not None and self._config.max_context > 0:
            context = min(context, self._config.max_context)
        return context

    def estimate_tokens(self, text: str) -> int:
        return self._estimator.estimate(text)

    def litellm_model(self, model: str) -> str:
        """Return *model* with this vendor's litellm route prefix."""
        prefix = self._info.litellm_prefix
        if not prefix or model.startswith(prefix):
            return model
        return f"{prefix}{model}"

    # ── Configuration ────────────────────────────────────────────────

    def validate_configuration(self, config: ProviderConfiguration) -> Optional[str]:
        if self._info.requires_api_key and not _has_api_key(config.api_key):
            return f"API key is required for {self._info.name} provider"
        if self._info.strict_models and not self._info.supports_model(config.model):
            return (
                f"Model '{config.model}' is not supported. "
                f"Supported models: {', '.join(self._info.supported_models)}"
            )
        if not self._info.supports_model(config.model):
            log.warning("Model %r is not in the %s catalog", config.model, self._info.name)
        return None

    def configure(self, config: ProviderConfiguration) -> None:
        error = config.validation_error() or self.validate_configuration(config)
        if error:
            raise ConfigurationError(error, provider=self._info.id)
        self._config = config
        log.info("%s provider configured with model: %s", self._info.name, config.model)

    def _require_configuration(self) -> ProviderConfiguration:
        if self._config is None:
            raise ConfigurationError("Provider is not configured", provider=self._info.id)
        return self._config

    def _build_kwargs(self, request: CompletionRequest, config: ProviderConfiguration) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.litellm_model(request.model or config.model),
            "messages": request.to_messages(),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
            "top_p": request.top_p,
            "timeout": config.timeout,
        }
        if _has_api_key(config.api_key):
            kwargs["api_key"] = config.api_key

        api_base = config.base_url or config.endpoint
        if api_base is None and not self._info.requires_api_key:
            api_base = self._info.endpoint
        if api_base:
            kwargs["api_base"] = api_base

        if request.stop:
            kwargs["stop"] = request.stop
        if request.n != 1:
            kwargs["n"] = request.n
        if request.presence_penalty:
            kwargs["presence_penalty"] = request.presence_penalty
        if request.frequency_penalty:
            kwargs["frequency_penalty"] = request.frequency_penalty
        if config.organization_id:
            kwargs["organization"] = config.organization_id
        if config.headers:
            kwargs["extra_headers"] = dict(config.headers)
        kwargs.update(config.additional_params)
        return kwargs

    # ── Error mapping ────────────────────────────────────────────────

    def _map_error(self, exc: Exception) -> GatewayError:
        """Translate a litellm (or transport) exception into the taxonomy.

        Non-retryable: auth, permission, bad request, not found, context window.
        Retryable (default): rate limits, timeouts, connection failures, 5xx.
        """
        if isinstance(exc, GatewayError):
            return exc

        from litellm import exceptions as llm_exc

        provider = self._info.id
        status = getattr(exc, "status_code", None)
        message = str(getattr(exc, "message", None) or exc)

        if isinstance(exc, (llm_exc.AuthenticationError, llm_exc.PermissionDeniedError)):
            return AuthenticationError(provider, message, http_status=status)
        if isinstance(exc, llm_exc.RateLimitError):
            return RateLimitError(provider, message, retry_after=_retry_after(exc))
        if isinstance(exc, (llm_exc.Timeout, asyncio.TimeoutError)):
            timeout = self._config.timeout if self._config else None
            return ProviderTimeoutError(provider, message, timeout=timeout)
        # ContextWindowExceededError subclasses BadRequestError
        if isinstance(exc, llm_exc.ContextWindowExceededError):
            return TokenLimitError(provider, message=message)
        if isinstance(exc, (llm_exc.BadRequestError, llm_exc.NotFoundError, llm_exc.UnprocessableEntityError)):
            return InvalidRequestError(provider, message, http_status=status)
        return ProviderError(provider, message, http_status=status, retryable=True)

    # ── Calls ────────────────────────────────────────────────────────

    async def complete(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompletionResponse:
        config = self._require_configuration()
        from litellm import acompletion

        kwargs = self._build_kwargs(request, config)
        log.debug("acompletion model=%s messages=%d", kwargs["model"], len(kwargs["messages"]))
        try:
            response = await acompletion(**kwargs)
        except Exception as exc:
            raise self._map_error(exc) from exc

        choice = response.choices[0]
        prompt_tokens = completion_tokens = total_tokens = 0
        usage = getattr(response, "usage", None)
        if usage:
            prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
            completion_tokens = getattr(usage, "completion_tokens", 0) or 0
            total_tokens = getattr(usage, "total_tokens", 0) or 0

        result = CompletionResponse(
            content=choice.message.content or "",
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens or prompt_tokens + completion_tokens,
            finish_reason=choice.finish_reason or "unknown",
            provider=self._info.id,
            model=getattr(response, "model", None) or request.model,
            metadata={"id": getattr(response, "id", None)},
        )
        log.info("Completion received from %s. Tokens: %d", self._info.id, result.total_tokens)
        return result

    async def stream_complete(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamingChunk]:
        config = self._require_configuration()
        from litellm import acompletion

        kwargs = self._build_kwargs(request, config)
        kwargs["stream"] = True
        try:
            stream = await acompletion(**kwargs)
        except Exception as exc:
            raise self._map_error(exc) from exc

        index = 0
        produced = ""
        finish_reason: Optional[str] = None
        try:
            async for part in stream:
                if cancel_token is not None and cancel_token.is_cancelled:
                    break
                if not part.choices:
                    continue
                choice = part.choices[0]
                if choice.finish_reason:
                    finish_reason = choice.finish_reason
                delta = getattr(choice.delta, "content", None) or ""
                if not delta:
                    continue
                produced += delta
                yield StreamingChunk(
                    content=delta,
                    chunk_index=index,
                    cumulative_tokens=self.estimate_tokens(produced),
                    provider=self._info.id,
                    model=getattr(part, "model", None) or request.model,
                )
                index += 1
        except Exception as exc:
            raise self._map_error(exc) from exc

        log.info("Streaming from %s completed. Total chunks: %d", self._info.id, index)
        yield StreamingChunk.complete(
            finish_reason or "stop",
            chunk_index=index,
            cumulative_tokens=self.estimate_tokens(produced),
            provider=self._info.id,
            model=request.model,
        )

    async def test_connection(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        if not self.is_configured:
            log.warning("Cannot test connection: %s is not configured", self._info.id)
            return False
        probe = CompletionRequest.from_prompt("test", model=self._config.model, max_tokens=5)
        try:
            await self.complete(probe, cancel_token)
        except GatewayError as exc:
            log.error("Connection test failed for %s: %s", self._info.id, exc)
            return False
        return True

    def __repr__(self) -> str:
        return f"LiteLLMProvider({self._info.id!r}, configured={self.is_configured})"
