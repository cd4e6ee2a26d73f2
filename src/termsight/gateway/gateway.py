"""LLM gateway: provider registry, context injection and retried dispatch."""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import aclosing
from typing import AsyncIterator, Optional

from termsight.cancellation import CancellationToken
from termsight.context.protocols import IContextProvider
from termsight.context.tokenizer import TokenEstimator
from termsight.exceptions import (
    ConfigurationError,
    GatewayError,
    NoActiveProviderError,
    ProviderNotFoundError,
)
from termsight.gateway.retry import DEFAULT_MAX_RETRIES, ErrorCallback, RetryCoordinator
from termsight.hooks.events import (
    ErrorOccurredEvent,
    HookRegistry,
    RequestSentEvent,
    ResponseReceivedEvent,
    StreamingChunkEvent,
)
from termsight.hooks.logging_config import request_context
from termsight.models import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfiguration,
    ProviderInfo,
    StreamingChunk,
)
from termsight.providers.protocols import ILLMProvider

log = logging.getLogger(__name__)


class _ProviderEntry:
    """Registry slot: adapter plus its committed configuration."""

    __slots__ = ("adapter", "config", "lock")

    def __init__(self, adapter: ILLMProvider) -> None:
        self.adapter = adapter
        self.config: Optional[ProviderConfiguration] = None
        self.lock = threading.Lock()


class LLMGateway:
    """Routes completion requests to the active provider adapter.

    The registry lock only guards dictionary access and is never held
    across an await, so concurrent sends do not serialize. Each send
    captures the active adapter once; switching providers mid-flight only
    affects later requests.
    """

    def __init__(
        self,
        context_provider: Optional[IContextProvider] = None,
        *,
        hooks: Optional[HookRegistry] = None,
        retry: Optional[RetryCoordinator] = None,
    ) -> None:
        self._context = context_provider
        self._hooks = hooks or HookRegistry()
        self._retry = retry or RetryCoordinator()
        self._entries: dict[str, _ProviderEntry] = {}
        self._registry_lock = threading.Lock()
        self._active_id: Optional[str] = None
        self._fallback_estimator = TokenEstimator()

    # ── Registry ─────────────────────────────────────────────────────

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def active_provider_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active_provider(self) -> Optional[ILLMProvider]:
        active_id = self._active_id
        if active_id is None:
            return None
        entry = self._entries.get(active_id)
        return entry.adapter if entry else None

    def register_provider(self, adapter: ILLMProvider) -> None:
        provider_id = adapter.info.id
        with self._registry_lock:
            if provider_id in self._entries:
                log.warning("Replacing registered provider %s", provider_id)
            self._entries[provider_id] = _ProviderEntry(adapter)
        log.info("Registered provider: %s", provider_id)

    def unregister_provider(self, provider_id: str) -> bool:
        with self._registry_lock:
            entry = self._entries.pop(provider_id, None)
            if entry is None:
                return False
            if self._active_id == provider_id:
                self._active_id = None
                log.warning("Unregistered the active provider %s; no provider is active", provider_id)
        log.info("Unregistered provider: %s", provider_id)
        return True

    def _entry(self, provider_id: str) -> _ProviderEntry:
        with self._registry_lock:
            entry = self._entries.get(provider_id)
        if entry is None:
            raise ProviderNotFoundError(provider_id)
        return entry

    def configure_provider(self, config: ProviderConfiguration) -> None:
        """Validate and commit *config* for its provider.

        Raises:
            ProviderNotFoundError: The provider is not registered.
            ConfigurationError: Generic or adapter-level validation failed.
        """
        entry = self._entry(config.provider_id)
        error = config.validation_error() or entry.adapter.validate_configuration(config)
        if error:
            log.error("Invalid configuration for %s: %s", config.provider_id, error)
            raise ConfigurationError(error, provider=config.provider_id)

        with entry.lock:
            entry.adapter.configure(config)
            entry.config = config
        log.info("Configured provider %s", config)

        if self._active_id == config.provider_id:
            self._sync_context_model(entry)

    def set_active_provider(self, provider_id: str) -> None:
        entry = self._entry(provider_id)
        if not entry.adapter.is_configured:
            log.warning("Activating provider %s before it is configured", provider_id)
        with self._registry_lock:
            if self._entries.get(provider_id) is not entry:
                raise ProviderNotFoundError(provider_id)
            self._active_id = provider_id
        log.info("Active provider set to %s", provider_id)
        self._sync_context_model(entry)

    def _sync_context_model(self, entry: _ProviderEntry) -> None:
        if self._context is None:
            return
        model = entry.config.model if entry.config else entry.adapter.default_model()
        try:
            self._context.set_model(model, entry.adapter.max_context_for_model(model))
        except GatewayError as exc:
            log.warning("Could not update context model for %s: %s", model, exc)

    def provider_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._entries)

    def providers_info(self) -> list[ProviderInfo]:
        with self._registry_lock:
            return [entry.adapter.info for entry in self._entries.values()]

    def get_provider(self, provider_id: str) -> Optional[ILLMProvider]:
        with self._registry_lock:
            entry = self._entries.get(provider_id)
        return entry.adapter if entry else None

    def get_configuration(self, provider_id: str) -> Optional[ProviderConfiguration]:
        with self._registry_lock:
            entry = self._entries.get(provider_id)
        return entry.config if entry else None

    def active_configuration(self) -> Optional[ProviderConfiguration]:
        active_id = self._active_id
        return self.get_configuration(active_id) if active_id else None

    # ── Dispatch ─────────────────────────────────────────────────────

    def _capture_active(self) -> tuple[str, ILLMProvider, Optional[ProviderConfiguration]]:
        with self._registry_lock:
            active_id = self._active_id
            entry = self._entries.get(active_id) if active_id else None
        if active_id is None or entry is None:
            raise NoActiveProviderError()
        return active_id, entry.adapter, entry.config

    def _prepare(self, request: CompletionRequest, provider_id: str) -> CompletionRequest:
        error = request.validation_error()
        if error:
            raise ConfigurationError(error, provider=provider_id)
        return self._inject_context(request)

    def _inject_context(self, request: CompletionRequest) -> CompletionRequest:
        """Return a copy of *request* with terminal context as a leading system message.

        An explicit ``request.context`` is used as given (blank opts out);
        otherwise up to ``max_tokens // 2`` tokens come from the context
        engine, headed by the shell's working directory when it is known.
        Failures are logged and the request proceeds without context.
        """
        if request.context is not None:
            return request.with_context(request.context)
        if self._context is None:
            return request
        try:
            result = self._context.get_truncated_context(request.max_tokens // 2)
        except Exception:
            log.warning("Context injection failed; sending without terminal context", exc_info=True)
            return request
        return request.with_context(result.truncated_content, result.working_directory)

    def _error_reporter(self, provider_id: str, streaming: bool) -> ErrorCallback:
        def _report(error: GatewayError, attempts: int) -> None:
            self._hooks.emit(
                ErrorOccurredEvent(provider_id=provider_id, error=error, attempts=attempts, streaming=streaming)
            )

        return _report

    async def send(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompletionResponse:
        """Send a single-shot completion through the active provider.

        Raises:
            NoActiveProviderError: No provider is active.
            ConfigurationError: The request is malformed.
            RequestCancelledError: *cancel_token* was signalled.
            ProviderError: The last provider failure once retries ran out.
        """
        provider_id, adapter, config = self._capture_active()
        token = cancel_token or request.cancel_token
        prepared = self._prepare(request, provider_id)
        max_retries = config.max_retries if config else DEFAULT_MAX_RETRIES

        with request_context(provider_id, prepared.model):
            self._hooks.emit(RequestSentEvent(provider_id=provider_id, request=prepared))
            log.debug("Sending request to %s (model=%s)", provider_id, prepared.model)

            response, attempts = await self._retry.run(
                functools.partial(adapter.complete, prepared, token),
                provider_id=provider_id,
                max_retries=max_retries,
                cancel_token=token,
                on_error=self._error_reporter(provider_id, streaming=False),
            )

            self._hooks.emit(ResponseReceivedEvent(provider_id=provider_id, response=response, attempts=attempts))
        return response

    async def send_streaming(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamingChunk]:
        """Stream a completion through the active provider.

        Gateway misuse and validation errors raise on the first iteration.
        Provider failures never raise: the stream ends with an error chunk.
        A chunk with ``is_restart=True`` means the stream was retried from
        the beginning and previously received text must be discarded.
        """
        provider_id, adapter, config = self._capture_active()
        if not adapter.supports_streaming():
            raise GatewayError(f"Provider '{provider_id}' does not support streaming", provider=provider_id)
        if config is not None and not config.enable_streaming:
            raise GatewayError(f"Streaming is disabled for provider '{provider_id}'", provider=provider_id)

        token = cancel_token or request.cancel_token
        prepared = self._prepare(request, provider_id).model_copy(update={"stream": True})
        max_retries = config.max_retries if config else DEFAULT_MAX_RETRIES

        self._hooks.emit(RequestSentEvent(provider_id=provider_id, request=prepared, streaming=True))
        log.debug("Streaming request to %s (model=%s)", provider_id, prepared.model)

        chunks = self._retry.stream(
            functools.partial(adapter.stream_complete, prepared, token),
            provider_id=provider_id,
            max_retries=max_retries,
            cancel_token=token,
            on_error=self._error_reporter(provider_id, streaming=True),
        )
        async with aclosing(chunks):
            async for chunk in chunks:
                self._hooks.emit(StreamingChunkEvent(provider_id=provider_id, chunk=chunk))
                yield chunk

    # ── Utilities ────────────────────────────────────────────────────

    async def test_connection(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """Probe the active provider. False when none is active or the probe fails."""
        try:
            provider_id, adapter, config = self._capture_active()
        except NoActiveProviderError:
            log.warning("No active provider to test")
            return False
        model = config.model if config else adapter.default_model()
        with request_context(provider_id, model):
            ok = await adapter.test_connection(cancel_token)
            log.info("Connection test for %s: %s", provider_id, "ok" if ok else "failed")
        return ok

    def estimate_token_count(self, text: str) -> int:
        adapter = self.active_provider
        if adapter is None:
            return self._fallback_estimator.estimate(text)
        return adapter.estimate_tokens(text)
