"""Provider adapter protocol: the contract every vendor adapter implements."""

from __future__ import annotations

from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from termsight.cancellation import CancellationToken
from termsight.models import (
    CompletionRequest,
    CompletionResponse,
    ProviderConfiguration,
    ProviderInfo,
    StreamingChunk,
)


@runtime_checkable
class ILLMProvider(Protocol):
    """Protocol for pluggable LLM provider adapters.

    Adapters raise members of the :mod:`termsight.exceptions` taxonomy so
    the retry coordinator can tell transient failures from fatal ones.
    """

    @property
    def info(self) -> ProviderInfo: ...

    @property
    def is_configured(self) -> bool: ...

    @property
    def configuration(self) -> Optional[ProviderConfiguration]: ...

    def configure(self, config: ProviderConfiguration) -> None:
        """Commit *config*. Raises ConfigurationError when it is unusable."""
        ...

    def validate_configuration(self, config: ProviderConfiguration) -> Optional[str]:
        """Return why *config* is unusable, or None. Must not touch adapter state."""
        ...

    async def complete(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CompletionResponse:
        """Run a single completion call.

        Args:
            request: Fully assembled request (context already injected).
            cancel_token: Cooperative cancellation flag.

        Returns:
            CompletionResponse with content and usage.
        """
        ...

    def stream_complete(
        self,
        request: CompletionRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamingChunk]:
        """Start a new stream. Lazy, finite, and not restartable."""
        ...

    def estimate_tokens(self, text: str) -> int: ...

    def supported_models(self) -> list[str]: ...

    def default_model(self) -> str: ...

    def supports_streaming(self) -> bool: ...

    def max_context_for_model(self, model: str) -> int: ...

    async def test_connection(self, cancel_token: Optional[CancellationToken] = None) -> bool: ...
