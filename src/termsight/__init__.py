"""termsight: terminal-aware LLM gateway.

Recent terminal output is buffered, sized to a token budget and injected
into completion requests routed through litellm::

    from termsight import AppSettings, create_engine, create_gateway, CompletionRequest

    settings = AppSettings()
    engine = create_engine(settings)
    engine.add_line("$ make test")
    gateway = create_gateway(settings, engine=engine)
    response = await gateway.send(CompletionRequest.from_prompt("Why did this fail?", model="llama3"))
"""

from __future__ import annotations

from termsight.cancellation import CancellationToken
from termsight.config import AppSettings
from termsight.context import ContextEngine, SizingMode, SizingPolicy, TruncationReason, TruncationResult
from termsight.exceptions import (
    AuthenticationError,
    ConfigurationError,
    GatewayError,
    InvalidRequestError,
    NoActiveProviderError,
    ProviderError,
    ProviderNotFoundError,
    ProviderTimeoutError,
    RateLimitError,
    RequestCancelledError,
    TermsightError,
    TokenLimitError,
)
from termsight.factory import create_engine, create_gateway
from termsight.gateway import LLMGateway, RetryCoordinator
from termsight.models import (
    CompletionRequest,
    CompletionResponse,
    Message,
    MessageRole,
    ProviderConfiguration,
    ProviderInfo,
    StreamingChunk,
)

__version__ = "0.1.0"

__all__ = [
    "AppSettings",
    "AuthenticationError",
    "CancellationToken",
    "CompletionRequest",
    "CompletionResponse",
    "ConfigurationError",
    "ContextEngine",
    "GatewayError",
    "InvalidRequestError",
    "LLMGateway",
    "Message",
    "MessageRole",
    "NoActiveProviderError",
    "ProviderConfiguration",
    "ProviderError",
    "ProviderInfo",
    "ProviderNotFoundError",
    "ProviderTimeoutError",
    "RateLimitError",
    "RequestCancelledError",
    "RetryCoordinator",
    "SizingMode",
    "SizingPolicy",
    "StreamingChunk",
    "TermsightError",
    "TokenLimitError",
    "TruncationReason",
    "TruncationResult",
    "create_engine",
    "create_gateway",
]
