"""Exception hierarchy for termsight.

Every gateway failure carries a ``retryable`` flag so callers can decide
whether to offer a retry themselves once the built-in retries are exhausted.
"""

from __future__ import annotations

from typing import Optional


class TermsightError(Exception):
    """Base exception for all termsight errors."""


class TokenizerError(TermsightError):
    """Raised when token estimation cannot be set up or performed."""


class GatewayError(TermsightError):
    """Base exception for gateway and provider failures."""

    def __init__(
        self,
        message: str = "LLM gateway error",
        *,
        provider: Optional[str] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.error_code = error_code
        self.http_status = http_status
        self.retryable = retryable

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, provider={self.provider!r}, "
            f"retryable={self.retryable})"
        )


class ConfigurationError(GatewayError):
    """Invalid policy, provider configuration, or request shape. Never retried."""

    def __init__(self, message: str, *, key: Optional[str] = None, provider: Optional[str] = None) -> None:
        super().__init__(message, provider=provider, retryable=False)
        self.key = key


class ProviderNotFoundError(GatewayError):
    """Raised when a provider id is not registered with the gateway."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider '{provider_id}' is not registered", provider=provider_id)
        self.provider_id = provider_id


class NoActiveProviderError(GatewayError):
    """Raised when a request is sent before any provider was activated."""

    def __init__(self) -> None:
        super().__init__("No active LLM provider is configured")


class RequestCancelledError(GatewayError):
    """Raised when the caller's cancellation token was signalled."""

    def __init__(self, provider: Optional[str] = None, attempts: int = 0) -> None:
        super().__init__(
            f"Request cancelled after {attempts} attempt(s)",
            provider=provider,
        )
        self.attempts = attempts


class ProviderError(GatewayError):
    """A vendor call failed. Retryability depends on the cause."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(
            message,
            provider=provider,
            error_code=error_code,
            http_status=http_status,
            retryable=retryable,
        )


class AuthenticationError(ProviderError):
    """Credentials rejected by the vendor."""

    def __init__(self, provider: str, message: str, *, http_status: Optional[int] = 401) -> None:
        super().__init__(provider, message, http_status=http_status, retryable=False)


class RateLimitError(ProviderError):
    """Vendor throttling. ``retry_after`` is the suggested wait in seconds."""

    def __init__(self, provider: str, message: str, *, retry_after: Optional[float] = None) -> None:
        super().__init__(provider, message, http_status=429, retryable=True)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    """The vendor call exceeded its deadline."""

    def __init__(self, provider: str, message: str, *, timeout: Optional[float] = None) -> None:
        super().__init__(provider, message, retryable=True)
        self.timeout = timeout


class TokenLimitError(ProviderError):
    """Request exceeds model capacity even after context truncation."""

    def __init__(self, provider: str, token_count: int = 0, max_tokens: int = 0, message: str = "") -> None:
        super().__init__(
            provider,
            message or f"Token limit exceeded: {token_count}/{max_tokens}",
            retryable=False,
        )
        self.token_count = token_count
        self.max_tokens = max_tokens


class InvalidRequestError(ProviderError):
    """The vendor rejected the request as malformed."""

    def __init__(self, provider: str, message: str, *, http_status: Optional[int] = 400) -> None:
        super().__init__(provider, message, http_status=http_status, retryable=False)
