"""Gateway: provider registry, context injection and retried dispatch."""

from __future__ import annotations

from termsight.gateway.gateway import LLMGateway
from termsight.gateway.retry import DEFAULT_MAX_RETRIES, RetryCoordinator, StreamState

__all__ = ["DEFAULT_MAX_RETRIES", "LLMGateway", "RetryCoordinator", "StreamState"]
