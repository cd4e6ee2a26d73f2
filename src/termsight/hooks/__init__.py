"""Notification hooks and logging setup."""

from __future__ import annotations

from termsight.hooks.events import (
    ContextTruncatedEvent,
    DirectoryChangedEvent,
    ErrorOccurredEvent,
    HookRegistry,
    RequestSentEvent,
    ResponseReceivedEvent,
    StreamingChunkEvent,
)
from termsight.hooks.logging_config import request_context, setup_logging

__all__ = [
    "ContextTruncatedEvent",
    "DirectoryChangedEvent",
    "ErrorOccurredEvent",
    "HookRegistry",
    "RequestSentEvent",
    "ResponseReceivedEvent",
    "StreamingChunkEvent",
    "request_context",
    "setup_logging",
]
