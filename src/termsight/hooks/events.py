"""Notification events and a callback registry.

Delivery is best effort: a failing callback is logged and skipped, never
propagated into the request that emitted the event. Callbacks run
synchronously, in registration order, on the emitting thread.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Optional, TypeVar

if TYPE_CHECKING:
    from termsight.context.directory_tracker import DirectoryChangeType
    from termsight.context.models import TruncationResult
    from termsight.exceptions import GatewayError
    from termsight.models import CompletionRequest, CompletionResponse, StreamingChunk

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class RequestSentEvent:
    provider_id: str
    request: CompletionRequest
    streaming: bool = False


@dataclasses.dataclass(frozen=True)
class ResponseReceivedEvent:
    provider_id: str
    response: CompletionResponse
    attempts: int = 1


@dataclasses.dataclass(frozen=True)
class StreamingChunkEvent:
    provider_id: str
    chunk: StreamingChunk


@dataclasses.dataclass(frozen=True)
class ErrorOccurredEvent:
    provider_id: Optional[str]
    error: GatewayError
    attempts: int = 0
    streaming: bool = False


@dataclasses.dataclass(frozen=True)
class ContextTruncatedEvent:
    result: TruncationResult
    budget: int


@dataclasses.dataclass(frozen=True)
class DirectoryChangedEvent:
    old_directory: Optional[str]
    new_directory: str
    change_type: DirectoryChangeType
    username: Optional[str] = None
    hostname: Optional[str] = None


E = TypeVar("E")
Callback = Callable[[Any], None]


class HookRegistry:
    """Explicit callback registration keyed by event type."""

    def __init__(self) -> None:
        self._callbacks: dict[type, list[Callback]] = defaultdict(list)
        self._lock = threading.Lock()

    def add_callback(self, event_type: type[E], callback: Callable[[E], None]) -> None:
        with self._lock:
            self._callbacks[event_type].append(callback)

    def remove_callback(self, event_type: type[E], callback: Callable[[E], None]) -> bool:
        with self._lock:
            callbacks = self._callbacks.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)
                return True
            return False

    def has_callbacks(self, event_type: type) -> bool:
        with self._lock:
            return bool(self._callbacks.get(event_type))

    def emit(self, event: Any) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(type(event), ()))
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                log.warning("Hook callback %r failed for %s", callback, type(event).__name__, exc_info=True)
