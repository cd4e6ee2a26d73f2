"""Retry coordinator: exponential backoff with jitter for single-shot and streamed calls.

A partially consumed stream cannot be resumed, so a retried stream starts
again from the beginning. Consumers are told explicitly: every retry is
preceded by a ``StreamingChunk.restart(attempt)`` marker and every chunk
carries the ``attempt`` that produced it.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from termsight.cancellation import CancellationToken
from termsight.exceptions import GatewayError, ProviderError, RateLimitError, RequestCancelledError
from termsight.models import StreamingChunk

log = logging.getLogger(__name__)

T = TypeVar("T")
ErrorCallback = Callable[[GatewayError, int], None]

DEFAULT_MAX_RETRIES = 3


class StreamState(str, Enum):
    ATTEMPTING = "attempting"
    STREAMING = "streaming"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.is_cancelled


async def _aclose(stream: AsyncIterator[StreamingChunk]) -> None:
    close = getattr(stream, "aclose", None)
    if close is not None:
        await close()


class RetryCoordinator:
    """Drives provider calls with bounded retries.

    Args:
        base_delay: Backoff base in seconds; attempt *n* waits
            ``base_delay * 2**(n-1)`` plus jitter.
        max_jitter: Upper bound of the uniform jitter in seconds.
        sleep: Awaitable sleep, injectable for tests.
        rng: Random source for jitter, injectable for tests.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_jitter: float = 1.0,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._base_delay = base_delay
        self._max_jitter = max_jitter
        self._sleep = sleep
        self._rng = rng or random.Random()

    def base_backoff(self, attempt: int) -> float:
        """Non-jitter component of the delay after failed attempt *attempt* (1-based)."""
        return self._base_delay * (2 ** (attempt - 1))

    def backoff_delay(self, attempt: int) -> float:
        return self.base_backoff(attempt) + self._rng.uniform(0, self._max_jitter)

    def _delay_for(self, error: GatewayError, attempt: int) -> float:
        delay = self.backoff_delay(attempt)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, error.retry_after)
        return delay

    async def _backoff(self, delay: float, cancel_token: Optional[CancellationToken]) -> None:
        """Sleep for *delay*, returning early once *cancel_token* is signalled."""
        if cancel_token is None:
            await self._sleep(delay)
            return
        if cancel_token.is_cancelled:
            return
        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, waiter):
                task.cancel()
            await asyncio.gather(sleeper, waiter, return_exceptions=True)

    @staticmethod
    def _classify(exc: Exception, provider_id: str) -> GatewayError:
        if isinstance(exc, GatewayError):
            return exc
        error = ProviderError(provider_id, f"Unexpected provider failure: {exc}", retryable=False)
        error.__cause__ = exc
        return error

    # ── Single-shot ──────────────────────────────────────────────────

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        provider_id: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        cancel_token: Optional[CancellationToken] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> tuple[T, int]:
        """Await ``call()`` until it succeeds or retries run out.

        Returns:
            ``(result, attempts)``.

        Raises:
            RequestCancelledError: The token was signalled before an attempt
                or during a backoff wait.
            GatewayError: The last error once it is fatal or retries are exhausted.
        """
        allowed = max(max_retries, 1)
        attempt = 0
        while True:
            if _cancelled(cancel_token):
                log.info("Request to %s cancelled after %d attempt(s)", provider_id, attempt)
                raise RequestCancelledError(provider=provider_id, attempts=attempt)

            attempt += 1
            try:
                result = await call()
            except Exception as exc:
                error = self._classify(exc, provider_id)
                if error.retryable and attempt < allowed:
                    delay = self._delay_for(error, attempt)
                    log.warning(
                        "Attempt %d/%d to %s failed: %s (retrying in %.2fs)",
                        attempt, allowed, provider_id, error.message, delay,
                    )
                    await self._backoff(delay, cancel_token)
                    continue

                log.error(
                    "Request to %s failed after %d attempt(s): %s (retryable=%s)",
                    provider_id, attempt, error.message, error.retryable,
                )
                if on_error is not None:
                    on_error(error, attempt)
                if error is exc:
                    raise
                raise error from exc

            if attempt > 1:
                log.info("Request to %s succeeded on attempt %d", provider_id, attempt)
            return result, attempt

    # ── Streaming ────────────────────────────────────────────────────

    async def stream(
        self,
        factory: Callable[[], AsyncIterator[StreamingChunk]],
        *,
        provider_id: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        cancel_token: Optional[CancellationToken] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> AsyncIterator[StreamingChunk]:
        """Yield chunks from ``factory()``, restarting from scratch on retryable failure.

        The sequence always ends with exactly one ``is_complete`` chunk: the
        provider's own, a synthesized ``complete``, a ``cancelled`` marker or
        an ``error`` chunk.
        """
        allowed = max(max_retries, 1)
        attempt = 0
        state = StreamState.ATTEMPTING
        error: Optional[GatewayError] = None

        while True:
            log.debug("Stream to %s: %s (attempt %d)", provider_id, state.value, attempt)

            if state is StreamState.ATTEMPTING:
                if _cancelled(cancel_token):
                    yield StreamingChunk.cancelled(provider=provider_id, attempt=max(attempt, 1))
                    return
                attempt += 1
                if attempt > 1:
                    yield StreamingChunk.restart(attempt, provider=provider_id)
                state = StreamState.STREAMING

            elif state is StreamState.STREAMING:
                source = factory()
                completed = False
                try:
                    async for chunk in source:
                        if _cancelled(cancel_token):
                            log.info("Stream to %s cancelled on attempt %d", provider_id, attempt)
                            yield StreamingChunk.cancelled(provider=provider_id, attempt=attempt)
                            return
                        yield chunk.model_copy(update={"attempt": attempt})
                        if chunk.is_complete:
                            completed = True
                            break
                except Exception as exc:
                    error = self._classify(exc, provider_id)
                    state = StreamState.RETRYING if error.retryable and attempt < allowed else StreamState.FAILED
                else:
                    if not completed:
                        yield StreamingChunk.complete(provider=provider_id, attempt=attempt)
                    state = StreamState.SUCCEEDED
                finally:
                    await _aclose(source)

            elif state is StreamState.RETRYING:
                assert error is not None
                delay = self._delay_for(error, attempt)
                log.warning(
                    "Stream attempt %d/%d to %s failed: %s (restarting in %.2fs)",
                    attempt, allowed, provider_id, error.message, delay,
                )
                await self._backoff(delay, cancel_token)
                state = StreamState.ATTEMPTING

            elif state is StreamState.FAILED:
                assert error is not None
                log.error(
                    "Stream to %s failed after %d attempt(s): %s (retryable=%s)",
                    provider_id, attempt, error.message, error.retryable,
                )
                if on_error is not None:
                    on_error(error, attempt)
                yield StreamingChunk.error(error.message, provider=provider_id, attempt=attempt)
                return

            else:
                if attempt > 1:
                    log.info("Stream to %s succeeded on attempt %d", provider_id, attempt)
                return
