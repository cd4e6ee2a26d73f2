"""Cooperative cancellation token shared by the gateway, retry loop and adapters."""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

from termsight.exceptions import RequestCancelledError


def _wake(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)


class CancellationToken:
    """Thread-safe, one-way cancellation flag.

    Cancellation is cooperative: the retry coordinator checks the token
    before every attempt and before yielding each streamed chunk, and
    backoff waits end as soon as the token is signalled. :meth:`cancel` may
    be called from any thread; waiting coroutines are woken on their own
    event loop.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            waiters, self._waiters = self._waiters, []
        for loop, waiter in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_wake, waiter)

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, provider: str | None = None) -> None:
        if self._event.is_set():
            raise RequestCancelledError(provider=provider)

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait until the token is cancelled or *timeout* seconds pass.

        Returns:
            Whether the token is cancelled.
        """
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        entry = (loop, waiter)
        with self._lock:
            if self._event.is_set():
                return True
            self._waiters.append(entry)
        try:
            await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            pass
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"
