"""Concurrency throttles limiting how many logical calls are in flight."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Protocol

from ..logging import logger
from .abort import AbortSignal
from .config import ExecutionConfig
from .errors import CallAbortedError, ConfigurationError


class Throttle(Protocol):
    async def acquire(self, abort_signal: AbortSignal) -> None:
        """Suspend until a slot is free; raise `CallAbortedError` on abort."""
        ...

    def release(self) -> None:
        ...


class UnlimitedThrottle:
    """No-op throttle: every call gets a slot immediately."""

    async def acquire(self, abort_signal: AbortSignal) -> None:
        abort_signal.raise_if_aborted()

    def release(self) -> None:
        return None


class MaxConcurrencyThrottle:
    """
    Bound concurrent calls to `max_concurrent_calls`.

    Excess callers wait in arrival order. A released slot is handed directly
    to the oldest live waiter, so a newcomer can never overtake the queue.
    """

    def __init__(self, max_concurrent_calls: int) -> None:
        if max_concurrent_calls < 1:
            raise ConfigurationError("max_concurrent_calls must be >= 1")
        self.max_concurrent_calls = max_concurrent_calls
        self._in_flight = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self, abort_signal: AbortSignal) -> None:
        abort_signal.raise_if_aborted()

        if self._in_flight < self.max_concurrent_calls and not self.queued:
            self._in_flight += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(
            f"Throttle full ({self._in_flight}/{self.max_concurrent_calls}), "
            f"queued={self.queued}"
        )

        try:
            await abort_signal.guard(waiter)
        except (CallAbortedError, asyncio.CancelledError):
            self._discard(waiter)
            raise

    def release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            # slot ownership moves to the waiter; in_flight is unchanged
            waiter.set_result(None)
            return

        if self._in_flight > 0:
            self._in_flight -= 1

    def _discard(self, waiter: asyncio.Future[None]) -> None:
        if waiter.done() and not waiter.cancelled():
            # slot was handed over while aborting; pass it on
            self.release()
            return
        waiter.cancel()
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass


def throttle_from_config(config: ExecutionConfig) -> Throttle:
    if config.max_concurrent_calls is None:
        return UnlimitedThrottle()
    return MaxConcurrencyThrottle(config.max_concurrent_calls)
