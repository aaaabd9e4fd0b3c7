from __future__ import annotations

"""
Cooperative cancellation token passed through every suspension point of a call.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, TypeVar

from .errors import CallAbortedError

T = TypeVar("T")

AbortListener = Callable[[], None]
DiscardFn = Callable[[Any], "Awaitable[None] | None"]


class AbortSignal:
    """
    Read side of an abort token.

    A signal only ever moves from "not aborted" to "aborted". Listeners run
    synchronously, once, when the signal is raised. A signal created with
    `abortable=False` can never fire and keeps no listeners.
    """

    def __init__(self, *, abortable: bool = True) -> None:
        self._abortable = abortable
        self._aborted = False
        self._reason: Any = None
        self._listeners: list[AbortListener] = []

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: AbortListener) -> None:
        if self._aborted:
            listener()
            return
        if not self._abortable:
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise CallAbortedError(self._reason)

    async def guard(self, aw: Awaitable[T], *, on_discard: DiscardFn | None = None) -> T:
        """
        Await `aw` unless the signal fires first.

        When the signal fires, the pending work is cancelled and
        `CallAbortedError` is raised. An abort observed together with a
        completed result still wins; that result is handed to `on_discard`
        so resources it holds can be released.
        """
        if not self._abortable:
            return await aw
        if self._aborted:
            if asyncio.iscoroutine(aw):
                aw.close()
            raise CallAbortedError(self._reason)

        task = asyncio.ensure_future(aw)
        waiter = asyncio.get_running_loop().create_future()

        def _on_abort() -> None:
            if not waiter.done():
                waiter.set_result(None)

        self.add_listener(_on_abort)
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self.remove_listener(_on_abort)
            if not waiter.done():
                waiter.cancel()

        if self._aborted:
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
            elif not task.cancelled() and task.exception() is None:
                if on_discard is not None:
                    released = on_discard(task.result())
                    if inspect.isawaitable(released):
                        await released
            raise CallAbortedError(self._reason)
        return task.result()

    async def sleep(self, delay_s: float) -> None:
        """Sleep for `delay_s` seconds, waking early with `CallAbortedError` on abort."""
        await self.guard(asyncio.sleep(delay_s))

    def _abort(self, reason: Any) -> None:
        if self._aborted or not self._abortable:
            return
        self._aborted = True
        self._reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener()


class AbortController:
    """Write side of an abort token; hands out `signal` to the calls it controls."""

    def __init__(self) -> None:
        self._signal = AbortSignal()

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    def abort(self, reason: Any = None) -> None:
        self._signal._abort(reason)


_NEVER = AbortSignal(abortable=False)


def never_aborted() -> AbortSignal:
    """Shared signal for calls that were given no abort signal."""
    return _NEVER
