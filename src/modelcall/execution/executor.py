from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Standardized execution of one logical model call: throttling, retries,
abort propagation, timing/metadata capture and lifecycle events.
"""

import asyncio
import inspect
import time
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from ..logging import logger
from .abort import DiscardFn
from .errors import (
    CallAbortedError,
    ModelCallError,
    NonRetryableError,
    RetriesExhaustedError,
    StructureValidationError,
)
from .observability import (
    CallAborted,
    CallFailed,
    CallFinishedEvent,
    CallOutcome,
    CallStartedEvent,
    CallSucceeded,
    EventBus,
)
from .retry import RetryPolicy
from .streaming import END_OF_STREAM, TextStream
from .throttle import Throttle
from .types import (
    AttemptResult,
    CallDescriptor,
    CallMetadata,
    CallResult,
    CallStartedMetadata,
    DeltaChunk,
    ModelInformation,
    RunContext,
)

T = TypeVar("T")
U = TypeVar("U")

AttemptFn = Callable[[RunContext], Awaitable[AttemptResult[T]]]
PostProcessFn = Callable[[AttemptResult[T]], AttemptResult[U]]
StreamSource = AsyncIterator["str | DeltaChunk"]
StartStreamFn = Callable[[RunContext], "StreamSource | Awaitable[StreamSource]"]


class _CallRun:
    """Bookkeeping for one logical call: timing, attempt count, started/finished pairing."""

    def __init__(
        self,
        descriptor: CallDescriptor,
        model: ModelInformation,
        context: RunContext,
    ) -> None:
        self.descriptor = descriptor
        self.model = model
        self.context = context
        self.bus = EventBus(context.observers)
        self.attempts = 0
        self.metadata: CallMetadata | None = None
        self._start_timestamp = 0.0
        self._started_at = 0.0

    def start(self) -> None:
        self._start_timestamp = time.time()
        self._started_at = time.monotonic()
        self.bus.notify(
            CallStartedEvent(
                descriptor=self.descriptor,
                metadata=CallStartedMetadata(
                    call_id=self.context.call_id,
                    run_id=self.context.run_id,
                    model=self.model,
                    start_timestamp=self._start_timestamp,
                ),
            )
        )

    def finish(self, outcome: CallOutcome) -> CallMetadata:
        if self.metadata is not None:
            return self.metadata

        duration_ms = (time.monotonic() - self._started_at) * 1000.0
        self.metadata = CallMetadata(
            call_id=self.context.call_id,
            run_id=self.context.run_id,
            model=self.model,
            start_timestamp=self._start_timestamp,
            finish_timestamp=self._start_timestamp + duration_ms / 1000.0,
            duration_ms=duration_ms,
            attempts_used=self.attempts,
        )
        self.bus.notify(
            CallFinishedEvent(
                descriptor=self.descriptor,
                metadata=self.metadata,
                outcome=outcome,
            )
        )
        return self.metadata

    def finish_with_error(self, error: BaseException) -> CallMetadata:
        if isinstance(error, (CallAbortedError, asyncio.CancelledError)):
            return self.finish(CallAborted())
        return self.finish(CallFailed(error))


async def _run_attempts(
    call: _CallRun,
    attempt: AttemptFn[T],
    retry: RetryPolicy,
    timeout_s: float | None,
    on_discard: DiscardFn | None = None,
) -> AttemptResult[T]:
    """
    Run `attempt` sequentially under `retry` until success or a terminal error.

    `on_discard` receives a successful attempt result that lost the race
    against an abort.
    """
    signal = call.context.abort_signal

    while True:
        signal.raise_if_aborted()
        call.attempts += 1
        try:
            pending: Awaitable[AttemptResult[T]] = attempt(call.context)
            if timeout_s is not None:
                pending = asyncio.wait_for(pending, timeout=timeout_s)
            return await signal.guard(pending, on_discard=on_discard)
        except (CallAbortedError, StructureValidationError):
            raise
        except Exception as error:
            if signal.aborted:
                raise CallAbortedError(signal.reason) from error

            decision = retry.should_retry(error, call.attempts)
            if not decision.retry:
                error_type = (
                    RetriesExhaustedError
                    if decision.reason == "retries-exhausted"
                    else NonRetryableError
                )
                raise error_type(
                    f"{call.descriptor.function_type} call failed after "
                    f"{call.attempts} attempt(s): {error}",
                    attempts=call.attempts,
                    last_error=error,
                ) from error

            logger.debug(
                f"Retrying {call.descriptor.function_type} call {call.context.call_id} "
                f"after attempt {call.attempts} in {decision.delay_s:.2f}s: "
                f"{type(error).__name__}: {error}"
            )
            await signal.sleep(decision.delay_s)


async def execute_call(
    descriptor: CallDescriptor,
    attempt: AttemptFn[Any],
    *,
    model: ModelInformation,
    context: RunContext,
    retry: RetryPolicy,
    throttle: Throttle,
    post_process: PostProcessFn[Any, T] | None = None,
    timeout_s: float | None = None,
) -> CallResult[T]:
    """
    Execute one logical call.

    The throttle slot is held from before `started` until the call settles.
    `post_process` runs once on the successful attempt result; its errors are
    reported as the call's failure and are never retried. A `ModelCallError`
    it raises carries the number of attempts made in `attempts`.

    Raises `RetriesExhaustedError` / `NonRetryableError` on terminal failure,
    `StructureValidationError` when post-processing rejects the value and
    `CallAbortedError` when the abort signal fires.
    """
    await throttle.acquire(context.abort_signal)
    try:
        call = _CallRun(descriptor, model, context)
        call.start()
        try:
            result = await _run_attempts(call, attempt, retry, timeout_s)
            if post_process is not None:
                try:
                    result = post_process(result)
                except ModelCallError as e:
                    if e.attempts is None:
                        e.attempts = call.attempts
                    raise
        except (Exception, asyncio.CancelledError) as e:
            call.finish_with_error(e)
            raise

        metadata = call.finish(CallSucceeded(result=result))
        return CallResult(
            value=result.extracted_value,
            raw_response=result.raw_response,
            metadata=metadata,
            usage=result.usage,
        )
    finally:
        throttle.release()


async def _aclose_quietly(source: Any) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception:
        logger.debug("Error while closing failed text stream", exc_info=True)


async def execute_stream_call(
    descriptor: CallDescriptor,
    start_stream: StartStreamFn,
    *,
    model: ModelInformation,
    context: RunContext,
    retry: RetryPolicy,
    throttle: Throttle,
    timeout_s: float | None = None,
) -> TextStream:
    """
    Execute a streaming call and hand back a `TextStream`.

    One attempt opens the upstream and waits for its first chunk, so failures
    before any text arrived are retried. Afterwards the stream owns the call:
    the `finished` event and the throttle release happen when it settles.
    """
    await throttle.acquire(context.abort_signal)
    try:
        call = _CallRun(descriptor, model, context)
        call.start()

        async def _open(ctx: RunContext) -> AttemptResult[Any]:
            source = start_stream(ctx)
            if inspect.isawaitable(source):
                source = await source
            try:
                first = await source.__anext__()
            except StopAsyncIteration:
                first = END_OF_STREAM
            except BaseException:
                await _aclose_quietly(source)
                raise
            if ctx.abort_signal.aborted:
                await _aclose_quietly(source)
                raise CallAbortedError(ctx.abort_signal.reason)
            return AttemptResult(raw_response=source, extracted_value=first)

        try:
            opened = await _run_attempts(
                call,
                _open,
                retry,
                timeout_s,
                on_discard=lambda result: _aclose_quietly(result.raw_response),
            )
        except (Exception, asyncio.CancelledError) as e:
            call.finish_with_error(e)
            raise
    except BaseException:
        throttle.release()
        raise

    def _on_settle(outcome: CallOutcome) -> CallMetadata:
        try:
            return call.finish(outcome)
        finally:
            throttle.release()

    return TextStream(
        opened.raw_response,
        abort_signal=context.abort_signal,
        first=opened.extracted_value,
        source_exhausted=opened.extracted_value is END_OF_STREAM,
        on_settle=_on_settle,
    )
