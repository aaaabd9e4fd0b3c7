"""Caller-facing text stream that accumulates the full text while it is consumed."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable

from ..logging import logger
from .abort import AbortSignal
from .errors import CallAbortedError, NonRetryableError, StreamConsumedError
from .observability import CallAborted, CallFailed, CallOutcome, CallSucceeded
from .types import AttemptResult, CallMetadata, DeltaChunk

END_OF_STREAM = object()

SettleCallback = Callable[[CallOutcome], CallMetadata]


class TextStream:
    """
    Single-consumer, forward-only async iterable over text deltas.

    Every delta is recorded as a `DeltaChunk`; `full_text` is their
    concatenation in arrival order. The stream settles exactly once:
    on completion, on upstream failure, on abort, or when the caller gives
    it up. Giving up means closing it, leaving an `async for` loop early or
    dropping it unconsumed; all of these settle as aborted. Settling closes
    the upstream and reports the outcome through `on_settle`.
    """

    def __init__(
        self,
        source: AsyncIterator[str | DeltaChunk],
        *,
        abort_signal: AbortSignal,
        first: Any = END_OF_STREAM,
        source_exhausted: bool = False,
        on_settle: SettleCallback | None = None,
    ) -> None:
        self._source = source
        self._abort_signal = abort_signal
        self._first = first
        self._source_exhausted = source_exhausted
        self._on_settle = on_settle

        self._chunks: list[DeltaChunk] = []
        self._consumed = False
        self._awaiting = False
        self._settled = False
        self._done = asyncio.Event()
        self._outcome: CallOutcome | None = None
        self._terminal_error: BaseException | None = None
        self._error_delivered = False
        self._close_task: asyncio.Task[None] | None = None
        self.metadata: CallMetadata | None = None

        abort_signal.add_listener(self._on_abort)

    def __del__(self) -> None:
        if getattr(self, "_settled", True):
            return
        # dropped without being drained or closed
        self._settle(CallAborted(), CallAbortedError("stream abandoned"))
        self._schedule_close()

    @property
    def chunks(self) -> tuple[DeltaChunk, ...]:
        return tuple(self._chunks)

    @property
    def full_text(self) -> str:
        return "".join(chunk.text for chunk in self._chunks)

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def outcome(self) -> CallOutcome | None:
        return self._outcome

    def __aiter__(self) -> AsyncIterator[str]:
        if self._consumed:
            raise StreamConsumedError("TextStream supports a single consumer")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        # leaving the loop early (break, error, garbage collection) abandons the stream
        try:
            while True:
                try:
                    delta = await self._advance()
                except StopAsyncIteration:
                    return
                yield delta
        finally:
            await self.aclose()

    async def __aenter__(self) -> "TextStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Abandon the stream: stop the upstream and settle as aborted."""
        if self._settled:
            return
        self._settle(CallAborted(), CallAbortedError("stream closed by caller"))
        await self._close_source()

    async def result(self) -> str:
        """
        Drain whatever the caller has not consumed and return the full text.

        Raises the stream's terminal error when it did not complete.
        """
        self._consumed = True
        if self._awaiting:
            await self._done.wait()
        while not self._settled:
            try:
                await self._advance()
            except StopAsyncIteration:
                break
            except (CallAbortedError, NonRetryableError):
                break

        if isinstance(self._outcome, CallSucceeded):
            return self.full_text
        self._error_delivered = True
        raise self._terminal_error or CallAbortedError()

    async def _advance(self) -> str:
        if self._settled:
            if self._terminal_error is not None and not self._error_delivered:
                self._error_delivered = True
                raise self._terminal_error
            raise StopAsyncIteration

        if self._first is not END_OF_STREAM:
            item, self._first = self._first, END_OF_STREAM
            return self._record(item)

        if self._source_exhausted:
            self._complete()
            raise StopAsyncIteration

        self._awaiting = True
        try:
            item = await self._abort_signal.guard(self._pull())
        except CallAbortedError as e:
            self._awaiting = False
            self._settle(CallAborted(), e)
            await self._close_source()
            self._error_delivered = True
            raise
        except asyncio.CancelledError:
            self._awaiting = False
            self._settle(CallAborted(), CallAbortedError("stream task cancelled"))
            await self._close_source()
            raise
        except Exception as e:
            self._awaiting = False
            error = NonRetryableError(
                f"Text stream failed after {len(self._chunks)} chunk(s): {e}",
                attempts=1,
                last_error=e,
            )
            self._settle(CallFailed(e), error)
            if self.metadata is not None:
                error.attempts = self.metadata.attempts_used
            self._error_delivered = True
            raise error from e
        self._awaiting = False

        if item is END_OF_STREAM:
            self._source_exhausted = True
            self._complete()
            raise StopAsyncIteration
        return self._record(item)

    async def _pull(self) -> Any:
        try:
            return await self._source.__anext__()
        except StopAsyncIteration:
            return END_OF_STREAM

    def _record(self, item: Any) -> str:
        text = item.text if isinstance(item, DeltaChunk) else str(item)
        self._chunks.append(DeltaChunk(index=len(self._chunks), text=text))
        return text

    def _complete(self) -> None:
        self._settle(
            CallSucceeded(
                result=AttemptResult(
                    raw_response=self.chunks,
                    extracted_value=self.full_text,
                )
            ),
            None,
        )

    def _settle(self, outcome: CallOutcome, error: BaseException | None) -> None:
        if self._settled:
            return
        self._settled = True
        self._outcome = outcome
        self._terminal_error = error
        self._abort_signal.remove_listener(self._on_abort)
        try:
            if self._on_settle is not None:
                self.metadata = self._on_settle(outcome)
        finally:
            self._done.set()

    def _on_abort(self) -> None:
        # a pending next-chunk await observes the abort itself
        if self._settled or self._awaiting:
            return
        self._settle(CallAborted(), CallAbortedError(self._abort_signal.reason))
        self._schedule_close()

    def _schedule_close(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._close_task = loop.create_task(self._close_source())

    async def _close_source(self) -> None:
        if self._source_exhausted:
            return
        self._source_exhausted = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception:
            logger.debug("Error while closing upstream text stream", exc_info=True)
