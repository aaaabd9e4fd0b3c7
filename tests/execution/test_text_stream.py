from __future__ import annotations

import asyncio
import gc

import pytest

from modelcall.execution.abort import AbortController, never_aborted
from modelcall.execution.errors import (
    CallAbortedError,
    NonRetryableError,
    StreamConsumedError,
)
from modelcall.execution.observability import CallAborted, CallFailed, CallSucceeded
from modelcall.execution.streaming import TextStream
from modelcall.execution.types import DeltaChunk


def run_async(coro):
    return asyncio.run(coro)


class _Source:
    """Async generator wrapper that records whether it was closed."""

    def __init__(self, *items, fail_with: Exception | None = None, hang: bool = False):
        self.items = items
        self.fail_with = fail_with
        self.hang = hang
        self.closed = False

    async def gen(self):
        try:
            for item in self.items:
                yield item
            if self.fail_with is not None:
                raise self.fail_with
            if self.hang:
                await asyncio.sleep(10)
        finally:
            self.closed = True


def _stream(source: _Source, controller: AbortController | None = None):
    outcomes = []

    def on_settle(outcome):
        outcomes.append(outcome)
        return None

    stream = TextStream(
        source.gen(),
        abort_signal=(controller or AbortController()).signal,
        on_settle=on_settle,
    )
    return stream, outcomes


def test_deltas_aggregate_into_full_text():
    async def scenario():
        stream, outcomes = _stream(_Source("Hello", DeltaChunk(index=7, text=" world")))
        deltas = [delta async for delta in stream]
        return stream, outcomes, deltas

    stream, outcomes, deltas = run_async(scenario())

    assert deltas == ["Hello", " world"]
    assert stream.full_text == "Hello world"
    assert stream.chunks == (
        DeltaChunk(index=0, text="Hello"),
        DeltaChunk(index=1, text=" world"),
    )
    assert stream.settled is True
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallSucceeded)
    assert outcomes[0].result.extracted_value == "Hello world"


def test_empty_stream_completes_with_empty_text():
    async def scenario():
        stream, outcomes = _stream(_Source())
        return await stream.result(), outcomes

    text, outcomes = run_async(scenario())

    assert text == ""
    assert isinstance(outcomes[0], CallSucceeded)


def test_second_consumer_is_rejected():
    async def scenario():
        stream, _ = _stream(_Source("a"))
        aiter(stream)
        with pytest.raises(StreamConsumedError):
            aiter(stream)
        await stream.aclose()

    run_async(scenario())


def test_upstream_failure_is_raised_once_and_settles_as_failure():
    source = _Source("partial", fail_with=ConnectionResetError("dropped"))

    async def scenario():
        stream, outcomes = _stream(source)
        iterator = aiter(stream)
        received = [await anext(iterator)]
        with pytest.raises(NonRetryableError) as info:
            await anext(iterator)
        with pytest.raises(StopAsyncIteration):
            await anext(iterator)
        return stream, outcomes, received, info.value

    stream, outcomes, received, error = run_async(scenario())

    assert received == ["partial"]
    assert stream.full_text == "partial"
    assert isinstance(error.last_error, ConnectionResetError)
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallFailed)


def test_result_raises_terminal_error():
    async def scenario():
        stream, _ = _stream(_Source("a", fail_with=ValueError("bad")))
        with pytest.raises(NonRetryableError):
            await stream.result()

    run_async(scenario())


def test_abort_between_chunks_settles_once_and_closes_upstream():
    source = _Source("Hello", " world", " again")
    controller = AbortController()

    async def scenario():
        stream, outcomes = _stream(source, controller)
        iterator = aiter(stream)
        first = await anext(iterator)
        controller.abort("stop")
        with pytest.raises(CallAbortedError):
            await anext(iterator)
        await asyncio.sleep(0.01)
        return stream, outcomes, first

    stream, outcomes, first = run_async(scenario())

    assert first == "Hello"
    assert stream.full_text == "Hello"
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallAborted)
    assert source.closed is True


def test_abort_while_waiting_for_next_chunk():
    source = _Source("Hello", hang=True)
    controller = AbortController()

    async def scenario():
        stream, outcomes = _stream(source, controller)
        received = []
        asyncio.get_running_loop().call_later(0.02, controller.abort)
        with pytest.raises(CallAbortedError):
            async for delta in stream:
                received.append(delta)
        return outcomes, received

    outcomes, received = run_async(scenario())

    assert received == ["Hello"]
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallAborted)
    assert source.closed is True


def test_context_manager_close_settles_as_abort():
    source = _Source("a", "b", "c")

    async def scenario():
        stream, outcomes = _stream(source)
        async with stream:
            async for delta in stream:
                break
        return stream, outcomes

    stream, outcomes = run_async(scenario())

    assert stream.full_text == "a"
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallAborted)
    assert source.closed is True


def test_leaving_loop_early_settles_as_abort():
    source = _Source("a", "b", "c")

    async def scenario():
        stream, outcomes = _stream(source)
        async for delta in stream:
            break
        await asyncio.sleep(0.01)
        return stream, outcomes

    stream, outcomes = run_async(scenario())

    assert stream.settled is True
    assert stream.full_text == "a"
    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallAborted)
    assert source.closed is True


def test_dropped_stream_settles_as_abort():
    outcomes = []

    async def scenario():
        stream = TextStream(
            _Source("a").gen(),
            abort_signal=never_aborted(),
            on_settle=lambda outcome: outcomes.append(outcome),
        )
        del stream
        gc.collect()
        await asyncio.sleep(0.01)

    run_async(scenario())

    assert len(outcomes) == 1
    assert isinstance(outcomes[0], CallAborted)


def test_streams_on_never_aborted_signal_register_no_listeners():
    async def scenario():
        stream = TextStream(_Source("a").gen(), abort_signal=never_aborted())
        listeners = list(never_aborted()._listeners)
        await stream.aclose()
        return listeners

    assert run_async(scenario()) == []
