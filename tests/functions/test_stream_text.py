from __future__ import annotations

import asyncio
import gc

import pytest

from modelcall.execution.abort import AbortController
from modelcall.execution.config import ExecutionConfig
from modelcall.execution.errors import (
    CallAbortedError,
    NonRetryableError,
    RetriesExhaustedError,
    RetryableCallError,
)
from modelcall.execution.throttle import MaxConcurrencyThrottle
from modelcall.execution.types import CallOptions, DeltaChunk
from modelcall.functions import ModelSettings, TextStreamingModel, stream_text

CONFIG = ExecutionConfig(max_retries=2, backoff_initial_s=0.001)


def run_async(coro):
    return asyncio.run(coro)


class _StreamingModel(TextStreamingModel):
    """Streams `deltas`; the first `failures` attempts fail before any text."""

    def __init__(
        self,
        deltas,
        *,
        failures: int = 0,
        fail_after: int | None = None,
        hang_after: int | None = None,
        settings: ModelSettings | None = None,
    ):
        super().__init__(model_name="stream-1", config=CONFIG, settings=settings)
        self.deltas = deltas
        self.failures = failures
        self.fail_after = fail_after
        self.hang_after = hang_after
        self.opened = 0
        self.closed = 0

    @property
    def provider(self) -> str:
        return "dummy"

    async def do_stream_text(self, prompt, context):
        self.opened += 1
        try:
            if self.opened <= self.failures:
                raise RetryableCallError("overloaded")
            for index, delta in enumerate(self.deltas):
                if index == self.fail_after:
                    raise ConnectionResetError("connection reset by peer")
                if index == self.hang_after:
                    await asyncio.sleep(10)
                yield delta
        finally:
            self.closed += 1


class _AbortOnOpenModel(TextStreamingModel):
    """Aborts `controller` while the first chunk is being produced."""

    def __init__(self, controller: AbortController, settings: ModelSettings):
        super().__init__(model_name="stream-1", config=CONFIG, settings=settings)
        self.controller = controller
        self.closed = 0

    @property
    def provider(self) -> str:
        return "dummy"

    async def do_stream_text(self, prompt, context):
        try:
            self.controller.abort("late")
            yield "Hello"
        finally:
            self.closed += 1


def test_stream_yields_deltas_and_reports_full_text():
    events = []
    model = _StreamingModel(["Hello", DeltaChunk(index=0, text=" world")])

    async def scenario():
        stream = await stream_text(model, "hi", CallOptions(observers=(events.append,)))
        assert [e.type for e in events] == ["stream-text-started"]
        deltas = [delta async for delta in stream]
        return stream, deltas

    stream, deltas = run_async(scenario())

    assert deltas == ["Hello", " world"]
    assert stream.full_text == "Hello world"
    assert [e.type for e in events] == ["stream-text-started", "stream-text-finished"]
    assert events[1].status == "success"
    assert events[1].outcome.result.extracted_value == "Hello world"
    assert stream.metadata.attempts_used == 1


def test_failures_before_first_delta_are_retried():
    model = _StreamingModel(["Hi"], failures=2)

    async def scenario():
        stream = await stream_text(model, "hi")
        return await stream.result(), stream.metadata

    text, metadata = run_async(scenario())

    assert text == "Hi"
    assert model.opened == 3
    assert metadata.attempts_used == 3


def test_stream_open_failures_exhaust_retries():
    events = []
    model = _StreamingModel(["never"], failures=100)

    with pytest.raises(RetriesExhaustedError):
        run_async(stream_text(model, "hi", CallOptions(observers=(events.append,))))

    assert model.opened == 3
    assert [e.type for e in events] == ["stream-text-started", "stream-text-finished"]
    assert events[1].status == "failure"


def test_mid_stream_failure_is_not_retried():
    events = []
    model = _StreamingModel(["Hello", " world"], fail_after=1)

    async def scenario():
        stream = await stream_text(model, "hi", CallOptions(observers=(events.append,)))
        received = []
        with pytest.raises(NonRetryableError):
            async for delta in stream:
                received.append(delta)
        return received

    received = run_async(scenario())

    assert received == ["Hello"]
    assert model.opened == 1
    assert [e.status for e in events if e.type == "stream-text-finished"] == ["failure"]


def test_abort_mid_stream_emits_one_abort_and_releases_throttle():
    events = []
    throttle = MaxConcurrencyThrottle(1)
    model = _StreamingModel(
        ["Hello", " world"], hang_after=1, settings=ModelSettings(throttle=throttle)
    )

    async def scenario():
        controller = AbortController()
        stream = await stream_text(
            model,
            "hi",
            CallOptions(abort_signal=controller.signal, observers=(events.append,)),
        )
        received = []
        asyncio.get_running_loop().call_later(0.02, controller.abort)
        with pytest.raises(CallAbortedError):
            async for delta in stream:
                received.append(delta)
        return received

    received = run_async(scenario())

    assert received == ["Hello"]
    assert [e.type for e in events] == ["stream-text-started", "stream-text-finished"]
    assert events[1].status == "abort"
    assert throttle.in_flight == 0
    assert model.closed == 1


def test_stream_holds_throttle_slot_until_settled():
    throttle = MaxConcurrencyThrottle(1)
    model = _StreamingModel(["a", "b"], settings=ModelSettings(throttle=throttle))

    async def scenario():
        stream = await stream_text(model, "hi")
        held = throttle.in_flight
        await stream.result()
        return held, throttle.in_flight

    assert run_async(scenario()) == (1, 0)


def test_closing_stream_early_counts_as_abort():
    events = []
    model = _StreamingModel(["a", "b", "c"])

    async def scenario():
        async with await stream_text(
            model, "hi", CallOptions(observers=(events.append,))
        ) as stream:
            async for delta in stream:
                break
        return stream.full_text

    assert run_async(scenario()) == "a"
    assert events[-1].type == "stream-text-finished"
    assert events[-1].status == "abort"
    assert model.closed == 1


def test_leaving_stream_loop_early_releases_throttle():
    events = []
    throttle = MaxConcurrencyThrottle(1)
    model = _StreamingModel(["a", "b", "c"], settings=ModelSettings(throttle=throttle))

    async def scenario():
        stream = await stream_text(model, "hi", CallOptions(observers=(events.append,)))
        async for delta in stream:
            break
        del stream
        gc.collect()
        await asyncio.sleep(0.01)
        released = throttle.in_flight
        again = await asyncio.wait_for(stream_text(model, "again"), 0.5)
        return released, await again.result()

    released, text = run_async(scenario())

    assert released == 0
    assert text == "abc"
    assert [e.type for e in events] == ["stream-text-started", "stream-text-finished"]
    assert events[1].status == "abort"
    assert model.closed == 2


def test_dropped_stream_releases_throttle_and_closes_upstream():
    events = []
    throttle = MaxConcurrencyThrottle(1)
    model = _StreamingModel(["a", "b"], settings=ModelSettings(throttle=throttle))

    async def scenario():
        stream = await stream_text(model, "hi", CallOptions(observers=(events.append,)))
        del stream
        gc.collect()
        await asyncio.sleep(0.01)
        return throttle.in_flight

    assert run_async(scenario()) == 0
    assert events[-1].type == "stream-text-finished"
    assert events[-1].status == "abort"
    assert model.closed == 1


def test_abort_racing_stream_open_closes_upstream():
    events = []
    throttle = MaxConcurrencyThrottle(1)

    async def scenario():
        controller = AbortController()
        model = _AbortOnOpenModel(controller, ModelSettings(throttle=throttle))
        with pytest.raises(CallAbortedError):
            await stream_text(
                model,
                "hi",
                CallOptions(abort_signal=controller.signal, observers=(events.append,)),
            )
        return model

    model = run_async(scenario())

    assert model.closed == 1
    assert throttle.in_flight == 0
    assert [e.type for e in events] == ["stream-text-started", "stream-text-finished"]
    assert events[1].status == "abort"
    assert events[1].metadata.attempts_used == 1
