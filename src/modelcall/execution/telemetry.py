"""
Telemetry sinks for model call observability.

`TelemetryObserver` turns call lifecycle events into spans, counters and
histograms on a sink. The default sinks are no-op/in-memory.
`OpenTelemetrySink` can be used when `opentelemetry-api` is installed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from .observability import CallEvent, CallFailed, CallFinishedEvent, CallStartedEvent

AttributeValue = str | int | float | bool | None


@dataclass(frozen=True, slots=True)
class TelemetrySpan:
    """
    Started telemetry span.

    Attributes:
        name: Span name.
        started_at_ms: Span start timestamp.
        attributes: Span attributes.
        native_span: Optional provider-native span object.
    """

    name: str
    started_at_ms: int
    attributes: dict[str, AttributeValue] = field(default_factory=dict)
    native_span: Any = None


class TelemetrySink(Protocol):
    """Protocol implemented by telemetry backends."""

    def start_span(
        self, name: str, *, attributes: dict[str, AttributeValue] | None = None
    ) -> TelemetrySpan | None:
        """
        Start a span when backend supports spans.

        Args:
            name: Span name.
            attributes: Optional initial span attributes.

        Returns:
            Span wrapper or `None` when unsupported.
        """
        ...

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        """
        End a span with status and optional metadata.

        Args:
            span: Span returned from `start_span`.
            status: Terminal status string (`ok`/`error`/`abort`).
            error: Optional error detail string.
            attributes: Optional final span attributes.
        """
        ...

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        ...

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        ...


@dataclass(slots=True)
class InMemoryTelemetrySink:
    """Test/debug telemetry sink that stores emitted measurements."""

    _spans_closed: list[dict[str, Any]] = field(default_factory=list)
    _counters: list[dict[str, Any]] = field(default_factory=list)
    _histograms: list[dict[str, Any]] = field(default_factory=list)

    def start_span(
        self, name: str, *, attributes: dict[str, AttributeValue] | None = None
    ) -> TelemetrySpan:
        return TelemetrySpan(
            name=name, started_at_ms=now_ms(), attributes=dict(attributes or {})
        )

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        if span is None:
            return None
        self._spans_closed.append(
            {
                "name": span.name,
                "started_at_ms": span.started_at_ms,
                "ended_at_ms": now_ms(),
                "status": status,
                "error": error,
                "attributes": {**span.attributes, **dict(attributes or {})},
            }
        )
        return None

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        self._counters.append(
            {"name": name, "value": int(value), "attributes": dict(attributes or {})}
        )

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        self._histograms.append(
            {"name": name, "value": float(value), "attributes": dict(attributes or {})}
        )

    def spans(self) -> list[dict[str, Any]]:
        return list(self._spans_closed)

    def counters(self) -> list[dict[str, Any]]:
        return list(self._counters)

    def histograms(self) -> list[dict[str, Any]]:
        return list(self._histograms)


@dataclass(slots=True)
class OpenTelemetrySink:
    """
    OpenTelemetry sink using the global tracer/meter providers.

    This class performs lazy imports so modelcall can run without OTel installed.
    """

    tracer_name: str = "modelcall"
    meter_name: str = "modelcall"

    _tracer: Any = field(default=None, init=False, repr=False)
    _meter: Any = field(default=None, init=False, repr=False)
    _counters: dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _histograms: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def _ensure_clients(self) -> None:
        if self._tracer is not None and self._meter is not None:
            return
        try:
            from opentelemetry import metrics, trace
        except Exception as e:
            raise RuntimeError("OpenTelemetrySink requires 'opentelemetry-api'") from e

        self._tracer = trace.get_tracer(self.tracer_name)
        self._meter = metrics.get_meter(self.meter_name)

    def start_span(
        self, name: str, *, attributes: dict[str, AttributeValue] | None = None
    ) -> TelemetrySpan | None:
        self._ensure_clients()
        span = self._tracer.start_span(name=name)
        attr = _otel_attributes(attributes)
        if attr:
            span.set_attributes(attr)
        return TelemetrySpan(
            name=name,
            started_at_ms=now_ms(),
            attributes=dict(attributes or {}),
            native_span=span,
        )

    def end_span(
        self,
        span: TelemetrySpan | None,
        *,
        status: str,
        error: str | None = None,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        if span is None or span.native_span is None:
            return None
        from opentelemetry.trace import Status, StatusCode

        native = span.native_span
        attr = _otel_attributes({**span.attributes, **dict(attributes or {})})
        if attr:
            native.set_attributes(attr)
        if status == "ok":
            native.set_status(Status(StatusCode.OK))
        else:
            native.set_status(Status(StatusCode.ERROR, error or status))
        native.end()

    def increment_counter(
        self,
        name: str,
        value: int = 1,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        self._ensure_clients()
        counter = self._counters.get(name)
        if counter is None:
            counter = self._meter.create_counter(name)
            self._counters[name] = counter
        counter.add(int(value), attributes=_otel_attributes(attributes))

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        attributes: dict[str, AttributeValue] | None = None,
    ) -> None:
        self._ensure_clients()
        histogram = self._histograms.get(name)
        if histogram is None:
            histogram = self._meter.create_histogram(name, unit="ms")
            self._histograms[name] = histogram
        histogram.record(float(value), attributes=_otel_attributes(attributes))


class TelemetryObserver:
    """
    Observer that records one span per logical call plus call metrics.

    Metrics:
        `modelcall.calls` counter with `function_type`/`status` attributes.
        `modelcall.call.duration` histogram in milliseconds.
        `modelcall.call.attempts` histogram of attempts per call.
    """

    def __init__(self, sink: TelemetrySink) -> None:
        self.sink = sink
        self._spans: dict[str, TelemetrySpan | None] = {}

    def __call__(self, event: CallEvent) -> None:
        if isinstance(event, CallStartedEvent):
            self._spans[event.metadata.call_id] = self.sink.start_span(
                f"modelcall.{event.function_type}",
                attributes={
                    "modelcall.function_type": event.function_type,
                    "modelcall.provider": event.metadata.model.provider,
                    "modelcall.model": event.metadata.model.model_name,
                    "modelcall.run_id": event.metadata.run_id,
                    "modelcall.call_id": event.metadata.call_id,
                },
            )
        elif isinstance(event, CallFinishedEvent):
            self._record_finished(event)

    def _record_finished(self, event: CallFinishedEvent) -> None:
        metadata = event.metadata
        span = self._spans.pop(metadata.call_id, None)
        error = (
            f"{type(event.outcome.error).__name__}: {event.outcome.error}"
            if isinstance(event.outcome, CallFailed)
            else None
        )
        status = {"success": "ok", "failure": "error", "abort": "abort"}[event.status]
        attributes: dict[str, AttributeValue] = {
            "function_type": event.function_type,
            "provider": metadata.model.provider,
            "model": metadata.model.model_name,
            "status": event.status,
        }

        self.sink.end_span(
            span,
            status=status,
            error=error,
            attributes={"modelcall.attempts": metadata.attempts_used},
        )
        self.sink.increment_counter("modelcall.calls", attributes=attributes)
        self.sink.record_histogram(
            "modelcall.call.duration", metadata.duration_ms, attributes=attributes
        )
        self.sink.record_histogram(
            "modelcall.call.attempts", metadata.attempts_used, attributes=attributes
        )


def now_ms() -> int:
    """Return current Unix epoch time in milliseconds."""
    return int(time.time() * 1000)


def _otel_attributes(value: dict[str, AttributeValue] | None) -> dict[str, Any]:
    # OTel rejects None attribute values
    return {str(k): v for k, v in (value or {}).items() if v is not None}
