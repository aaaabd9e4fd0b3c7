from __future__ import annotations

"""
Typed lifecycle events for model calls and the bus that dispatches them.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Protocol, TypeAlias

from ..logging import logger
from .types import AttemptResult, CallDescriptor, CallMetadata, CallStartedMetadata, FunctionType


@dataclass(frozen=True, slots=True)
class CallSucceeded:
    result: AttemptResult[Any]
    status: Literal["success"] = "success"


@dataclass(frozen=True, slots=True)
class CallFailed:
    error: BaseException
    status: Literal["failure"] = "failure"


@dataclass(frozen=True, slots=True)
class CallAborted:
    status: Literal["abort"] = "abort"


CallOutcome: TypeAlias = CallSucceeded | CallFailed | CallAborted


@dataclass(frozen=True, slots=True)
class CallStartedEvent:
    """Emitted once per logical call, after a throttle slot was acquired."""

    descriptor: CallDescriptor
    metadata: CallStartedMetadata

    @property
    def function_type(self) -> FunctionType:
        return self.descriptor.function_type

    @property
    def type(self) -> str:
        return f"{self.descriptor.function_type}-started"


@dataclass(frozen=True, slots=True)
class CallFinishedEvent:
    """
    Emitted once per logical call with its terminal outcome.

    Retries inside the call do not produce extra events; the attempt count
    is in `metadata.attempts_used`.
    """

    descriptor: CallDescriptor
    metadata: CallMetadata
    outcome: CallOutcome

    @property
    def function_type(self) -> FunctionType:
        return self.descriptor.function_type

    @property
    def type(self) -> str:
        return f"{self.descriptor.function_type}-finished"

    @property
    def status(self) -> Literal["success", "failure", "abort"]:
        return self.outcome.status


CallEvent: TypeAlias = CallStartedEvent | CallFinishedEvent


class Observer(Protocol):
    """Plain listener; return values are ignored."""

    def __call__(self, event: CallEvent) -> None:
        ...


ObserverCallback = Callable[[CallEvent], None]


def filter_observer(observer: Observer, *function_types: FunctionType) -> Observer:
    """Wrap `observer` so it only receives events for the given call types."""
    wanted = frozenset(function_types)

    def _filtered(event: CallEvent) -> None:
        if event.function_type in wanted:
            observer(event)

    return _filtered


class EventBus:
    """
    Fans each event out to the observers of one call.

    Observers run synchronously in registration order. Their failures are
    logged and never reach the call.
    """

    def __init__(self, observers: Iterable[Observer] = ()) -> None:
        self._observers = tuple(observers)

    @property
    def observers(self) -> tuple[Observer, ...]:
        return self._observers

    def notify(self, event: CallEvent) -> None:
        for observer in self._observers:
            try:
                result = observer(event)
            except Exception:
                logger.warning(
                    f"Observer {observer!r} failed on {event.type}", exc_info=True
                )
                continue

            if inspect.iscoroutine(result):
                result.close()
                logger.warning(
                    f"Observer {observer!r} returned a coroutine; "
                    "async observers are not supported and it was not awaited"
                )
