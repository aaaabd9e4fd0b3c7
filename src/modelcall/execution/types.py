from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the provider-agnostic types shared by the execution core
and the call-type functions.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Literal, Mapping, TypeAlias, TypeVar

if TYPE_CHECKING:
    from .abort import AbortSignal
    from .observability import Observer


T = TypeVar("T")

FunctionType: TypeAlias = Literal[
    "generate-text",
    "stream-text",
    "generate-structure",
    "generate-structure-or-text",
    "embed",
    "generate-image",
    "transcribe",
]

Vector: TypeAlias = list[float]


@dataclass(frozen=True, slots=True)
class ModelInformation:
    provider: str
    model_name: str


@dataclass(frozen=True, slots=True)
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class CallDescriptor:
    """What was requested: the call type plus an opaque input payload."""

    function_type: FunctionType
    input: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class AttemptResult(Generic[T]):
    """Outcome of one successful provider attempt."""

    raw_response: Any
    extracted_value: T
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class CallOptions:
    """
    Caller-facing per-call options.

    `observers` are appended after the observers configured on the model.
    """

    run_id: str | None = None
    abort_signal: "AbortSignal | None" = None
    observers: tuple["Observer", ...] = ()


@dataclass(frozen=True, slots=True)
class RunContext:
    """Per-call context handed down to the attempt function."""

    run_id: str
    call_id: str
    abort_signal: "AbortSignal"
    observers: tuple["Observer", ...] = ()


@dataclass(frozen=True, slots=True)
class CallStartedMetadata:
    call_id: str
    run_id: str
    model: ModelInformation
    start_timestamp: float


@dataclass(frozen=True, slots=True)
class CallMetadata:
    """
    Timing and attempt bookkeeping of one finished call.

    `attempts_used` is 0 only when the call was aborted after `started` but
    before its first attempt.
    """

    call_id: str
    run_id: str
    model: ModelInformation
    start_timestamp: float
    finish_timestamp: float
    duration_ms: float
    attempts_used: int


@dataclass(frozen=True, slots=True)
class CallResult(Generic[T]):
    """Result of `execute_call`: the typed value plus everything around it."""

    value: T
    raw_response: Any
    metadata: CallMetadata
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class FullResponse(Generic[T]):
    """Return shape of the `*_full` call-type functions."""

    value: T
    raw_response: Any
    metadata: CallMetadata


@dataclass(frozen=True, slots=True)
class DeltaChunk:
    """One fragment of streamed text, tagged with its position in the stream."""

    index: int
    text: str


@dataclass(frozen=True, slots=True)
class ValidationSuccess(Generic[T]):
    data: T
    success: Literal[True] = True


@dataclass(frozen=True, slots=True)
class ValidationFailure:
    error: Any
    success: Literal[False] = False


ValidationOutcome: TypeAlias = "ValidationSuccess[Any] | ValidationFailure"


@dataclass(frozen=True, slots=True)
class StructureResponse:
    """What a structure-generation adapter returns for one attempt."""

    value: Any
    value_text: str | None = None
    raw_response: Any = None
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class StructureOrTextResponse:
    """
    Adapter return for structure-or-text calls.

    `schema_name` is None when the model answered with plain text, in which
    case `value` is that text.
    """

    schema_name: str | None
    value: Any
    value_text: str | None = None
    raw_response: Any = None
    usage: Usage | None = None


@dataclass(frozen=True, slots=True)
class StructureOrText:
    schema_name: str | None
    value: Any
