"""
Execution core exports.
"""

from .abort import AbortController, AbortSignal, never_aborted
from .config import ExecutionConfig
from .errors import (
    CallAbortedError,
    ConfigurationError,
    ExecutionError,
    ModelCallError,
    NonRetryableError,
    NoSuchSchemaError,
    RetriesExhaustedError,
    RetryableCallError,
    StreamConsumedError,
    StructureValidationError,
)
from .executor import execute_call, execute_stream_call
from .observability import (
    CallAborted,
    CallEvent,
    CallFailed,
    CallFinishedEvent,
    CallOutcome,
    CallStartedEvent,
    CallSucceeded,
    EventBus,
    Observer,
    filter_observer,
)
from .retry import (
    RetryDecision,
    RetryNever,
    RetryPolicy,
    RetryWithBackoff,
    is_transient_error,
)
from .streaming import TextStream
from .structured import PydanticSchema, Schema, parse_json_value, validate_structured
from .telemetry import (
    InMemoryTelemetrySink,
    OpenTelemetrySink,
    TelemetryObserver,
    TelemetrySink,
)
from .throttle import MaxConcurrencyThrottle, Throttle, UnlimitedThrottle, throttle_from_config
from .types import (
    AttemptResult,
    CallDescriptor,
    CallMetadata,
    CallOptions,
    CallResult,
    CallStartedMetadata,
    DeltaChunk,
    FullResponse,
    FunctionType,
    ModelInformation,
    RunContext,
    StructureOrText,
    StructureOrTextResponse,
    StructureResponse,
    Usage,
    ValidationFailure,
    ValidationOutcome,
    ValidationSuccess,
    Vector,
)

__all__ = [
    "AbortController",
    "AbortSignal",
    "never_aborted",
    "ExecutionConfig",
    "ModelCallError",
    "ConfigurationError",
    "RetryableCallError",
    "ExecutionError",
    "RetriesExhaustedError",
    "NonRetryableError",
    "StructureValidationError",
    "NoSuchSchemaError",
    "CallAbortedError",
    "StreamConsumedError",
    "execute_call",
    "execute_stream_call",
    "CallEvent",
    "CallStartedEvent",
    "CallFinishedEvent",
    "CallOutcome",
    "CallSucceeded",
    "CallFailed",
    "CallAborted",
    "EventBus",
    "Observer",
    "filter_observer",
    "RetryDecision",
    "RetryPolicy",
    "RetryNever",
    "RetryWithBackoff",
    "is_transient_error",
    "TextStream",
    "Schema",
    "PydanticSchema",
    "validate_structured",
    "parse_json_value",
    "TelemetrySink",
    "TelemetryObserver",
    "InMemoryTelemetrySink",
    "OpenTelemetrySink",
    "Throttle",
    "UnlimitedThrottle",
    "MaxConcurrencyThrottle",
    "throttle_from_config",
    "AttemptResult",
    "CallDescriptor",
    "CallMetadata",
    "CallOptions",
    "CallResult",
    "CallStartedMetadata",
    "DeltaChunk",
    "FullResponse",
    "FunctionType",
    "ModelInformation",
    "RunContext",
    "StructureOrText",
    "StructureOrTextResponse",
    "StructureResponse",
    "Usage",
    "ValidationFailure",
    "ValidationOutcome",
    "ValidationSuccess",
    "Vector",
]
