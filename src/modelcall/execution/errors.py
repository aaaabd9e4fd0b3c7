from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for error handling in the execution package.
"""

from typing import Any


class ModelCallError(Exception):
    """
    Base exception for all model call errors.

    `attempts` is the number of attempts the failed call made, when known.
    """

    attempts: int | None = None


class ConfigurationError(ModelCallError):
    pass


class RetryableCallError(ModelCallError):
    """
    Transient failures: rate limits, timeouts, provider issues, etc.
    Adapters raise this to mark an attempt as safe to retry with backoff.
    """

    pass


class ExecutionError(ModelCallError):
    """
    Terminal failure of a logical call.

    Carries the number of attempts that were made and the last underlying
    error (also chained as `__cause__`).
    """

    def __init__(self, message: str, *, attempts: int, last_error: BaseException):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class RetriesExhaustedError(ExecutionError):
    """Every attempt failed with a retryable error and the retry budget is spent."""

    pass


class NonRetryableError(ExecutionError):
    """An attempt failed with an error the retry policy refused to retry."""

    pass


class StructureValidationError(ModelCallError):
    """
    The model returned a value that does not conform to the requested schema.

    The original model output is kept in `value` and `value_text` so the
    failure can be diagnosed.
    """

    def __init__(self, *, value_text: str | None, value: Any, cause: Any):
        super().__init__(
            f"Structure does not match the schema: {cause}\n"
            f"Value: {value_text if value_text is not None else value!r}"
        )
        self.value_text = value_text
        self.value = value
        self.cause = cause


class NoSuchSchemaError(ModelCallError):
    """The model selected a schema name that was not offered to it."""

    def __init__(self, schema_name: str):
        super().__init__(f"No such schema: {schema_name}")
        self.schema_name = schema_name


class CallAbortedError(ModelCallError):
    """Raised when a call is aborted through its abort signal."""

    def __init__(self, reason: Any = None):
        super().__init__(
            "Call was aborted" if reason is None else f"Call was aborted: {reason}"
        )
        self.reason = reason


class StreamConsumedError(ModelCallError):
    """Raised when a text stream is iterated by more than one consumer."""

    pass
