"""Retry policies deciding whether and when a failed attempt is re-run."""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from .config import ExecutionConfig
from .errors import (
    CallAbortedError,
    ModelCallError,
    RetryableCallError,
    StructureValidationError,
)
from .utils import backoff_delay

RetryReason = Literal["retryable", "retries-exhausted", "non-retryable"]
ErrorClassifier = Callable[[BaseException], bool]


@dataclass(frozen=True, slots=True)
class RetryDecision:
    retry: bool
    delay_s: float = 0.0
    reason: RetryReason = "non-retryable"


class RetryPolicy(Protocol):
    """
    Strategy consulted after every failed attempt.

    `attempt_number` is 1-based: the number of the attempt that just failed.
    """

    def should_retry(self, error: BaseException, attempt_number: int) -> RetryDecision:
        ...


_RETRY_PHRASES = (
    "rate limit",
    "rate_limit",
    "rate-limit",
    "quota exceeded",
    "temporarily unavailable",
    "overloaded",
    "service unavailable",
    "try again",
    "please retry",
    "timeout",
    "timed out",
    "connection reset",
    "connection aborted",
    "connection refused",
    "connection error",
    "econnreset",
    "econnrefused",
    "eai_again",
)


def _status_code(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        val = getattr(error, attr, None)
        if isinstance(val, int):
            return val
        if isinstance(val, str) and val.isdigit():
            return int(val)

    resp = getattr(error, "response", None)
    if resp is not None:
        sc = getattr(resp, "status_code", None) or getattr(resp, "status", None)
        if isinstance(sc, int):
            return sc
        if isinstance(sc, str) and sc.isdigit():
            return int(sc)
    return None


def is_transient_error(error: BaseException) -> bool:
    """
    Default transient-vs-permanent classification.

    Transient: `RetryableCallError`, timeouts and connection failures,
    HTTP 408/429/5xx, and messages carrying well-known transient phrases.
    Aborts and structure validation failures are never transient.
    """
    if isinstance(error, (CallAbortedError, StructureValidationError)):
        return False
    if isinstance(error, RetryableCallError):
        return True

    status = _status_code(error)
    if status is not None:
        return status in (408, 429) or 500 <= status < 600

    if isinstance(error, ModelCallError):
        return False

    if isinstance(
        error, (asyncio.TimeoutError, TimeoutError, socket.timeout, ConnectionError)
    ):
        return True

    try:
        msg = str(error).lower()
    except Exception:
        msg = repr(error).lower()
    return any(phrase in msg for phrase in _RETRY_PHRASES)


class RetryNever:
    """Policy that never retries."""

    def should_retry(self, error: BaseException, attempt_number: int) -> RetryDecision:
        return RetryDecision(retry=False, reason="non-retryable")


class RetryWithBackoff:
    """
    Retry transient errors up to `max_retries` times with exponential backoff.

    attempt 1 failed => initial_delay_s, attempt 2 failed => initial_delay_s * factor, ...
    """

    def __init__(
        self,
        *,
        max_retries: int = 3,
        initial_delay_s: float = 2.0,
        backoff_factor: float = 2.0,
        jitter_s: float = 0.0,
        is_retryable: ErrorClassifier = is_transient_error,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.initial_delay_s = initial_delay_s
        self.backoff_factor = backoff_factor
        self.jitter_s = jitter_s
        self.is_retryable = is_retryable

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> "RetryWithBackoff":
        return cls(
            max_retries=config.max_retries,
            initial_delay_s=config.backoff_initial_s,
            backoff_factor=config.backoff_factor,
            jitter_s=config.backoff_jitter_s,
        )

    def should_retry(self, error: BaseException, attempt_number: int) -> RetryDecision:
        if not self.is_retryable(error):
            return RetryDecision(retry=False, reason="non-retryable")
        if attempt_number > self.max_retries:
            return RetryDecision(retry=False, reason="retries-exhausted")
        return RetryDecision(
            retry=True,
            delay_s=backoff_delay(
                attempt_number - 1,
                self.initial_delay_s,
                self.jitter_s,
                factor=self.backoff_factor,
            ),
            reason="retryable",
        )
