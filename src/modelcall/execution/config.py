from __future__ import annotations
import os

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

"""
from dataclasses import dataclass

from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ExecutionConfig:
    # Retry
    max_retries: int = 3
    backoff_initial_s: float = 2.0
    backoff_factor: float = 2.0
    backoff_jitter_s: float = 0.0

    # Attempts
    timeout_s: float | None = None

    # Throttling; None means unlimited
    max_concurrent_calls: int | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        if self.backoff_initial_s < 0 or self.backoff_jitter_s < 0:
            raise ConfigurationError("backoff delays must be >= 0")
        if self.backoff_factor < 1:
            raise ConfigurationError("backoff_factor must be >= 1")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ConfigurationError("timeout_s must be greater than 0")
        if self.max_concurrent_calls is not None and self.max_concurrent_calls < 1:
            raise ConfigurationError("max_concurrent_calls must be >= 1")

    @staticmethod
    def from_env() -> "ExecutionConfig":
        return ExecutionConfig(
            max_retries=_env_int("MODELCALL_MAX_RETRIES", 3),
            backoff_initial_s=_env_float("MODELCALL_BACKOFF_INITIAL_S", 2.0),
            backoff_factor=_env_float("MODELCALL_BACKOFF_FACTOR", 2.0),
            backoff_jitter_s=_env_float("MODELCALL_BACKOFF_JITTER_S", 0.0),
            timeout_s=_env_optional_float("MODELCALL_TIMEOUT_S"),
            max_concurrent_calls=_env_optional_int("MODELCALL_MAX_CONCURRENT_CALLS"),
        )


def _env_int(name: str, default: int) -> int:
    value = _env_optional_int(name)
    return default if value is None else value


def _env_float(name: str, default: float) -> float:
    value = _env_optional_float(name)
    return default if value is None else value


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
