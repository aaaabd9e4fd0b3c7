from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Awaitable, Sequence, TypeVar

from ..execution.abort import never_aborted
from ..execution.config import ExecutionConfig
from ..execution.executor import (
    AttemptFn,
    PostProcessFn,
    StartStreamFn,
    execute_call,
    execute_stream_call,
)
from ..execution.observability import Observer
from ..execution.retry import RetryPolicy, RetryWithBackoff
from ..execution.streaming import TextStream
from ..execution.structured import Schema
from ..execution.throttle import Throttle, throttle_from_config
from ..execution.types import (
    AttemptResult,
    CallDescriptor,
    CallOptions,
    CallResult,
    DeltaChunk,
    FullResponse,
    ModelInformation,
    RunContext,
    StructureOrTextResponse,
    StructureResponse,
    Vector,
)

T = TypeVar("T")
ModelSelf = TypeVar("ModelSelf", bound="Model")


@dataclass(frozen=True, slots=True)
class ModelSettings:
    """
    Model-level execution settings.

    Unset `retry`/`throttle`/`timeout_s` fall back to `ExecutionConfig`.
    `observers` run before the observers passed with a call.
    """

    observers: tuple[Observer, ...] = ()
    retry: RetryPolicy | None = None
    throttle: Throttle | None = None
    timeout_s: float | None = None


class Model(ABC):
    """
    Base class for provider adapters.

    Adapters implement the `do_*` hook of each capability they support; the
    call-type functions in `modelcall.functions` drive those hooks through
    the shared execution core.
    """

    def __init__(
        self,
        *,
        model_name: str,
        settings: ModelSettings | None = None,
        config: ExecutionConfig | None = None,
    ) -> None:
        self.model_name = model_name
        self.config = config or ExecutionConfig.from_env()
        settings = settings or ModelSettings()
        self.settings = replace(
            settings,
            observers=tuple(settings.observers),
            retry=settings.retry or RetryWithBackoff.from_config(self.config),
            throttle=settings.throttle or throttle_from_config(self.config),
            timeout_s=(
                settings.timeout_s
                if settings.timeout_s is not None
                else self.config.timeout_s
            ),
        )

    @property
    @abstractmethod
    def provider(self) -> str:
        """Stable provider id (e.g. 'openai', 'ollama')."""

    @property
    def model_information(self) -> ModelInformation:
        return ModelInformation(provider=self.provider, model_name=self.model_name)

    def with_settings(self: ModelSelf, **changes: Any) -> ModelSelf:
        """
        Copy of this model with some settings replaced.

        The throttle instance is shared with the original unless replaced, so
        both copies count against the same concurrency limit.
        """
        if "observers" in changes:
            changes["observers"] = tuple(changes["observers"])
        clone = copy.copy(self)
        clone.settings = replace(self.settings, **changes)
        return clone

    def resolve_context(self, options: CallOptions | None = None) -> RunContext:
        """Merge model-level and call-level settings into one run context."""
        options = options or CallOptions()
        return RunContext(
            run_id=options.run_id or uuid.uuid4().hex,
            call_id=uuid.uuid4().hex,
            abort_signal=options.abort_signal or never_aborted(),
            observers=(*self.settings.observers, *options.observers),
        )

    async def execute(
        self,
        descriptor: CallDescriptor,
        attempt: AttemptFn[Any],
        options: CallOptions | None = None,
        *,
        post_process: PostProcessFn[Any, T] | None = None,
    ) -> CallResult[T]:
        return await execute_call(
            descriptor,
            attempt,
            model=self.model_information,
            context=self.resolve_context(options),
            retry=self.settings.retry,
            throttle=self.settings.throttle,
            post_process=post_process,
            timeout_s=self.settings.timeout_s,
        )

    async def execute_stream(
        self,
        descriptor: CallDescriptor,
        start_stream: StartStreamFn,
        options: CallOptions | None = None,
    ) -> TextStream:
        return await execute_stream_call(
            descriptor,
            start_stream,
            model=self.model_information,
            context=self.resolve_context(options),
            retry=self.settings.retry,
            throttle=self.settings.throttle,
            timeout_s=self.settings.timeout_s,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.provider}:{self.model_name})"


def to_full_response(result: CallResult[T]) -> FullResponse[T]:
    return FullResponse(
        value=result.value,
        raw_response=result.raw_response,
        metadata=result.metadata,
    )


class TextGenerationModel(Model):
    @abstractmethod
    async def do_generate_text(
        self, prompt: Any, context: RunContext
    ) -> AttemptResult[str]:
        """Provider-specific text generation."""


class TextStreamingModel(Model):
    @abstractmethod
    def do_stream_text(
        self, prompt: Any, context: RunContext
    ) -> AsyncIterator[str | DeltaChunk] | Awaitable[AsyncIterator[str | DeltaChunk]]:
        """
        Provider-specific streaming.

        May be an async generator or a coroutine returning an async iterator.
        """


class StructureGenerationModel(Model):
    @abstractmethod
    async def do_generate_structure(
        self, schema: Schema[Any], prompt: Any, context: RunContext
    ) -> StructureResponse:
        """
        Provider-specific structure generation.

        Returns the raw (unvalidated) value; validation happens in the core.
        """


class StructureOrTextGenerationModel(Model):
    @abstractmethod
    async def do_generate_structure_or_text(
        self, schemas: Sequence[Schema[Any]], prompt: Any, context: RunContext
    ) -> StructureOrTextResponse:
        """Provider-specific choice between one of `schemas` and plain text."""


class TextEmbeddingModel(Model):
    # Inputs above this size are split into batches; None means no limit.
    max_texts_per_call: int | None = None

    @abstractmethod
    async def do_embed_texts(
        self, texts: list[str], context: RunContext
    ) -> AttemptResult[list[Vector]]:
        """Provider-specific embedding of one batch."""


class ImageGenerationModel(Model):
    @abstractmethod
    async def do_generate_image(
        self, prompt: Any, context: RunContext
    ) -> AttemptResult[str]:
        """Provider-specific image generation; the value is a base64 encoded image."""


class TranscriptionModel(Model):
    @abstractmethod
    async def do_transcribe(self, data: Any, context: RunContext) -> AttemptResult[str]:
        """Provider-specific transcription of audio `data`."""
