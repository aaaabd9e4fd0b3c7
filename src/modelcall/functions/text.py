from __future__ import annotations

from typing import Any

from ..execution.streaming import TextStream
from ..execution.types import CallDescriptor, CallOptions, FullResponse
from ..execution.utils import run_sync
from .model import TextGenerationModel, TextStreamingModel, to_full_response


async def generate_text_full(
    model: TextGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> FullResponse[str]:
    """Generate text and return it with the raw response and call metadata."""
    result = await model.execute(
        CallDescriptor(function_type="generate-text", input={"prompt": prompt}),
        lambda context: model.do_generate_text(prompt, context),
        options,
    )
    return to_full_response(result)


async def generate_text(
    model: TextGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> str:
    """Generate text for a prompt."""
    return (await generate_text_full(model, prompt, options)).value


def generate_text_sync(
    model: TextGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> str:
    """Synchronous wrapper around `generate_text`."""
    return run_sync(generate_text(model, prompt, options))


async def stream_text(
    model: TextStreamingModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> TextStream:
    """
    Stream generated text.

    Returns once the provider produced its first delta. Iterate the returned
    stream for the deltas; `full_text` and `metadata` are available once it
    settles. Use it as an async context manager to close it early.
    """
    return await model.execute_stream(
        CallDescriptor(function_type="stream-text", input={"prompt": prompt}),
        lambda context: model.do_stream_text(prompt, context),
        options,
    )
