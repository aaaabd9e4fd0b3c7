from __future__ import annotations

from typing import Any

from ..execution.types import CallDescriptor, CallOptions, FullResponse
from ..execution.utils import run_sync
from .model import ImageGenerationModel, to_full_response


async def generate_image_full(
    model: ImageGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> FullResponse[str]:
    result = await model.execute(
        CallDescriptor(function_type="generate-image", input={"prompt": prompt}),
        lambda context: model.do_generate_image(prompt, context),
        options,
    )
    return to_full_response(result)


async def generate_image(
    model: ImageGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> str:
    """Generate an image for a prompt; returns the base64 encoded image."""
    return (await generate_image_full(model, prompt, options)).value


def generate_image_sync(
    model: ImageGenerationModel,
    prompt: Any,
    options: CallOptions | None = None,
) -> str:
    return run_sync(generate_image(model, prompt, options))
