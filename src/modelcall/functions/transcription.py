from __future__ import annotations

from typing import Any

from ..execution.types import CallDescriptor, CallOptions, FullResponse
from ..execution.utils import run_sync
from .model import TranscriptionModel, to_full_response


async def transcribe_full(
    model: TranscriptionModel,
    data: Any,
    options: CallOptions | None = None,
) -> FullResponse[str]:
    result = await model.execute(
        CallDescriptor(function_type="transcribe", input={"data": data}),
        lambda context: model.do_transcribe(data, context),
        options,
    )
    return to_full_response(result)


async def transcribe(
    model: TranscriptionModel,
    data: Any,
    options: CallOptions | None = None,
) -> str:
    """Transcribe audio `data` into text."""
    return (await transcribe_full(model, data, options)).value


def transcribe_sync(
    model: TranscriptionModel,
    data: Any,
    options: CallOptions | None = None,
) -> str:
    return run_sync(transcribe(model, data, options))
