from __future__ import annotations

import asyncio
from typing import Sequence

from ..execution.errors import ModelCallError
from ..execution.types import (
    AttemptResult,
    CallDescriptor,
    CallOptions,
    FullResponse,
    RunContext,
    Usage,
    Vector,
)
from ..execution.utils import run_sync
from .model import TextEmbeddingModel, to_full_response


def _sum_usage(results: Sequence[AttemptResult[list[Vector]]]) -> Usage | None:
    usages = [r.usage for r in results if r.usage is not None]
    if not usages:
        return None

    def _total(field: str) -> int | None:
        values = [getattr(u, field) for u in usages if getattr(u, field) is not None]
        return sum(values) if values else None

    return Usage(
        input_tokens=_total("input_tokens"),
        output_tokens=_total("output_tokens"),
        total_tokens=_total("total_tokens"),
    )


async def embed_texts_full(
    model: TextEmbeddingModel,
    texts: Sequence[str],
    options: CallOptions | None = None,
) -> FullResponse[list[Vector]]:
    """
    Embed `texts`, one vector per text, in input order.

    Inputs larger than `model.max_texts_per_call` are split into batches that
    run concurrently inside a single attempt.
    """
    texts = list(texts)
    if not texts:
        raise ModelCallError("embed_texts requires at least one text")

    batch_size = model.max_texts_per_call

    async def _attempt(context: RunContext) -> AttemptResult[list[Vector]]:
        if batch_size is None or len(texts) <= batch_size:
            return await model.do_embed_texts(texts, context)

        batches = [texts[i : i + batch_size] for i in range(0, len(texts), batch_size)]
        results = await asyncio.gather(
            *(model.do_embed_texts(batch, context) for batch in batches)
        )
        return AttemptResult(
            raw_response=[r.raw_response for r in results],
            extracted_value=[vector for r in results for vector in r.extracted_value],
            usage=_sum_usage(results),
        )

    def _check_count(result: AttemptResult[list[Vector]]) -> AttemptResult[list[Vector]]:
        if len(result.extracted_value) != len(texts):
            raise ModelCallError(
                f"Expected {len(texts)} embeddings, "
                f"provider returned {len(result.extracted_value)}"
            )
        return result

    result = await model.execute(
        CallDescriptor(function_type="embed", input={"texts": tuple(texts)}),
        _attempt,
        options,
        post_process=_check_count,
    )
    return to_full_response(result)


async def embed_texts(
    model: TextEmbeddingModel,
    texts: Sequence[str],
    options: CallOptions | None = None,
) -> list[Vector]:
    return (await embed_texts_full(model, texts, options)).value


def embed_texts_sync(
    model: TextEmbeddingModel,
    texts: Sequence[str],
    options: CallOptions | None = None,
) -> list[Vector]:
    """Synchronous wrapper around `embed_texts`."""
    return run_sync(embed_texts(model, texts, options))


async def embed_text(
    model: TextEmbeddingModel,
    text: str,
    options: CallOptions | None = None,
) -> Vector:
    """Embed a single text."""
    return (await embed_texts(model, [text], options))[0]
