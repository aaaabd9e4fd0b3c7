from __future__ import annotations

"""
Structure generation: the model produces a value that must conform to a schema
before it is handed back to the caller.
"""

from dataclasses import replace
from typing import Any, Callable, Sequence, TypeVar

from ..execution.errors import NoSuchSchemaError
from ..execution.structured import Schema, validate_structured
from ..execution.types import (
    AttemptResult,
    CallDescriptor,
    CallOptions,
    FullResponse,
    RunContext,
    StructureOrText,
    StructureOrTextResponse,
    StructureResponse,
)
from ..execution.utils import run_sync
from .model import StructureGenerationModel, StructureOrTextGenerationModel, to_full_response

T = TypeVar("T")

PromptOrFactory = Any | Callable[[Schema[Any]], Any]


def _expand_prompt(prompt: PromptOrFactory, schema: Schema[Any]) -> Any:
    # prompts are never callables themselves, so a callable builds the prompt
    return prompt(schema) if callable(prompt) else prompt


async def generate_structure_full(
    model: StructureGenerationModel,
    schema: Schema[T],
    prompt: PromptOrFactory,
    options: CallOptions | None = None,
) -> FullResponse[T]:
    """
    Generate a value for `prompt` and validate it against `schema`.

    `prompt` may also be a function that receives the schema and returns the
    prompt. A value that fails validation raises `StructureValidationError`
    carrying the raw value; it is not retried.
    """
    expanded = _expand_prompt(prompt, schema)

    async def _attempt(context: RunContext) -> AttemptResult[StructureResponse]:
        response = await model.do_generate_structure(schema, expanded, context)
        return AttemptResult(
            raw_response=response.raw_response,
            extracted_value=response,
            usage=response.usage,
        )

    def _validate(result: AttemptResult[StructureResponse]) -> AttemptResult[T]:
        response = result.extracted_value
        value = validate_structured(schema, response.value, response.value_text)
        return replace(result, extracted_value=value)

    result = await model.execute(
        CallDescriptor(
            function_type="generate-structure",
            input={"schema": schema, "prompt": expanded},
        ),
        _attempt,
        options,
        post_process=_validate,
    )
    return to_full_response(result)


async def generate_structure(
    model: StructureGenerationModel,
    schema: Schema[T],
    prompt: PromptOrFactory,
    options: CallOptions | None = None,
) -> T:
    return (await generate_structure_full(model, schema, prompt, options)).value


def generate_structure_sync(
    model: StructureGenerationModel,
    schema: Schema[T],
    prompt: PromptOrFactory,
    options: CallOptions | None = None,
) -> T:
    """Synchronous wrapper around `generate_structure`."""
    return run_sync(generate_structure(model, schema, prompt, options))


async def generate_structure_or_text_full(
    model: StructureOrTextGenerationModel,
    schemas: Sequence[Schema[Any]],
    prompt: Any,
    options: CallOptions | None = None,
) -> FullResponse[StructureOrText]:
    """
    Let the model either fill one of `schemas` or answer with plain text.

    Raises `NoSuchSchemaError` when the model names a schema that was not
    offered, and `StructureValidationError` when its value does not fit the
    named schema.
    """
    by_name = {schema.name: schema for schema in schemas}

    async def _attempt(context: RunContext) -> AttemptResult[StructureOrTextResponse]:
        response = await model.do_generate_structure_or_text(schemas, prompt, context)
        return AttemptResult(
            raw_response=response.raw_response,
            extracted_value=response,
            usage=response.usage,
        )

    def _validate(
        result: AttemptResult[StructureOrTextResponse],
    ) -> AttemptResult[StructureOrText]:
        response = result.extracted_value
        if response.schema_name is None:
            return replace(
                result, extracted_value=StructureOrText(schema_name=None, value=response.value)
            )

        schema = by_name.get(response.schema_name)
        if schema is None:
            raise NoSuchSchemaError(response.schema_name)

        value = validate_structured(schema, response.value, response.value_text)
        return replace(
            result,
            extracted_value=StructureOrText(schema_name=response.schema_name, value=value),
        )

    result = await model.execute(
        CallDescriptor(
            function_type="generate-structure-or-text",
            input={"schemas": tuple(schemas), "prompt": prompt},
        ),
        _attempt,
        options,
        post_process=_validate,
    )
    return to_full_response(result)


async def generate_structure_or_text(
    model: StructureOrTextGenerationModel,
    schemas: Sequence[Schema[Any]],
    prompt: Any,
    options: CallOptions | None = None,
) -> StructureOrText:
    return (await generate_structure_or_text_full(model, schemas, prompt, options)).value
