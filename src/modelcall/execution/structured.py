from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Module for structured model outputs: the schema capability consumed by the
execution core and the validator that translates schema failures into
`StructureValidationError`.
"""
import json
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import StructureValidationError
from .types import ValidationFailure, ValidationOutcome, ValidationSuccess
from .utils import extract_json_object, safe_json_loads

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)


class Schema(Protocol[T]):
    """
    Opaque schema capability.

    `validate` must be free of side effects so that validating the same raw
    value twice yields equal outcomes.
    """

    @property
    def name(self) -> str:
        ...

    def validate(self, value: Any) -> ValidationOutcome:
        ...

    def json_schema(self) -> dict[str, Any]:
        ...


class PydanticSchema(Generic[ModelT]):
    """Schema backed by a pydantic model class."""

    def __init__(
        self,
        model_type: type[ModelT],
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> None:
        self.model_type = model_type
        self._name = name or model_type.__name__
        self.description = description

    @property
    def name(self) -> str:
        return self._name

    def validate(self, value: Any) -> ValidationOutcome:
        try:
            return ValidationSuccess(data=self.model_type.model_validate(value))
        except ValidationError as e:
            return ValidationFailure(error=e)

    def json_schema(self) -> dict[str, Any]:
        schema = self.model_type.model_json_schema()
        if self.description and "description" not in schema:
            schema = {**schema, "description": self.description}
        return schema

    def __repr__(self) -> str:
        return f"PydanticSchema({self.model_type.__name__})"


def _dump_value_text(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(value)


def validate_structured(
    schema: Schema[T], value: Any, value_text: str | None = None
) -> T:
    """
    Validate a raw model value against `schema`.

    Returns the typed value on success. On failure raises
    `StructureValidationError` holding the untouched raw value, its text form
    and the schema's diagnostic.
    """
    outcome = schema.validate(value)
    if outcome.success:
        return outcome.data

    raise StructureValidationError(
        value_text=value_text if value_text is not None else _dump_value_text(value),
        value=value,
        cause=outcome.error,
    )


def parse_json_value(text: str) -> Any:
    """
    Parse the JSON value a model wrote into `text`.

    Accepts bare JSON, fenced code blocks and JSON surrounded by prose.
    """
    obj = safe_json_loads(text.strip()) if text else None
    if obj is None:
        json_str = extract_json_object(text)
        obj = safe_json_loads(json_str) if json_str else None
    if obj is None:
        raise StructureValidationError(
            value_text=text,
            value=None,
            cause="Failed to extract a valid JSON value from the response",
        )
    return obj
