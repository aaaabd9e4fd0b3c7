from __future__ import annotations

from typing import Literal

import pytest
from pydantic import BaseModel

from modelcall.execution.errors import StructureValidationError
from modelcall.execution.structured import PydanticSchema, parse_json_value, validate_structured
from modelcall.execution.utils import extract_json_object


class Sentiment(BaseModel):
    sentiment: Literal["positive", "neutral", "negative"]


SENTIMENT = PydanticSchema(Sentiment, name="sentiment", description="Sentiment of a text.")


def test_schema_name_and_json_schema():
    schema = SENTIMENT.json_schema()

    assert SENTIMENT.name == "sentiment"
    assert PydanticSchema(Sentiment).name == "Sentiment"
    assert schema["properties"]["sentiment"]["enum"] == ["positive", "neutral", "negative"]
    assert schema["description"] == "Sentiment of a text."


def test_valid_value_is_returned_typed():
    value = validate_structured(SENTIMENT, {"sentiment": "positive"})

    assert value == Sentiment(sentiment="positive")


def test_invalid_value_keeps_raw_value_and_text():
    raw = {"sentiment": "happy"}

    with pytest.raises(StructureValidationError) as info:
        validate_structured(SENTIMENT, raw, '{"sentiment": "happy"}')

    assert info.value.value == raw
    assert info.value.value_text == '{"sentiment": "happy"}'
    assert info.value.cause is not None


def test_value_text_defaults_to_json_dump():
    with pytest.raises(StructureValidationError) as info:
        validate_structured(SENTIMENT, {"sentiment": 3})

    assert info.value.value_text == '{"sentiment": 3}'


def test_validation_is_idempotent():
    good = {"sentiment": "neutral"}
    bad = {"mood": "neutral"}

    assert SENTIMENT.validate(good) == SENTIMENT.validate(good)

    first = SENTIMENT.validate(bad)
    second = SENTIMENT.validate(bad)
    assert first.success is False and second.success is False
    assert first.error.errors() == second.error.errors()


def test_parse_json_value_accepts_fenced_and_embedded_json():
    assert parse_json_value('{"sentiment": "negative"}') == {"sentiment": "negative"}
    assert parse_json_value('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}
    assert parse_json_value('Sure! Here it is: {"a": "}"} hope that helps') == {"a": "}"}


def test_parse_json_value_rejects_prose():
    with pytest.raises(StructureValidationError) as info:
        parse_json_value("I could not decide.")

    assert info.value.value_text == "I could not decide."
    assert info.value.value is None


def test_extract_json_object_handles_nesting():
    assert extract_json_object('x {"a": {"b": [1, {"c": 2}]}} y') == '{"a": {"b": [1, {"c": 2}]}}'
    assert extract_json_object("no json here") is None
