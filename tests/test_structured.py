"""Tests for JSON extraction from model output."""
from __future__ import annotations

import pytest
from pydantic import BaseModel

from edurag.errors import OutputParseError
from edurag.generation.structured import extract_json, parse_list, parse_model, strip_fences


class Item(BaseModel):
    name: str
    value: int


class TestExtractJson:
    def test_plain_object(self) -> None:
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_fenced_block(self) -> None:
        text = 'Here you go:\n```json\n{"score": 80, "feedback": "Good"}\n```'
        assert extract_json(text, expect="object") == {"score": 80, "feedback": "Good"}

    def test_prose_around_array(self) -> None:
        text = 'Sure! [{"name": "x", "value": 1}] Hope that helps.'
        assert extract_json(text, expect="array") == [{"name": "x", "value": 1}]

    def test_wrong_shape_is_rejected(self) -> None:
        with pytest.raises(OutputParseError):
            extract_json("[1, 2, 3]", expect="object")

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "{broken: json"])
    def test_unparseable(self, text: str) -> None:
        with pytest.raises(OutputParseError) as excinfo:
            extract_json(text)
        assert excinfo.value.raw == text

    def test_strip_fences(self) -> None:
        assert strip_fences("```json\n[1]\n```") == "[1]"


class TestParse:
    def test_parse_model(self) -> None:
        assert parse_model('{"name": "a", "value": 3}', Item) == Item(name="a", value=3)

    def test_parse_model_validation_error(self) -> None:
        with pytest.raises(OutputParseError):
            parse_model('{"name": "a"}', Item)

    def test_parse_list_drops_invalid_items(self) -> None:
        text = '[{"name": "a", "value": 1}, {"name": "b"}, {"name": "c", "value": 3}]'
        assert [i.name for i in parse_list(text, Item)] == ["a", "c"]

    def test_parse_list_with_no_valid_items(self) -> None:
        with pytest.raises(OutputParseError):
            parse_list('[{"name": "b"}]', Item)
