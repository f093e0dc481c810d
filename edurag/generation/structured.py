"""
Structured Output Parser
-------------------------
Extracts JSON data from free-text model output and validates it against
a pydantic schema.

Models wrap JSON in markdown fences, prefix it with prose, or return
something else entirely.  Rather than defaulting silently, every failure
here raises OutputParseError so callers choose their own fallback.
"""
from __future__ import annotations

import re
from typing import Any, TypeVar

import orjson
from loguru import logger
from pydantic import BaseModel, ValidationError

from edurag.errors import OutputParseError

T = TypeVar("T", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?|```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json(text: str, expect: str = "any") -> Any:
    """
    Return the first JSON value found in `text`.

    Args:
        text:   Raw model output.
        expect: "object", "array" or "any" -- which JSON shape to look for.

    Raises:
        OutputParseError: if no parseable JSON of that shape is present.
    """
    if not text or not text.strip():
        raise OutputParseError("empty model output", raw=text or "")

    cleaned = strip_fences(text)
    patterns = {"object": [_OBJECT_RE], "array": [_ARRAY_RE], "any": [_OBJECT_RE, _ARRAY_RE]}[expect]

    # Try the whole cleaned string first, then the widest bracketed span
    candidates = [cleaned] + [m.group() for p in patterns if (m := p.search(cleaned))]
    for candidate in candidates:
        try:
            value = orjson.loads(candidate)
        except orjson.JSONDecodeError:
            continue
        if expect == "object" and not isinstance(value, dict):
            continue
        if expect == "array" and not isinstance(value, list):
            continue
        return value

    raise OutputParseError(f"no JSON {expect} found in model output", raw=text)


def parse_model(text: str, schema: type[T]) -> T:
    """Parse a single JSON object from `text` into `schema`."""
    data = extract_json(text, expect="object")
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise OutputParseError(f"{schema.__name__} validation failed: {exc}", raw=text) from exc


def parse_list(text: str, schema: type[T]) -> list[T]:
    """
    Parse a JSON array from `text`, keeping only items that validate.

    Raises:
        OutputParseError: if there is no array or no item validates.
    """
    data = extract_json(text, expect="array")
    items: list[T] = []
    for raw_item in data:
        try:
            items.append(schema.model_validate(raw_item))
        except ValidationError as exc:
            logger.debug(f"[Parser] Dropping invalid {schema.__name__}: {exc.error_count()} error(s)")
    if not items:
        raise OutputParseError(f"no valid {schema.__name__} items in model output", raw=text)
    return items
