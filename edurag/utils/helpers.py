"""Shared utility functions used across the pipeline."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import orjson

_WORD_RE = re.compile(r"[^\w\s]")


# --- Text Utilities -----------------------------------------------------------

def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lowercase, replace non-word characters with spaces, split, drop short tokens."""
    normalised = _WORD_RE.sub(" ", text.lower())
    return [t for t in normalised.split() if len(t) >= min_length]


def clean_text(text: str) -> str:
    """Remove control characters and normalise whitespace."""
    # Strip control chars (keep newlines/tabs)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    # Collapse horizontal whitespace runs
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


def truncate_text(text: str, max_chars: int = 300) -> str:
    """Truncate text for display purposes."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


# --- File I/O -----------------------------------------------------------------

def load_json(path: str | Path) -> Any:
    """Load JSON data from file."""
    with open(Path(path), "rb") as f:
        return orjson.loads(f.read())
