"""
Term-Frequency Embedder
------------------------
Maps text to a fixed-length, non-negative feature vector:

  - one component per term of a fixed academic vocabulary, holding that
    term's frequency in the text (count / total tokens)
  - two auxiliary components: token count / 100 and character count / 1000

There is no model and no corpus-wide statistic, so an embedding depends
on nothing but its input text and is fully explainable.

Embeddings are cached under the first 100 characters of the input and
checked against the full text on lookup.  The cache is a latency
optimisation only and can be cleared at any time.
"""
from __future__ import annotations

import math
import threading
from collections import Counter
from typing import Sequence

import numpy as np
from loguru import logger

from edurag.utils.helpers import tokenize

VOCABULARY: tuple[str, ...] = (
    # general learning terms
    "learn", "study", "education", "knowledge", "understand", "concept",
    "theory", "practice", "example", "problem", "solution", "method",
    "analysis", "research", "data", "information", "skill", "development",
    # subjects
    "science", "math", "mathematics", "history", "english", "computer",
    "technology", "biology", "chemistry", "physics", "geography", "literature",
    # subject vocabulary
    "algebra", "geometry", "equation", "variable", "function", "number",
    "energy", "cell", "experiment", "evidence", "grammar", "writing",
    "program", "algorithm",
)

TOKEN_SCALE = 100.0
CHAR_SCALE = 1000.0
CACHE_KEY_CHARS = 100


class TermFrequencyEmbedder:
    """
    Lexical embedder over a fixed vocabulary.

    Every vector has `dimensions == len(vocabulary) + 2`, so two vectors
    are comparable only when produced by embedders with the same
    vocabulary.
    """

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY) -> None:
        if not vocabulary:
            raise ValueError("vocabulary must not be empty")
        self.vocabulary = tuple(vocabulary)
        self._cache: dict[str, tuple[str, np.ndarray]] = {}
        self._lock = threading.Lock()
        self.embed_calls: int = 0
        self.cache_hits: int = 0

    @property
    def dimensions(self) -> int:
        return len(self.vocabulary) + 2

    def embed(self, text: str, cache: bool = True) -> np.ndarray:
        """
        Embed a single string, consulting the prefix cache first.

        An entry is reused only when its full text matches, so two texts
        sharing a prefix never share a vector.  Pass `cache=False` for
        one-off texts such as queries.
        """
        key = text[:CACHE_KEY_CHARS]
        if cache:
            with self._lock:
                entry = self._cache.get(key)
                if entry is not None and entry[0] == text:
                    self.cache_hits += 1
                    return entry[1]

        vector = self._compute(text)
        with self._lock:
            self.embed_calls += 1
            if cache:
                self._cache[key] = (text, vector)
        return vector

    def embed_texts(self, texts: list[str]) -> np.ndarray:
        """Embed a list of strings and return an (N, dimensions) float array."""
        if not texts:
            return np.empty((0, self.dimensions), dtype=np.float64)
        return np.vstack([self.embed(t) for t in texts])

    def _compute(self, text: str) -> np.ndarray:
        tokens = tokenize(text)
        counts = Counter(tokens)
        total = len(tokens)

        vector = np.zeros(self.dimensions, dtype=np.float64)
        if total:
            for i, term in enumerate(self.vocabulary):
                vector[i] = counts.get(term, 0) / total
        vector[-2] = total / TOKEN_SCALE
        vector[-1] = len(text) / CHAR_SCALE
        # Read-only so a cached vector can be shared safely
        vector.setflags(write=False)
        return vector

    @staticmethod
    def similarity(a: np.ndarray, b: np.ndarray) -> float:
        """Cosine similarity; 0.0 when either vector has zero magnitude."""
        if a.shape != b.shape:
            raise ValueError(f"Cannot compare embeddings of shape {a.shape} and {b.shape}")
        magnitude = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
        if magnitude == 0.0 or math.isnan(magnitude):
            return 0.0
        return float(np.dot(a, b) / magnitude)

    def clear_cache(self) -> None:
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        logger.debug(f"[Embedder] Cache cleared ({size} entries)")

    @property
    def cache_size(self) -> int:
        return len(self._cache)
