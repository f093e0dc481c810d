"""Tests for the in-memory cosine index."""
from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from edurag.chunking.chunker import SentenceChunker
from edurag.chunking.schemas import Chunk
from edurag.embedding.embedder import TermFrequencyEmbedder
from edurag.embedding.vector_index import VectorIndex
from edurag.schemas import Document


def _chunk(doc_id: str, text: str, title: str = "Notes", subject: str = "General") -> Chunk:
    return Chunk(doc_id=doc_id, chunk_index=0, total_chunks=1, text=text, title=title, subject=subject)


@pytest.fixture
def index() -> VectorIndex:
    return VectorIndex(TermFrequencyEmbedder())


class TestVectorIndex:
    def test_empty_index_returns_nothing(self, index: VectorIndex) -> None:
        assert index.search("What is a variable?") == []
        assert index.size() == 0

    def test_add_all_counts(self, index: VectorIndex, documents: list[Document]) -> None:
        chunks = SentenceChunker().chunk_batch(documents)
        assert index.add_all(chunks) == len(chunks)
        assert len(index) == len(chunks)

    def test_search_finds_relevant_chunk(self, index: VectorIndex, documents: list[Document]) -> None:
        index.add_all(SentenceChunker().chunk_batch(documents))
        results = index.search("What is a variable?")

        assert results
        assert results[0].chunk.doc_id == "algebra-1"
        assert results[0].metadata["title"] == "Algebra Basics"

    def test_results_below_threshold_are_dropped(self, index: VectorIndex) -> None:
        index.add_all([
            _chunk("vocab", "Study learn study learn."),
            _chunk("plain", "The quick brown fox jumps over the lazy dog."),
        ])
        results = index.search("completely unrelated nonsense query")

        assert [r.chunk.doc_id for r in results] == ["plain"]
        assert all(r.similarity_score >= index.min_similarity for r in results)

    def test_results_sorted_and_bounded(self, index: VectorIndex) -> None:
        index.add_all([
            _chunk(f"doc-{i}", f"Science experiment number {i} gives evidence about energy.")
            for i in range(6)
        ])
        results = index.search("science experiment evidence", top_k=4)

        assert len(results) == 4
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_equal_scores_keep_insertion_order(self, index: VectorIndex) -> None:
        text = "Geometry studies shapes and every geometry problem has a method."
        index.add_all([_chunk("first", text), _chunk("second", text), _chunk("third", text)])

        results = index.search("geometry problem")
        assert [r.chunk.doc_id for r in results] == ["first", "second", "third"]

    def test_non_positive_top_k(self, index: VectorIndex) -> None:
        index.add_all([_chunk("a", "Physics and energy.")])
        assert index.search("energy", top_k=0) == []

    def test_failed_embedding_drops_only_that_chunk(self) -> None:
        real = TermFrequencyEmbedder()
        embedder = MagicMock(spec=TermFrequencyEmbedder)
        embedder.dimensions = real.dimensions

        def embed(text: str) -> np.ndarray:
            if "broken" in text:
                raise RuntimeError("cannot embed")
            return real.embed(text)

        embedder.embed.side_effect = embed
        index = VectorIndex(embedder)

        added = index.add_all([_chunk("ok", "Biology cells."), _chunk("bad", "broken chunk")])
        assert added == 1
        assert [c.doc_id for c in index.chunks] == ["ok"]

    def test_queries_are_not_cached(self, index: VectorIndex) -> None:
        index.add_all([_chunk("a", "Chemistry experiment.")])
        cached = index.embedder.cache_size

        for question in ("What is chemistry?", "Why run an experiment?", "Define evidence"):
            index.search(question)
        assert index.embedder.cache_size == cached

    def test_clear(self, index: VectorIndex) -> None:
        index.add_all([_chunk("a", "History research.")])
        index.clear()
        assert index.size() == 0
        assert index.search("history") == []
