"""
In-memory Vector Index
-----------------------
Holds (Chunk, embedding) pairs for one corpus snapshot and answers
top-K cosine similarity queries by brute force.

Search is O(N) in the number of chunks.  Corpora are tens to low
hundreds of chunks, where an exact scan over a numpy matrix is both
faster to build and simpler to reason about than an ANN structure.

An index is populated once and then only read: the pipeline builds a
fresh VectorIndex for every rebuild and swaps the reference.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict

from edurag.chunking.schemas import Chunk
from edurag.embedding.embedder import TermFrequencyEmbedder

MIN_SIMILARITY = 0.1
TOP_K = 10


class RetrievalCandidate(BaseModel):
    """A chunk returned by the index, optionally re-scored by the reranker."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    similarity_score: float
    rerank_score: Optional[float] = None

    @property
    def metadata(self) -> dict[str, str]:
        return self.chunk.metadata


class VectorIndex:
    """
    Exact cosine-similarity index over TermFrequencyEmbedder vectors.

    Add chunks via add_all(), then query with search().
    """

    def __init__(
        self,
        embedder: TermFrequencyEmbedder,
        min_similarity: float = MIN_SIMILARITY,
    ) -> None:
        self.embedder = embedder
        self.min_similarity = min_similarity
        self.chunks: list[Chunk] = []
        self._matrix = np.empty((0, embedder.dimensions), dtype=np.float64)

    # --- Build ----------------------------------------------------------------

    def add_all(self, chunks: list[Chunk]) -> int:
        """
        Embed and store chunks.  A chunk whose embedding fails is dropped
        and the rest of the batch is still indexed.

        Returns:
            Number of chunks actually added.
        """
        kept: list[Chunk] = []
        vectors: list[np.ndarray] = []
        for chunk in chunks:
            try:
                vectors.append(self.embedder.embed(chunk.text))
            except Exception as exc:
                logger.warning(f"[VectorIndex] Dropping {chunk.chunk_id}: embedding failed ({exc})")
                continue
            kept.append(chunk)

        if kept:
            self._matrix = np.vstack([self._matrix, np.vstack(vectors)])
            self.chunks.extend(kept)

        logger.info(
            f"[VectorIndex] Added {len(kept)}/{len(chunks)} chunks | "
            f"index size: {len(self.chunks)}"
        )
        return len(kept)

    def clear(self) -> None:
        self.chunks = []
        self._matrix = np.empty((0, self.embedder.dimensions), dtype=np.float64)

    def size(self) -> int:
        return len(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)

    # --- Search ---------------------------------------------------------------

    def search(self, query: str, top_k: int = TOP_K) -> list[RetrievalCandidate]:
        """
        Cosine search of `query` against every stored chunk.

        Returns:
            At most top_k candidates with similarity >= min_similarity,
            sorted by similarity descending (ties keep insertion order).
        """
        if not self.chunks:
            logger.warning("[VectorIndex] Index is empty")
            return []
        if top_k <= 0:
            return []

        query_vec = self.embedder.embed(query, cache=False)
        dots = self._matrix @ query_vec
        norms = np.linalg.norm(self._matrix, axis=1) * np.linalg.norm(query_vec)
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        results: list[RetrievalCandidate] = []
        for idx in np.argsort(-scores, kind="stable"):
            score = float(scores[idx])
            if score < self.min_similarity:
                break
            results.append(RetrievalCandidate(chunk=self.chunks[idx], similarity_score=score))
            if len(results) == top_k:
                break

        logger.info(
            f"[VectorIndex] {len(results)} candidates for {query[:50]!r} "
            f"(top score: {results[0].similarity_score:.3f})" if results
            else f"[VectorIndex] No candidates above {self.min_similarity} for {query[:50]!r}"
        )
        return results
