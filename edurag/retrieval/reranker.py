"""
Keyword Reranker
-----------------
Re-scores the vector index's candidates with lexical and metadata
signals the similarity search ignores, then keeps the top N.

Scoring, per candidate:
  base        similarity_score from the index
  +0.3        per query token found in the document title
  +0.2        per query token found in the document subject
  +0.1        per literal occurrence of a query token in the chunk text
  +0.1        once, if the subject is a core academic subject
  x0.8        if the chunk text is shorter than 50 characters

The content bonus is unbounded by default, so repeating a keyword keeps
raising the score.  `max_occurrences_per_token` caps it when set.
"""
from __future__ import annotations

from typing import Optional

from langsmith import traceable
from loguru import logger

from edurag.embedding.vector_index import RetrievalCandidate
from edurag.utils.helpers import tokenize

TITLE_BONUS = 0.3
SUBJECT_BONUS = 0.2
OCCURRENCE_BONUS = 0.1
CORE_SUBJECT_BONUS = 0.1
SHORT_CHUNK_CHARS = 50
SHORT_CHUNK_PENALTY = 0.8

CORE_SUBJECTS: tuple[str, ...] = (
    "mathematics", "science", "history", "english", "computer science",
)


class KeywordReranker:
    """
    Deterministic second-pass scorer.

    Args:
        top_n: Number of candidates to keep after reranking (default: 3).
        max_occurrences_per_token: Optional cap on counted occurrences
            of each query token in the chunk text.
    """

    def __init__(self, top_n: int = 3, max_occurrences_per_token: Optional[int] = None) -> None:
        if top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")
        self.top_n = top_n
        self.max_occurrences_per_token = max_occurrences_per_token

    def score(self, query_tokens: list[str], candidate: RetrievalCandidate) -> float:
        chunk = candidate.chunk
        content = chunk.text.lower()
        title = chunk.title.lower()
        subject = chunk.subject.lower()

        score = candidate.similarity_score
        for token in query_tokens:
            if token in title:
                score += TITLE_BONUS
            if token in subject:
                score += SUBJECT_BONUS
            occurrences = content.count(token)
            if self.max_occurrences_per_token is not None:
                occurrences = min(occurrences, self.max_occurrences_per_token)
            score += occurrences * OCCURRENCE_BONUS

        if any(core in subject for core in CORE_SUBJECTS):
            score += CORE_SUBJECT_BONUS

        if len(chunk.text) < SHORT_CHUNK_CHARS:
            score *= SHORT_CHUNK_PENALTY
        return score

    @traceable(name="rerank", run_type="chain")
    def rerank(self, query: str, candidates: list[RetrievalCandidate]) -> list[RetrievalCandidate]:
        """
        Score all candidates and keep the top_n.

        Returns:
            Candidates with rerank_score set, sorted descending; equal
            scores keep their retrieval order.
        """
        if not candidates:
            return []

        query_tokens = tokenize(query)
        scored = [
            candidate.model_copy(update={"rerank_score": self.score(query_tokens, candidate)})
            for candidate in candidates
        ]
        # sorted() is stable, including with reverse=True
        scored = sorted(scored, key=lambda c: c.rerank_score, reverse=True)
        top = scored[: self.top_n]

        logger.info(
            f"[Reranker] {len(candidates)} -> {len(top)} chunks "
            f"| top score: {top[0].rerank_score:.3f}"
        )
        for rank, candidate in enumerate(top, start=1):
            logger.debug(
                f"  #{rank} score={candidate.rerank_score:.3f} | {candidate.chunk.subject} | "
                f"{candidate.chunk.title[:60]}"
            )
        return top
