"""
RAG Serving Pipeline
---------------------
Owns the index lifecycle and drives the per-query sequence:

    question
        |
        v
    freshness check (UNINITIALIZED / corpus fingerprint / 30-minute staleness)
        |  rebuild if needed: chunk -> embed -> new VectorIndex -> swap
        v
    VectorIndex.search      (cosine over term-frequency vectors, top_k=10)
        |
        v
    KeywordReranker.rerank  (title / subject / keyword bonuses, top_n=3)
        |
        v
    AnswerGenerator.generate (prompt + service call, fallback on failure)
        |
        v
    QueryResult (response + source attributions + timings)

Rebuilds happen entirely off to the side and are published by replacing
one IndexSnapshot reference, so a query sees either the old corpus or
the new one, never a mixture.  Rebuilds are serialised by a lock;
queries never take it.
"""
from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import orjson
from langsmith import traceable
from loguru import logger

from edurag.chunking.chunker import SentenceChunker
from edurag.config import PipelineConfig
from edurag.embedding.embedder import TermFrequencyEmbedder
from edurag.embedding.vector_index import RetrievalCandidate, VectorIndex
from edurag.errors import RepositoryError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.services import TextGenerationService
from edurag.repository import DocumentRepository
from edurag.retrieval.reranker import KeywordReranker
from edurag.schemas import Document, PipelineStatus, SourceAttribution
from edurag.utils.cancellation import CancellationToken

# Config keys whose change invalidates the current index
_REBUILD_KEYS = ("chunk_size", "chunk_overlap", "min_similarity", "content_aware_fingerprint")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def corpus_fingerprint(documents: list[Document], include_content: bool = False) -> str:
    """
    Digest of the ordered (id, title, subject) tuples.

    Only metadata is hashed unless include_content is set, so an edit to
    a document's body alone is picked up by the staleness window rather
    than by the fingerprint.
    """
    if not documents:
        return "empty"
    rows = []
    for doc in documents:
        row = [doc.id, doc.title, doc.subject]
        if include_content:
            row.append(hashlib.sha256((doc.content or "").encode("utf-8")).hexdigest())
        rows.append(row)
    return hashlib.sha256(orjson.dumps(rows)).hexdigest()[:16]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class PipelineState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


@dataclass(frozen=True)
class IndexSnapshot:
    """Everything a query reads, published as one reference."""

    index: VectorIndex
    fingerprint: str
    built_at: datetime
    document_count: int
    documents: tuple[Document, ...] = ()


# ---------------------------------------------------------------------------
# Result schema
# ---------------------------------------------------------------------------

@dataclass
class QueryResult:
    """
    Output of a single query.

    `sources` are ordered by rerank score; the first one is the answer's
    primary source.  Timing fields are in milliseconds.
    """

    question: str
    response: str
    sources: list[SourceAttribution] = field(default_factory=list)
    rebuilt_index: bool = False

    retrieval_ms: float = 0.0
    rerank_ms: float = 0.0
    generation_ms: float = 0.0

    @property
    def primary_source(self) -> Optional[SourceAttribution]:
        return self.sources[0] if self.sources else None

    @property
    def total_ms(self) -> float:
        return self.retrieval_ms + self.rerank_ms + self.generation_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "response": self.response,
            "sources": [s.model_dump() for s in self.sources],
            "primary_source": self.primary_source.model_dump() if self.primary_source else None,
            "rebuilt_index": self.rebuilt_index,
            "latency_ms": {
                "retrieval": round(self.retrieval_ms, 1),
                "rerank": round(self.rerank_ms, 1),
                "generation": round(self.generation_ms, 1),
                "total": round(self.total_ms, 1),
            },
        }


def _attribute(candidates: list[RetrievalCandidate]) -> list[SourceAttribution]:
    return [
        SourceAttribution(
            document_id=c.chunk.doc_id,
            title=c.chunk.title,
            subject=c.chunk.subject,
            similarity_score=c.similarity_score,
            rerank_score=c.rerank_score if c.rerank_score is not None else c.similarity_score,
        )
        for c in candidates
    ]


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class RAGPipeline:
    """
    End-to-end retrieval-augmented answering over a document corpus.

    Every collaborator is injected; anything not supplied is built from
    `config`.  Either `service` or a ready-made `generator` is required.

    Usage:
        pipeline = RAGPipeline(service=OpenAIChatService(), repository=repo)
        result = pipeline.query("What is a variable?")
        print(result.response, result.primary_source)
    """

    def __init__(
        self,
        service: Optional[TextGenerationService] = None,
        repository: Optional[DocumentRepository] = None,
        config: Optional[PipelineConfig] = None,
        *,
        generator: Optional[AnswerGenerator] = None,
        embedder: Optional[TermFrequencyEmbedder] = None,
        chunker: Optional[SentenceChunker] = None,
        reranker: Optional[KeywordReranker] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if generator is None and service is None:
            raise ValueError("RAGPipeline needs a text-generation service or a generator")

        self.config = config or PipelineConfig()
        self.repository = repository
        self.embedder = embedder or TermFrequencyEmbedder()
        self.chunker = chunker or SentenceChunker(self.config.chunk_size, self.config.chunk_overlap)
        self.reranker = reranker or KeywordReranker(
            top_n=self.config.reranker_top_n,
            max_occurrences_per_token=self.config.max_occurrences_per_token,
        )
        self.generator = generator or AnswerGenerator(service)
        self._clock = clock

        self._snapshot: Optional[IndexSnapshot] = None
        self._build_lock = threading.Lock()
        self._config_changed = False
        self.build_count: int = 0

    # --- State ----------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return PipelineState.READY if self._snapshot is not None else PipelineState.UNINITIALIZED

    def _fingerprint(self, documents: list[Document]) -> str:
        return corpus_fingerprint(documents, include_content=self.config.content_aware_fingerprint)

    def _is_stale(self, snapshot: IndexSnapshot) -> bool:
        window = timedelta(minutes=self.config.stale_after_minutes)
        return self._clock() - snapshot.built_at > window

    def _load_documents(self) -> list[Document]:
        if self.repository is None:
            # Without a repository, rebuild from the last supplied corpus
            if self._snapshot is not None:
                return list(self._snapshot.documents)
            raise RepositoryError("No documents supplied and no document repository configured")
        try:
            return self.repository.list()
        except RepositoryError:
            raise
        except Exception as exc:
            raise RepositoryError(f"Document repository failed: {exc}") from exc

    # --- Index lifecycle ------------------------------------------------------

    def initialize(self, documents: Optional[list[Document]] = None, force: bool = False) -> bool:
        """
        Build the index from `documents` (or the repository) unless the
        current snapshot is already up to date.

        Returns:
            True if a new snapshot was built, False for a no-op.

        Raises:
            RepositoryError: if the repository cannot be read.  The
                previous snapshot, if any, stays in service.
        """
        with self._build_lock:
            if documents is None:
                documents = self._load_documents()

            fingerprint = self._fingerprint(documents)
            current = self._snapshot
            if (
                not force
                and current is not None
                and current.fingerprint == fingerprint
                and not self._config_changed
                and not self._is_stale(current)
            ):
                logger.info("[RAGPipeline] Documents unchanged, skipping rebuild")
                return False

            snapshot = self._build(documents, fingerprint)
            self._snapshot = snapshot
            self._config_changed = False

        logger.info(
            f"[RAGPipeline] Ready | {snapshot.document_count} documents | "
            f"{snapshot.index.size()} chunks | fingerprint={fingerprint}"
        )
        return True

    def _build(self, documents: list[Document], fingerprint: str) -> IndexSnapshot:
        logger.info(f"[RAGPipeline] Building index from {len(documents)} documents...")
        if not documents:
            logger.warning("[RAGPipeline] No documents available; index will be empty")

        self.embedder.clear_cache()
        chunks = self.chunker.chunk_batch(documents)
        index = VectorIndex(self.embedder, min_similarity=self.config.min_similarity)
        index.add_all(chunks)
        self.build_count += 1
        return IndexSnapshot(
            index=index,
            fingerprint=fingerprint,
            built_at=self._clock(),
            document_count=len(documents),
            documents=tuple(documents),
        )

    def should_reinitialize(self, documents: Optional[list[Document]] = None) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return True
        if self._config_changed:
            logger.info("[RAGPipeline] Index configuration changed, rebuild needed")
            return True
        if documents is not None and self._fingerprint(documents) != snapshot.fingerprint:
            logger.info("[RAGPipeline] Document changes detected, rebuild needed")
            return True
        # A stale index only matters when there is a source to re-read
        if self._is_stale(snapshot) and (self.repository is not None or documents is not None):
            logger.info(
                f"[RAGPipeline] {self.config.stale_after_minutes:g} minutes elapsed since last build, "
                f"rebuild needed"
            )
            return True
        return False

    def reinitialize(self, documents: Optional[list[Document]] = None) -> None:
        """Rebuild regardless of fingerprint and staleness."""
        logger.info("[RAGPipeline] Forcing rebuild")
        self.initialize(documents, force=True)

    # --- Query ----------------------------------------------------------------

    @traceable(name="rag_query", run_type="chain")
    def query(
        self,
        question: str,
        documents: Optional[list[Document]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> QueryResult:
        """
        Retrieve, rerank and generate an answer for `question`.

        Args:
            question:     The student's question.
            documents:    Optional fresh corpus; triggers a rebuild if it
                          differs from the indexed one.
            cancel_token: Cancelling it abandons the generation wait and
                          raises QueryCancelledError.

        Returns:
            QueryResult with the answer and its source attributions.
        """
        logger.info(f"[RAGPipeline] Query: {question[:100]!r}")

        rebuilt = False
        if self.should_reinitialize(documents):
            try:
                rebuilt = self.initialize(documents)
            except RepositoryError as exc:
                if self._snapshot is None:
                    raise
                logger.warning(f"[RAGPipeline] Rebuild failed ({exc}); serving previous snapshot")

        snapshot = self._snapshot
        config = self.config
        result = QueryResult(question=question, response="", rebuilt_index=rebuilt)

        if snapshot is None or snapshot.index.size() == 0:
            logger.info("[RAGPipeline] Index is empty, answering without context")
            t0 = time.perf_counter()
            result.response = self.generator.generate([], question, cancel_token)
            result.generation_ms = (time.perf_counter() - t0) * 1000
            return self._finish(result, cancel_token)

        # -- 1. Retrieve --------------------------------------------------------
        t0 = time.perf_counter()
        candidates = snapshot.index.search(question, config.retrieval_top_k)
        result.retrieval_ms = (time.perf_counter() - t0) * 1000

        # -- 2. Rerank ----------------------------------------------------------
        t1 = time.perf_counter()
        reranked = self.reranker.rerank(question, candidates)
        result.rerank_ms = (time.perf_counter() - t1) * 1000

        # -- 3. Generate --------------------------------------------------------
        t2 = time.perf_counter()
        result.response = self.generator.generate(reranked, question, cancel_token)
        result.generation_ms = (time.perf_counter() - t2) * 1000

        result.sources = _attribute(reranked)
        return self._finish(result, cancel_token)

    def _finish(self, result: QueryResult, cancel_token: Optional[CancellationToken]) -> QueryResult:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        logger.info(
            f"[RAGPipeline] Complete | "
            f"retrieve={result.retrieval_ms:.0f}ms "
            f"rerank={result.rerank_ms:.0f}ms "
            f"generate={result.generation_ms:.0f}ms | "
            f"sources={[s.title for s in result.sources]}"
        )
        return result

    # --- Observability & configuration ----------------------------------------

    def status(self) -> PipelineStatus:
        snapshot = self._snapshot
        return PipelineStatus(
            ready=snapshot is not None,
            state=self.state.value,
            chunk_count=snapshot.index.size() if snapshot else 0,
            document_count=snapshot.document_count if snapshot else 0,
            last_build_time=snapshot.built_at if snapshot else None,
            fingerprint=snapshot.fingerprint if snapshot else None,
            build_count=self.build_count,
            config=self.config.model_dump(),
        )

    def update_config(self, **changes: Any) -> None:
        """
        Update chunk_size, chunk_overlap, retrieval_top_k, reranker_top_n
        (or any other PipelineConfig field).  Unknown keys raise a
        pydantic ValidationError.  Changes that affect indexing mark the
        index for rebuild on the next query.
        """
        with self._build_lock:
            old = self.config
            new = PipelineConfig.model_validate({**old.model_dump(), **changes})

            if (new.chunk_size, new.chunk_overlap) != (old.chunk_size, old.chunk_overlap):
                self.chunker = SentenceChunker(new.chunk_size, new.chunk_overlap)
            if any(getattr(new, key) != getattr(old, key) for key in _REBUILD_KEYS):
                self._config_changed = True

            self.reranker.top_n = new.reranker_top_n
            self.reranker.max_occurrences_per_token = new.max_occurrences_per_token
            self.config = new

        logger.info(f"[RAGPipeline] Configuration updated: {changes}")
