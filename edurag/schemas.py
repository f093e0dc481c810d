"""
Core Pydantic schemas shared by every pipeline stage.

Documents are owned by the document repository and are never mutated
by the pipeline, hence frozen models.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Corpus -------------------------------------------------------------------

class Document(BaseModel):
    """
    An educational document as supplied by the document repository.

    `content` is either extractable text, an opaque attachment reference
    (a `data:` URI for uploaded files), or missing altogether.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    subject: str = "General"
    content: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_attachment(self) -> bool:
        return bool(self.content) and self.content.startswith("data:")


# --- Provenance ---------------------------------------------------------------

class SourceAttribution(BaseModel):
    """A document that backed a generated answer, with its scores."""

    document_id: str
    title: str
    subject: str
    similarity_score: float
    rerank_score: float


# --- Observability ------------------------------------------------------------

class PipelineStatus(BaseModel):
    """Read-only view of the pipeline state returned by RAGPipeline.status()."""

    ready: bool
    state: str
    chunk_count: int
    document_count: int
    last_build_time: Optional[datetime] = None
    fingerprint: Optional[str] = None
    build_count: int = 0
    config: dict[str, Any] = Field(default_factory=dict)
