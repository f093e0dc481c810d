"""
Chunk schema - the atomic unit that gets embedded and indexed.

A Chunk traces back to its parent Document so every retrieval result
carries provenance for source attribution.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, computed_field


class Chunk(BaseModel):
    """
    A bounded span of one document's text.

    `chunk_id` is derived from (doc_id, chunk_index), so re-chunking the
    same document yields the same ids.
    """

    model_config = ConfigDict(frozen=True)

    doc_id: str
    chunk_index: int                    # Position within the document
    total_chunks: int
    text: str

    # Provenance (copied from the parent document for zero-join retrieval)
    title: str
    subject: str

    @computed_field
    @property
    def chunk_id(self) -> str:
        return f"{self.doc_id}-chunk-{self.chunk_index}"

    @property
    def metadata(self) -> dict[str, str]:
        return {"documentId": self.doc_id, "title": self.title, "subject": self.subject}
