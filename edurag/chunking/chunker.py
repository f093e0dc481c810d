"""
EduRAG - Sentence Chunker
--------------------------
Splits one document's text into overlapping passages of bounded size.

Sentences are accumulated greedily until the next one would push the
chunk past `chunk_size` characters.  The following chunk is then seeded
with the last few words of the closed one (`chunk_overlap // 10` words)
so context that straddles a boundary is retrievable from both sides.

Documents whose content is an uploaded attachment, or which carry no
readable text, are represented by a short synthetic description built
from their title and subject.  Extraction never raises.
"""
from __future__ import annotations

import re

from loguru import logger

from edurag.chunking.schemas import Chunk
from edurag.schemas import Document
from edurag.utils.helpers import clean_text

# ── Constants ─────────────────────────────────────────────────────────────────

CHUNK_SIZE = 500          # Character budget per chunk
CHUNK_OVERLAP = 50        # Overlap budget; roughly one word per 10 characters

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")


def split_sentences(text: str) -> list[str]:
    """Split on `.`, `!` and `?`, keeping each terminator with its sentence."""
    sentences = (m.group().strip() for m in _SENTENCE_RE.finditer(text))
    return [s for s in sentences if s]


def describe_attachment(document: Document) -> str:
    return (
        f"Document Title: {document.title}\n"
        f"Subject: {document.subject}\n"
        f"This document contains educational content about {document.subject}."
    )


def describe_metadata(document: Document) -> str:
    return f'Document: "{document.title}" - Subject: {document.subject}'


# ── Main Chunker ──────────────────────────────────────────────────────────────

class SentenceChunker:
    """
    Deterministic sentence-window chunker.

    Usage:
        chunker = SentenceChunker(chunk_size=500, chunk_overlap=50)
        chunks = chunker.chunk(document)
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @property
    def overlap_words(self) -> int:
        return self.chunk_overlap // 10

    def extract_text(self, document: Document) -> str:
        """Plain text for a document, or a synthetic description when there is none."""
        if document.is_attachment:
            return describe_attachment(document)
        if document.content and document.content.strip():
            return clean_text(document.content)
        return describe_metadata(document)

    def split(self, text: str) -> list[str]:
        """Split text into chunk strings. Returns [] when there are no sentences."""
        pieces: list[str] = []
        current = ""

        for sentence in split_sentences(text):
            if current and len(current) + len(sentence) > self.chunk_size:
                pieces.append(current.strip())
                carried = current.split()[-self.overlap_words:] if self.overlap_words else []
                current = " ".join(carried + [sentence])
            else:
                current = f"{current} {sentence}" if current else sentence

        if current.strip():
            pieces.append(current.strip())
        return pieces

    def chunk(self, document: Document) -> list[Chunk]:
        """
        Chunk a Document.

        Args:
            document: The source document.

        Returns:
            Ordered list of Chunk objects (never empty).
        """
        pieces = self.split(self.extract_text(document))
        if not pieces:
            pieces = [describe_metadata(document)]

        chunks = [
            Chunk(
                doc_id=document.id,
                chunk_index=i,
                total_chunks=len(pieces),
                text=text,
                title=document.title,
                subject=document.subject,
            )
            for i, text in enumerate(pieces)
        ]
        logger.debug(
            f"[Chunker] {document.id[:12]} | {document.subject} | "
            f"{sum(len(p) for p in pieces)} chars -> {len(chunks)} chunk(s)"
        )
        return chunks

    def chunk_batch(self, documents: list[Document]) -> list[Chunk]:
        """Chunk a list of Documents. Returns flat list of all chunks."""
        all_chunks: list[Chunk] = []
        for document in documents:
            all_chunks.extend(self.chunk(document))
        return all_chunks
