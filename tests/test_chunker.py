"""Tests for sentence-window chunking."""
from __future__ import annotations

import pytest

from edurag.chunking.chunker import SentenceChunker, split_sentences
from edurag.schemas import Document


def _long_document(sentences: int = 10) -> Document:
    content = " ".join(
        f"Sentence number {i} talks about learning and practice in detail." for i in range(sentences)
    )
    return Document(id="long-1", title="Long Notes", subject="English", content=content)


class TestSplitSentences:
    def test_keeps_terminators(self) -> None:
        assert split_sentences("One. Two! Three?") == ["One.", "Two!", "Three?"]

    def test_text_without_terminator_is_one_sentence(self) -> None:
        assert split_sentences("just some words") == ["just some words"]

    def test_blank_text(self) -> None:
        assert split_sentences("   ") == []


class TestSentenceChunker:
    def test_short_document_is_single_chunk(self, algebra_doc: Document) -> None:
        chunks = SentenceChunker().chunk(algebra_doc)

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.chunk_id == "algebra-1-chunk-0"
        assert chunk.total_chunks == 1
        assert chunk.title == "Algebra Basics"
        assert chunk.subject == "Mathematics"
        assert "A variable is a letter such as x." in chunk.text

    def test_chunk_metadata(self, algebra_doc: Document) -> None:
        chunk = SentenceChunker().chunk(algebra_doc)[0]
        assert chunk.metadata == {
            "documentId": "algebra-1",
            "title": "Algebra Basics",
            "subject": "Mathematics",
        }

    def test_long_document_is_split_and_covered(self) -> None:
        document = _long_document()
        chunks = SentenceChunker(chunk_size=200, chunk_overlap=50).chunk(document)

        assert len(chunks) > 1
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)
        for i in range(10):
            sentence = f"Sentence number {i} talks about learning and practice in detail."
            assert any(sentence in c.text for c in chunks), sentence

    def test_next_chunk_starts_with_overlap_words(self) -> None:
        chunks = SentenceChunker(chunk_size=200, chunk_overlap=50).chunk(_long_document())

        # chunk_overlap // 10 words are carried over
        carried = " ".join(chunks[0].text.split()[-5:])
        assert chunks[1].text.startswith(carried)

    def test_zero_overlap_carries_nothing(self) -> None:
        chunks = SentenceChunker(chunk_size=200, chunk_overlap=0).chunk(_long_document())
        assert chunks[1].text.startswith("Sentence number")

    def test_attachment_is_described(self) -> None:
        document = Document(
            id="pdf-1",
            title="Recursion Notes",
            subject="Computer Science",
            content="data:application/pdf;base64,JVBERi0xLjQK",
        )
        chunks = SentenceChunker().chunk(document)

        assert len(chunks) == 1
        assert "Document Title: Recursion Notes" in chunks[0].text
        assert "educational content about Computer Science" in chunks[0].text
        assert "base64" not in chunks[0].text

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_missing_content_uses_metadata(self, content) -> None:
        document = Document(id="m-1", title="Mystery", subject="History", content=content)
        chunks = SentenceChunker().chunk(document)

        assert len(chunks) == 1
        assert chunks[0].text == 'Document: "Mystery" - Subject: History'

    def test_chunking_is_deterministic(self, documents: list[Document]) -> None:
        chunker = SentenceChunker()
        first = chunker.chunk_batch(documents)
        second = chunker.chunk_batch(documents)

        assert [c.chunk_id for c in first] == [c.chunk_id for c in second]
        assert [c.text for c in first] == [c.text for c in second]
        assert {c.doc_id for c in first} == {d.id for d in documents}

    @pytest.mark.parametrize("size, overlap", [(0, 50), (-1, 0), (500, -5)])
    def test_invalid_parameters(self, size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            SentenceChunker(chunk_size=size, chunk_overlap=overlap)
