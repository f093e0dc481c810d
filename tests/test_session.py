"""Tests for latest-wins query sessions."""
from __future__ import annotations

import threading

import pytest

from edurag.errors import QueryCancelledError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.retry import RetryPolicy
from edurag.repository import InMemoryDocumentRepository
from edurag.schemas import Document
from edurag.serving.pipeline import RAGPipeline
from edurag.serving.session import QuerySession
from tests.conftest import BlockingService


@pytest.fixture
def blocking_service() -> BlockingService:
    service = BlockingService(marker="first question")
    yield service
    service.release.set()


@pytest.fixture
def session(blocking_service: BlockingService, documents: list[Document], fast_retry: RetryPolicy):
    generator = AnswerGenerator(blocking_service, retry_policy=fast_retry, timeout_seconds=5.0, poll_interval=0.01)
    pipeline = RAGPipeline(repository=InMemoryDocumentRepository(documents), generator=generator)
    pipeline.initialize()
    yield QuerySession(pipeline)
    generator.close()


def test_ask_publishes_latest(session: QuerySession) -> None:
    result = session.ask("What is a variable?")
    assert session.latest is result


def test_newer_question_supersedes_older(session: QuerySession, blocking_service: BlockingService) -> None:
    outcome: dict = {}

    def ask_first() -> None:
        try:
            outcome["result"] = session.ask("first question about a variable")
        except QueryCancelledError as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=ask_first)
    worker.start()
    assert blocking_service.started.wait(timeout=5)

    second = session.ask("second question about a variable")
    worker.join(timeout=5)

    assert isinstance(outcome.get("error"), QueryCancelledError)
    assert "result" not in outcome
    assert session.latest is second
    assert session.latest.question == "second question about a variable"


def test_cancel_in_flight_question(session: QuerySession, blocking_service: BlockingService) -> None:
    outcome: dict = {}

    def ask_first() -> None:
        try:
            session.ask("first question")
        except QueryCancelledError as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=ask_first)
    worker.start()
    assert blocking_service.started.wait(timeout=5)

    session.cancel()
    worker.join(timeout=5)

    assert isinstance(outcome.get("error"), QueryCancelledError)
    assert session.latest is None
