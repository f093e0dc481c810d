"""Shared fixtures: a scripted generation service, a fake clock and a small corpus."""
from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Iterable, Union

import pytest

from edurag.generation.generator import AnswerGenerator
from edurag.generation.retry import RetryPolicy
from edurag.repository import InMemoryDocumentRepository
from edurag.schemas import Document
from edurag.serving.pipeline import RAGPipeline

DEFAULT_ANSWER = (
    "A variable is a symbol that stands for an unknown value. "
    "In algebra we usually write it as a letter such as x."
)

Reply = Union[str, BaseException]


class FakeService:
    """
    TextGenerationService double.

    Replays `replies` in order (strings are returned, exceptions raised),
    then keeps answering with `default`.  Every prompt is recorded.
    """

    def __init__(self, replies: Iterable[Reply] = (), default: str = DEFAULT_ANSWER) -> None:
        self.replies = list(replies)
        self.default = default
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def complete(self, prompt: str) -> str:
        with self._lock:
            self.prompts.append(prompt)
            reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        return reply


class BlockingService(FakeService):
    """Blocks every call whose prompt contains `marker` until `release` is set."""

    def __init__(self, marker: str = "", default: str = DEFAULT_ANSWER) -> None:
        super().__init__(default=default)
        self.marker = marker
        self.started = threading.Event()
        self.release = threading.Event()

    def complete(self, prompt: str) -> str:
        if self.marker in prompt:
            self.started.set()
            self.release.wait(timeout=10)
        return super().complete(prompt)


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 9, 1, 8, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# --- Fixtures -----------------------------------------------------------------

@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def algebra_doc() -> Document:
    return Document(
        id="algebra-1",
        title="Algebra Basics",
        subject="Mathematics",
        content=(
            "Variables represent unknown values in algebra. "
            "A variable is a letter such as x. "
            "An equation states that two expressions are equal."
        ),
    )


@pytest.fixture
def documents(algebra_doc: Document) -> list[Document]:
    return [
        algebra_doc,
        Document(
            id="cells-1",
            title="Cell Structure",
            subject="Science",
            content=(
                "Biology is the science of living things. Every cell has a membrane. "
                "Energy for the cell comes from the mitochondria. "
                "An experiment with a microscope shows cell walls in plants."
            ),
        ),
        Document(
            id="revolution-1",
            title="The French Revolution",
            subject="History",
            content=(
                "The French Revolution began in 1789. Historians study letters and "
                "newspapers as evidence. Research into primary sources helps us "
                "understand how ordinary people experienced the period."
            ),
        ),
    ]


@pytest.fixture
def generator(service: FakeService, fast_retry: RetryPolicy):
    gen = AnswerGenerator(service, retry_policy=fast_retry, timeout_seconds=5.0, poll_interval=0.01)
    yield gen
    gen.close()


@pytest.fixture
def repository(documents: list[Document]) -> InMemoryDocumentRepository:
    return InMemoryDocumentRepository(documents)


@pytest.fixture
def pipeline(
    repository: InMemoryDocumentRepository,
    generator: AnswerGenerator,
    clock: FakeClock,
) -> RAGPipeline:
    return RAGPipeline(repository=repository, generator=generator, clock=clock)
