"""
RAG Generator
--------------
Renders the answer prompt from reranked chunks and calls the
text-generation service.

The generator is the failure boundary for generation: timeouts,
transport errors, auth and rate-limit failures, non-2xx responses and
empty completions all become a deterministic study-guidance fallback
that quotes the question.  Nothing from the service reaches the caller
as an exception.  The one exception that does escape is
QueryCancelledError, raised when the caller cancels.

The service call runs on a worker thread so the wait is bounded by
`timeout_seconds` even if a service ignores its own timeout, and so a
cancellation can stop the wait immediately.  A late result from an
abandoned call is discarded.
"""
from __future__ import annotations

import threading
import time
from concurrent import futures
from typing import Optional

from langsmith import traceable
from loguru import logger

from edurag.embedding.vector_index import RetrievalCandidate
from edurag.errors import (
    EmptyCompletionError,
    GenerationError,
    GenerationTimeoutError,
    QueryCancelledError,
)
from edurag.generation.prompts import (
    ANSWER_PROMPT,
    CONTEXT_DELIMITER,
    CONTEXT_ENTRY,
    FALLBACK_RESPONSE,
    NO_CONTEXT,
    SHORT_ANSWER_FOLLOW_UP,
)
from edurag.generation.retry import RetryPolicy
from edurag.generation.services import TextGenerationService
from edurag.utils.cancellation import CancellationToken

GENERATION_TIMEOUT = 30.0
SHORT_ANSWER_CHARS = 50


def build_context(chunks: list[RetrievalCandidate]) -> str:
    """Concatenate chunk texts, each prefixed with its document's subject and title."""
    if not chunks:
        return NO_CONTEXT
    return CONTEXT_DELIMITER.join(
        CONTEXT_ENTRY.format(
            index=i,
            subject=c.chunk.subject or "General",
            title=c.chunk.title or "Unknown Document",
            text=c.chunk.text,
        )
        for i, c in enumerate(chunks, start=1)
    )


def build_prompt(chunks: list[RetrievalCandidate], question: str) -> str:
    return ANSWER_PROMPT.format(context=build_context(chunks), question=question)


def fallback_response(question: str) -> str:
    return FALLBACK_RESPONSE.format(question=question)


class AnswerGenerator:
    """
    Grounded answer synthesis over any TextGenerationService.

    Args:
        service:         The text-generation backend.
        retry_policy:    Retry configuration for the service call.
        timeout_seconds: Upper bound on the total wait, retries included.
        poll_interval:   How often a pending call checks for cancellation.
    """

    def __init__(
        self,
        service: TextGenerationService,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = GENERATION_TIMEOUT,
        poll_interval: float = 0.1,
        max_workers: int = 4,
    ) -> None:
        self.service = service
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self._executor = futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="edurag-generate"
        )
        self.fallback_count: int = 0

    @traceable(name="generate", run_type="llm")
    def generate(
        self,
        chunks: list[RetrievalCandidate],
        question: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """
        Answer `question` from the reranked chunks.

        Returns:
            The service's answer, or the fallback text on any service failure.

        Raises:
            QueryCancelledError: if cancel_token is cancelled while waiting.
        """
        prompt = build_prompt(chunks, question)
        logger.debug(
            f"[Generator] {type(self.service).__name__} | {len(chunks)} chunks | "
            f"question={question[:60]!r}"
        )

        try:
            answer = self.complete(prompt, cancel_token)
        except QueryCancelledError:
            raise
        except GenerationError as exc:
            self.fallback_count += 1
            logger.warning(f"[Generator] {type(exc).__name__}: {exc} -- using fallback answer")
            return fallback_response(question)

        if len(answer) < SHORT_ANSWER_CHARS:
            answer += SHORT_ANSWER_FOLLOW_UP
        logger.info(f"[Generator] Done | {len(answer)} chars")
        return answer

    # --- Service call ---------------------------------------------------------

    def _complete_once(self, prompt: str, abandoned: threading.Event) -> str:
        if abandoned.is_set():
            raise GenerationTimeoutError("call abandoned before this attempt")
        text = self.service.complete(prompt)
        if not text or not text.strip():
            raise EmptyCompletionError("service returned no text")
        return text.strip()

    def _complete_with_retry(self, prompt: str, abandoned: threading.Event) -> str:
        return self.retry_policy.retrying(stop_event=abandoned)(self._complete_once, prompt, abandoned)

    def complete(self, prompt: str, cancel_token: Optional[CancellationToken] = None) -> str:
        """
        Time-bounded, retried service call with no fallback.

        Once the caller stops waiting, the background retry loop is told to
        give up; an attempt already inside the service runs to completion
        and its result is discarded.

        Raises:
            GenerationError: on any service failure or when the wait times out.
            QueryCancelledError: if cancel_token is cancelled while waiting.
        """
        abandoned = threading.Event()
        future = self._executor.submit(self._complete_with_retry, prompt, abandoned)
        deadline = time.monotonic() + self.timeout_seconds

        while True:
            if cancel_token is not None and cancel_token.cancelled:
                abandoned.set()
                future.cancel()
                logger.info("[Generator] Cancelled while waiting on the service; result will be discarded")
                cancel_token.raise_if_cancelled()

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                abandoned.set()
                future.cancel()
                raise GenerationTimeoutError(f"no answer within {self.timeout_seconds:.1f}s")

            done, _ = futures.wait([future], timeout=min(self.poll_interval, remaining))
            if done:
                try:
                    return future.result()
                except GenerationError:
                    raise
                except Exception as exc:
                    raise GenerationError(f"unexpected service failure: {type(exc).__name__}: {exc}") from exc

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
