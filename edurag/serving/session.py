"""
Query Session
--------------
Latest-wins wrapper for interactive front ends: asking a new question
cancels the one still in flight, and only the newest question's result
is ever published as `latest`.
"""
from __future__ import annotations

import threading
from typing import Optional

from loguru import logger

from edurag.schemas import Document
from edurag.serving.pipeline import QueryResult, RAGPipeline
from edurag.utils.cancellation import CancellationToken


class QuerySession:
    def __init__(self, pipeline: RAGPipeline) -> None:
        self.pipeline = pipeline
        self.latest: Optional[QueryResult] = None
        self._lock = threading.Lock()
        self._current: Optional[CancellationToken] = None

    def ask(self, question: str, documents: Optional[list[Document]] = None) -> QueryResult:
        """
        Run `question` through the pipeline, superseding any earlier
        question.  Raises QueryCancelledError if a later ask() supersedes
        this one before it finishes.
        """
        token = CancellationToken()
        with self._lock:
            if self._current is not None:
                self._current.cancel("superseded by a newer question")
                logger.debug("[Session] Cancelled previous question")
            self._current = token

        try:
            result = self.pipeline.query(question, documents=documents, cancel_token=token)
        except BaseException:
            with self._lock:
                if self._current is token:
                    self._current = None
            raise

        with self._lock:
            if self._current is not token:
                token.raise_if_cancelled()
            self.latest = result
            self._current = None
        return result

    def cancel(self) -> None:
        with self._lock:
            if self._current is not None:
                self._current.cancel("cancelled by caller")
                self._current = None
