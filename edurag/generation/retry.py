"""
Retry policy for text-generation calls.

The policy is plain configuration; `retrying()` turns it into a
tenacity controller.  Authentication failures and empty completions are
never retried: repeating the same request cannot fix them.
"""
from __future__ import annotations

import threading
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from edurag.errors import EmptyCompletionError, ServiceAuthError

NON_RETRYABLE: tuple[type[BaseException], ...] = (ServiceAuthError, EmptyCompletionError)


class RetryPolicy(BaseModel):
    """max_attempts counts the first call, so 1 means "no retries"."""

    max_attempts: int = Field(default=2, ge=1)
    base_delay: float = Field(default=2.0, ge=0.0)   # seconds; doubled per attempt
    max_delay: float = Field(default=30.0, ge=0.0)

    def is_retryable(self, exc: BaseException) -> bool:
        return not isinstance(exc, NON_RETRYABLE)

    def retrying(self, stop_event: Optional[threading.Event] = None) -> Retrying:
        """
        Build a tenacity controller.  Setting `stop_event` ends the retry
        loop: no further attempts are made and any backoff sleep is cut short.
        """
        stop = stop_after_attempt(self.max_attempts)
        extra: dict[str, Any] = {}
        if stop_event is not None:
            stop = stop | stop_when_event_set(stop_event)
            extra["sleep"] = stop_event.wait
        return Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=self.base_delay, min=self.base_delay, max=self.max_delay),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=_log_retry,
            reraise=True,
            **extra,
        )


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    delay = state.next_action.sleep if state.next_action else 0.0
    logger.warning(
        f"[Retry] Attempt {state.attempt_number} failed "
        f"({type(exc).__name__}: {exc}) -- retrying in {delay:.1f}s"
    )
