"""
Exception taxonomy for the EduRAG pipeline.

Only RepositoryError is expected to escape the public pipeline API.
Every GenerationError is caught at the generator boundary and turned
into a fallback answer; the subclasses exist so logs can say *why*.
"""
from __future__ import annotations


class EduRAGError(Exception):
    """Base class for all pipeline errors."""


# --- Document repository ------------------------------------------------------

class RepositoryError(EduRAGError):
    """The document repository could not be read."""


# --- Text generation service --------------------------------------------------

class GenerationError(EduRAGError):
    """A text-generation call failed."""


class GenerationTimeoutError(GenerationError):
    """The service did not answer within its time budget."""


class ServiceAuthError(GenerationError):
    """Credentials were missing or rejected (401 / 403). Never retried."""


class RateLimitError(GenerationError):
    """The service asked us to slow down (429)."""


class TransportError(GenerationError):
    """Network-level failure: DNS, connection reset, TLS, ..."""


class ServiceResponseError(GenerationError):
    """The service answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyCompletionError(GenerationError):
    """The service answered but produced no text."""


# --- Structured output --------------------------------------------------------

class OutputParseError(EduRAGError):
    """Model output did not contain data matching the expected schema."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


# --- Queries ------------------------------------------------------------------

class QueryCancelledError(EduRAGError):
    """The caller cancelled the query (or a newer query superseded it)."""
