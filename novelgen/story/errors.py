"""
Generation error taxonomy.

Every failure coming out of a model provider is translated into one of
these, so the retry policy can decide without knowing the provider.

Retryable (transient):  RateLimitError, UpstreamServerError,
                        GenerationNetworkError, GenerationTimeoutError
Fatal:                  InvalidRequestError
Job-level only:         MalformedOutputError, ChapterGenerationError
"""

from typing import Optional


class GenerationError(Exception):
    """Base exception for all generation errors."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(GenerationError):
    """HTTP 429 from the provider."""

    retryable = True

    def __init__(self, message: str = "Rate limited by provider", status_code: int = 429):
        super().__init__(message, status_code)


class UpstreamServerError(GenerationError):
    """HTTP 5xx from the provider."""

    retryable = True


class GenerationNetworkError(GenerationError):
    """Connection reset, refused or dropped."""

    retryable = True


class GenerationTimeoutError(GenerationError):
    """The per-call timeout expired."""

    retryable = True


class InvalidRequestError(GenerationError):
    """HTTP 4xx other than 429: bad request, auth, unknown model."""

    retryable = False


class MalformedOutputError(GenerationError):
    """
    The model answered, but not in the expected shape.

    Not retried by the call layer; the job is requeued instead.
    """

    retryable = False


class ChapterGenerationError(GenerationError):
    """A chapter could not be produced within its attempt budget."""

    retryable = False


def classify_status_code(status_code: int, message: str) -> GenerationError:
    """Map an HTTP status code to the matching generation error."""
    if status_code == 429:
        return RateLimitError(message)
    if status_code >= 500:
        return UpstreamServerError(message, status_code)
    return InvalidRequestError(message, status_code)
