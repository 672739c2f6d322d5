"""
Call-level retry policy for generation requests.

Transient provider failures (429, 5xx, network, timeout) are retried with
exponential backoff. Anything else is raised at once and left to the
job-level retry in the queue.

Backoff before retry n (0-based attempt that just failed):
    delay = min(BASE_DELAY * 2 ** attempt, MAX_DELAY)
Example with defaults: 1s -> 2s, then the final attempt, no sleep after it.
"""

import logging
import os
import time
from typing import Callable, Optional, TypeVar

from .errors import GenerationError


logger = logging.getLogger("novelgen")

T = TypeVar("T")

GENERATION_MAX_RETRIES = int(os.getenv("GENERATION_MAX_RETRIES", "3"))
GENERATION_BASE_DELAY_MS = int(os.getenv("GENERATION_BASE_DELAY_MS", "1000"))
GENERATION_MAX_DELAY_MS = int(os.getenv("GENERATION_MAX_DELAY_MS", "30000"))


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether an error is worth another call.

    Provider adapters translate their exceptions into GenerationError
    subclasses; plain socket-level errors are also treated as transient.
    """
    if isinstance(error, GenerationError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))


class RetryPolicy:
    """
    Explicit attempt / delay / sleep loop.

    The sleep function is injectable so tests can record delays instead
    of waiting.
    """

    def __init__(
        self,
        max_retries: int = GENERATION_MAX_RETRIES,
        base_delay_ms: int = GENERATION_BASE_DELAY_MS,
        max_delay_ms: int = GENERATION_MAX_DELAY_MS,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            max_retries: Total attempts per call (at least 1)
            base_delay_ms: Delay before the first retry
            max_delay_ms: Upper bound for any single delay
            sleep: Called with seconds to wait; defaults to time.sleep
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.sleep = sleep or time.sleep

    def compute_delay_ms(self, attempt: int) -> int:
        """Backoff in milliseconds after the given 0-based attempt."""
        return min(self.base_delay_ms * (2 ** attempt), self.max_delay_ms)

    def call(self, operation: Callable[[], T], description: str = "generation call") -> T:
        """
        Run operation, retrying transient failures.

        Returns:
            Whatever operation returns

        Raises:
            The last error once attempts are exhausted, or the first
            non-retryable error immediately
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_retries):
            try:
                return operation()
            except Exception as e:
                last_error = e
                if not is_retryable(e):
                    logger.error(f"[Retry] {description} failed with non-retryable error: {e}")
                    raise

                logger.warning(
                    f"[Retry] {description} failed "
                    f"(attempt {attempt + 1}/{self.max_retries}): {e}"
                )

            if attempt < self.max_retries - 1:
                delay_ms = self.compute_delay_ms(attempt)
                logger.info(f"[Retry] Waiting {delay_ms}ms before retry")
                self.sleep(delay_ms / 1000.0)

        logger.error(f"[Retry] {description} failed after {self.max_retries} attempts")
        raise last_error
