"""
Retry Controller for generation jobs.

Job-level retry, layered above the call-level RetryPolicy:
- A failed attempt goes back to QUEUED while retry_count < max_retries
- Validation failures are never retried: the same data fails the same way
- Everything else (exhausted call retries, malformed model output,
  unexpected errors) is retried

What RetryController MUST NOT do:
- Execute jobs
- Sleep or schedule delays (the queue's FIFO order paces retries)
"""

import logging

from .entities import Job
from .errors import JobValidationError, ProjectNotFoundError
from .queue_manager import QueueManager


logger = logging.getLogger(__name__)

# Failures that can never succeed on a later attempt
NON_RETRYABLE_ERRORS = (JobValidationError, ProjectNotFoundError)


class RetryController:
    """Turns a job execution error into a requeue or a terminal failure."""

    def __init__(self, queue_manager: QueueManager):
        """
        Args:
            queue_manager: QueueManager that records the failure
        """
        self.queue_manager = queue_manager

    @staticmethod
    def should_retry(error: BaseException) -> bool:
        return not isinstance(error, NON_RETRYABLE_ERRORS)

    def on_job_failed(self, job: Job, error: BaseException) -> Job:
        """
        Record a failed attempt.

        Args:
            job: The job whose attempt failed
            error: What went wrong; its message is stored verbatim

        Returns:
            The job after the failure was recorded (QUEUED or FAILED)
        """
        should_retry = self.should_retry(error)
        message = str(error) or type(error).__name__

        logger.info(
            f"Retry evaluation for job {job.job_id}: "
            f"attempt {job.retry_count + 1}/{job.max_retries + 1}, "
            f"retryable={should_retry}"
        )

        return self.queue_manager.fail(job.job_id, message, should_retry=should_retry)
