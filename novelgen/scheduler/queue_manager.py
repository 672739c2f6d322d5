"""
Queue Manager for generation jobs.

- Creates jobs and hands out the oldest claimable one
- Records progress, completion and failure
- Decides requeue vs. terminal failure from the job's retry budget
- Deletes old terminal jobs

What QueueManager MUST NOT do:
- Execute jobs (Executor's responsibility)
- Call the generation backend
- Touch project documents beyond what the store exposes
"""

import logging
import os
from datetime import timedelta
from typing import Optional

from .entities import (
    Clock,
    Job,
    JobStatus,
    JobType,
    format_timestamp,
    utc_now,
)
from .errors import (
    ConcurrencyViolationError,
    InvalidOperationError,
    JobNotFoundError,
)
from .persistence import PersistenceAdapter


logger = logging.getLogger(__name__)


DEFAULT_MAX_RETRIES = int(os.getenv("JOB_MAX_RETRIES", "3"))
DEFAULT_PROJECT_JOB_LIMIT = 50

CANCELLED_ERROR = "cancelled"


class QueueManager:
    """
    Manages the generation job lifecycle.

    Key behaviors:
    - Ordering: created_at ASC, insertion order on ties (FIFO)
    - Claim: atomic QUEUED -> IN_PROGRESS, one winner per job
    - Failure: requeue while retry_count < max_retries, otherwise FAILED
    - Terminal jobs reject further complete/fail calls
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize QueueManager.

        Args:
            persistence: PersistenceAdapter for storage operations
            max_retries: Default retry budget for new jobs
            clock: Callable returning the current UTC datetime
        """
        self.persistence = persistence
        self.max_retries = max_retries
        self.clock = clock or persistence.clock or utc_now

    # =========================================================================
    # Job Insertion
    # =========================================================================

    def create(
        self,
        job_type: JobType,
        project_id: str,
        data: dict,
        max_retries: Optional[int] = None,
    ) -> Job:
        """
        Add a new job to the queue.

        Args:
            job_type: Kind of generation work
            project_id: Owning project
            data: Job payload (validated by the worker, not here)
            max_retries: Retry budget; defaults to the manager's setting

        Returns:
            The created Job (QUEUED, progress 0, retry_count 0)

        Raises:
            StorageError: If the store cannot be written
        """
        job = Job.create(
            job_type=job_type,
            project_id=project_id,
            data=data,
            max_retries=self.max_retries if max_retries is None else max_retries,
            clock=self.clock,
        )
        self.persistence.create_job(job)

        logger.info(
            f"Queued job {job.job_id} (type={job.job_type.value}, "
            f"project={project_id}, max_retries={job.max_retries})"
        )
        return job

    # =========================================================================
    # Claim / Progress / Completion
    # =========================================================================

    def claim_next(self) -> Optional[Job]:
        """
        Claim the oldest QUEUED job that still has attempts left.

        Returns:
            The claimed IN_PROGRESS job, or None if nothing is claimable
        """
        try:
            job = self.persistence.claim_next_job()
        except ConcurrencyViolationError as e:
            logger.warning(f"Lost claim race: {e}")
            return None

        if job is not None:
            logger.info(
                f"Claimed job {job.job_id} (type={job.job_type.value}, "
                f"attempt {job.retry_count + 1}/{job.max_retries + 1})"
            )
        return job

    def update_progress(
        self,
        job_id: str,
        progress: int,
        data: Optional[dict] = None,
    ) -> Job:
        """Raise a job's progress; lower values are ignored."""
        job = self.persistence.update_progress(job_id, progress, data)
        logger.debug(f"Job {job_id} progress: {job.progress}")
        return job

    def complete(self, job_id: str, result: dict) -> Job:
        """
        Mark an IN_PROGRESS job COMPLETED with its result.

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If the job is not IN_PROGRESS
        """
        job = self.persistence.complete_job(job_id, result)
        logger.info(f"Job completed: {job_id}")
        return job

    def fail(self, job_id: str, error: str, should_retry: bool = True) -> Job:
        """
        Record a job failure.

        If should_retry and retry_count < max_retries, the job goes back to
        QUEUED with retry_count + 1. Otherwise it becomes FAILED.

        A QUEUED job may only be failed with should_retry=False
        (operator force-fail).

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If the job is terminal
        """
        job = self.persistence.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        if job.is_terminal():
            raise InvalidOperationError(
                f"Cannot fail job {job_id}: already {job.status.value}"
            )

        requeue = should_retry and job.retry_count < job.max_retries
        allowed = (JobStatus.IN_PROGRESS,)
        if not should_retry:
            allowed = (JobStatus.IN_PROGRESS, JobStatus.QUEUED)

        updated = self.persistence.fail_job(
            job_id,
            error=error,
            requeue=requeue,
            allowed_statuses=allowed,
        )

        if requeue:
            logger.warning(
                f"Job {job_id} failed, requeued "
                f"(retry {updated.retry_count}/{updated.max_retries}): {error}"
            )
        else:
            logger.error(f"Job {job_id} failed permanently: {error}")

        return updated

    def cancel(self, job_id: str) -> Job:
        """
        Cancel a QUEUED job.

        Running jobs cannot be cancelled mid-call.

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If job is not QUEUED
        """
        job = self.persistence.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        if job.status != JobStatus.QUEUED:
            raise InvalidOperationError(
                f"Cannot cancel job in {job.status.value} status. "
                "Only QUEUED jobs can be cancelled."
            )

        return self.persistence.fail_job(
            job_id,
            error=CANCELLED_ERROR,
            requeue=False,
            allowed_statuses=(JobStatus.QUEUED,),
        )

    # =========================================================================
    # Job Retrieval
    # =========================================================================

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        return self.persistence.get_job(job_id)

    def list_for_project(
        self,
        project_id: str,
        limit: int = DEFAULT_PROJECT_JOB_LIMIT,
    ) -> list[Job]:
        """List a project's jobs, newest first."""
        return self.persistence.list_jobs_for_project(project_id, limit)

    def get_stats(self) -> dict[str, int]:
        """Job counts by status."""
        return self.persistence.count_jobs_by_status()

    # =========================================================================
    # Cleanup
    # =========================================================================

    def cleanup(self, older_than_days: int = 7) -> int:
        """
        Delete COMPLETED and FAILED jobs not updated for older_than_days.

        QUEUED and IN_PROGRESS jobs are never deleted, whatever their age.

        Returns:
            Number of deleted jobs
        """
        if older_than_days < 0:
            raise ValueError("older_than_days must not be negative")

        cutoff = format_timestamp(self.clock() - timedelta(days=older_than_days))
        deleted = self.persistence.delete_terminal_jobs_before(cutoff)

        logger.info(f"Cleaned up {deleted} jobs older than {older_than_days} days")
        return deleted
