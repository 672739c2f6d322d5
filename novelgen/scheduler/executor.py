"""
Executor for generation jobs.

- Maps every JobType to exactly one JobHandler (checked at construction)
- Validates the job payload before any handler runs
- Gives handlers a ProgressReporter that writes to the store and the
  progress hub together

What Executor MUST NOT do:
- Claim, complete or fail jobs (Dispatcher / QueueManager)
- Decide retry policy (RetryController's responsibility)
"""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from ..infra.progress_hub import ProgressEvent, ProgressStreamHub
from .entities import Job, JobData, JobType
from .queue_manager import QueueManager


logger = logging.getLogger(__name__)


class ProgressReporter:
    """
    Progress sink handed to a running handler.

    Progress is persisted first (the store keeps it monotonic), then the
    stored value is published, so subscribers never see it go backwards.
    """

    def __init__(
        self,
        job: Job,
        queue_manager: QueueManager,
        hub: Optional[ProgressStreamHub] = None,
    ):
        self.job = job
        self.queue_manager = queue_manager
        self.hub = hub

    def report(
        self,
        progress: int,
        stage: str,
        message: str = "",
        current_chapter: Optional[int] = None,
        total_chapters: Optional[int] = None,
        data: Optional[dict] = None,
    ) -> int:
        """
        Record progress for the running job.

        Returns:
            The stored progress value (never lower than before)
        """
        updated = self.queue_manager.update_progress(self.job.job_id, progress, data)
        self.job = updated
        self.publish(
            stage,
            message,
            current_chapter=current_chapter,
            total_chapters=total_chapters,
        )
        return updated.progress

    def publish(
        self,
        stage: str,
        message: str = "",
        progress: Optional[int] = None,
        current_chapter: Optional[int] = None,
        total_chapters: Optional[int] = None,
    ) -> None:
        """Publish an event without touching the store."""
        if self.hub is None:
            return
        self.hub.publish(ProgressEvent(
            job_id=self.job.job_id,
            stage=stage,
            progress=self.job.progress if progress is None else progress,
            message=message,
            current_chapter=current_chapter,
            total_chapters=total_chapters,
        ))


class JobHandler(ABC):
    """
    Abstract base class for job type handlers.

    Each JobType (outline, chapter) implements this interface.
    """

    job_type: JobType

    @abstractmethod
    def execute(self, job: Job, payload: JobData, reporter: ProgressReporter) -> dict:
        """
        Run the job.

        Args:
            job: The claimed job
            payload: Validated, typed job data
            reporter: Progress sink

        Returns:
            Result document stored on the completed job

        Raises:
            Any exception; the Dispatcher turns it into a job failure
        """
        ...

    def on_failed(self, job: Job) -> None:
        """
        Called once the job has failed terminally.

        Default does nothing; handlers repair their project state here.
        """
        return None


class Executor:
    """Dispatches a claimed job to the handler registered for its type."""

    def __init__(self, handlers: Mapping[JobType, JobHandler]):
        """
        Args:
            handlers: One handler per JobType

        Raises:
            ValueError: If any JobType has no handler
        """
        missing = [job_type.value for job_type in JobType if job_type not in handlers]
        if missing:
            raise ValueError(f"No handler registered for job types: {', '.join(missing)}")

        self.handlers = dict(handlers)

    def handler_for(self, job_type: JobType) -> JobHandler:
        return self.handlers[job_type]

    def execute(self, job: Job, reporter: ProgressReporter) -> dict:
        """
        Validate the payload and run the matching handler.

        Raises:
            JobValidationError: If the payload is missing required data
        """
        payload = job.payload()
        handler = self.handler_for(job.job_type)

        logger.info(f"Executing job {job.job_id} (type={job.job_type.value})")
        return handler.execute(job, payload, reporter)

    def on_job_failed(self, job: Job) -> None:
        """Let the handler repair project state after a terminal failure."""
        try:
            self.handler_for(job.job_type).on_failed(job)
        except Exception as e:
            logger.error(
                f"Error repairing project state for failed job {job.job_id}: {e}",
                exc_info=True,
            )
