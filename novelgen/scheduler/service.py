"""
Novel Generation Service - main entry point for job orchestration.

This service wires all components together:
- PersistenceAdapter (jobs + projects)
- QueueManager (job lifecycle)
- Executor with the outline and chapter handlers
- RetryController (job-level retry)
- Dispatcher (generation worker)
- RecoveryManager (reconcile on startup)
- ProgressStreamHub (live progress)

Usage:
    service = NovelGenerationService.create(db_path)
    project = service.create_project(...)
    job_id = service.enqueue_outline_job(project.project_id, ...)
    service.start()              # background poll loop
    # or: service.process_next_job()  from a serverless trigger
    service.stop()
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..infra.progress_hub import ProgressEvent, ProgressStream, ProgressStreamHub
from .dispatcher import Dispatcher, ProcessResult, WORKER_POLL_INTERVAL_SECONDS
from .entities import (
    Clock,
    JobType,
    JobView,
    Project,
    ProjectStatus,
    utc_now,
)
from .errors import InvalidOperationError, JobNotFoundError, ProjectNotFoundError
from .executor import Executor
from .persistence import PersistenceAdapter
from .queue_manager import DEFAULT_MAX_RETRIES, DEFAULT_PROJECT_JOB_LIMIT, QueueManager
from .recovery import RecoveryManager
from .retry_controller import RetryController


logger = logging.getLogger(__name__)


NOVELGEN_DB_PATH = os.getenv("NOVELGEN_DB_PATH", "data/novelgen.db")
DEFAULT_CLEANUP_DAYS = 7


class NovelGenerationService:
    """
    Coordinates the job orchestration components.

    Provides:
    - Component initialization and wiring
    - Startup with reconciliation
    - Graceful shutdown
    - API-friendly methods for projects and jobs
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        queue_manager: QueueManager,
        executor: Executor,
        retry_controller: RetryController,
        dispatcher: Dispatcher,
        recovery_manager: RecoveryManager,
        progress_hub: ProgressStreamHub,
    ):
        """
        Initialize the service with all components.

        Use NovelGenerationService.create() for convenient construction.
        """
        self.persistence = persistence
        self.queue_manager = queue_manager
        self.executor = executor
        self.retry_controller = retry_controller
        self.dispatcher = dispatcher
        self.recovery_manager = recovery_manager
        self.progress_hub = progress_hub

        self._started = False

    @classmethod
    def create(
        cls,
        db_path: str | Path = NOVELGEN_DB_PATH,
        client=None,
        poll_interval: float = WORKER_POLL_INTERVAL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        progress_hub: Optional[ProgressStreamHub] = None,
        clock: Optional[Clock] = None,
        **chapter_options,
    ) -> "NovelGenerationService":
        """
        Create a service with all components wired together.

        Args:
            db_path: Path to SQLite database
            client: Text generator; a GenerationClient from environment when omitted
            poll_interval: Worker poll interval in seconds
            max_retries: Default job-level retry budget
            progress_hub: Shared hub; a new one when omitted
            clock: Callable returning the current UTC datetime
            **chapter_options: Passed to ChapterJobHandler (variance,
                max_attempts, max_expansions, prompt_config)

        Returns:
            Configured NovelGenerationService
        """
        # Imported here so the scheduler package does not import the story package at load time
        from ..story.api_client import GenerationClient
        from ..story.generator import ChapterJobHandler, OutlineJobHandler

        clock = clock or utc_now
        persistence = PersistenceAdapter(db_path, clock=clock)
        queue_manager = QueueManager(persistence, max_retries=max_retries, clock=clock)

        if client is None:
            client = GenerationClient()

        executor = Executor({
            JobType.OUTLINE_GENERATION: OutlineJobHandler(client, persistence),
            JobType.CHAPTER_GENERATION: ChapterJobHandler(
                client, persistence, clock=clock, **chapter_options
            ),
        })

        retry_controller = RetryController(queue_manager)
        hub = progress_hub or ProgressStreamHub()

        dispatcher = Dispatcher(
            queue_manager=queue_manager,
            executor=executor,
            retry_controller=retry_controller,
            progress_hub=hub,
            poll_interval=poll_interval,
        )

        recovery_manager = RecoveryManager(
            persistence=persistence,
            queue_manager=queue_manager,
            executor=executor,
            clock=clock,
        )

        return cls(
            persistence=persistence,
            queue_manager=queue_manager,
            executor=executor,
            retry_controller=retry_controller,
            dispatcher=dispatcher,
            recovery_manager=recovery_manager,
            progress_hub=hub,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, run_reconcile: bool = True, blocking: bool = False) -> dict:
        """
        Start the worker.

        Args:
            run_reconcile: Whether to reconcile stale/orphaned jobs first
            blocking: Whether to block on the poll loop

        Returns:
            Reconciliation statistics if reconcile was run
        """
        if self._started:
            raise RuntimeError("Service already started")

        logger.info("Starting novel generation service...")

        stats = {}
        if run_reconcile:
            stats = self.reconcile()

        self.progress_hub.start()
        self._started = True
        self.dispatcher.start(blocking=blocking)

        logger.info("Novel generation service started")
        return stats

    def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the worker gracefully.

        Waits for the current job to complete (no preemption).
        """
        if not self._started:
            return

        logger.info("Stopping novel generation service...")
        self.dispatcher.stop(timeout=timeout)
        self.progress_hub.stop()
        self._started = False
        logger.info("Novel generation service stopped")

    @property
    def is_running(self) -> bool:
        return self._started and self.dispatcher.is_running()

    def reconcile(self) -> dict:
        """Force-fail stale jobs and requeue orphaned ones. Idempotent."""
        return self.recovery_manager.reconcile()

    # =========================================================================
    # Projects
    # =========================================================================

    def create_project(
        self,
        title: str,
        premise: str,
        genre: str,
        subgenre: str,
        chapter_count: int,
        target_word_count: int,
    ) -> Project:
        """Create a project in SETUP status."""
        if chapter_count < 1:
            raise ValueError("chapter_count must be at least 1")
        if target_word_count < 1:
            raise ValueError("target_word_count must be positive")

        project = Project.create(
            title=title,
            premise=premise,
            genre=genre,
            subgenre=subgenre,
            chapter_count=chapter_count,
            target_word_count=target_word_count,
            clock=self.persistence.clock,
        )
        self.persistence.create_project(project)
        logger.info(f"Created project {project.project_id}: {title}")
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.persistence.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def list_projects(self, limit: int = 100) -> list[Project]:
        return self.persistence.list_projects(limit)

    # =========================================================================
    # Jobs
    # =========================================================================

    def enqueue_outline_job(
        self,
        project_id: str,
        premise: str,
        genre: str,
        subgenre: str,
        chapter_count: int,
    ) -> str:
        """
        Queue outline generation for a project.

        The stored outline replaces the project's chapter_count, so a
        different chapter_count here re-plans the novel. Only allowed
        before any chapter is written.

        Returns:
            The new job id

        Raises:
            ProjectNotFoundError: If project doesn't exist
            InvalidOperationError: The project already has chapters, or
                another job for it is queued or in progress
        """
        if chapter_count < 1:
            raise ValueError("chapter_count must be at least 1")

        project = self.get_project(project_id)
        if project.chapters:
            raise InvalidOperationError(
                f"Project {project_id} already has chapters; its outline is fixed"
            )
        if self.persistence.has_active_job_for_project(project_id):
            raise InvalidOperationError(
                f"Project {project_id} already has a job queued or in progress"
            )

        job = self.queue_manager.create(
            JobType.OUTLINE_GENERATION,
            project_id,
            {
                "premise": premise,
                "genre": genre,
                "subgenre": subgenre,
                "chapter_count": chapter_count,
            },
        )
        return job.job_id

    def enqueue_chapter_job(
        self,
        project_id: str,
        chapter_number: int,
        premise: str,
        outline: list[str],
        previous_chapter_texts: list[str],
        target_word_count: int,
        genre: str,
        subgenre: str,
    ) -> str:
        """
        Queue generation of one chapter.

        Returns:
            The new job id
        """
        self.get_project(project_id)
        job = self.queue_manager.create(
            JobType.CHAPTER_GENERATION,
            project_id,
            {
                "chapter_number": chapter_number,
                "premise": premise,
                "outline": list(outline),
                "previous_chapter_texts": list(previous_chapter_texts),
                "target_word_count": target_word_count,
                "genre": genre,
                "subgenre": subgenre,
            },
        )
        return job.job_id

    def enqueue_next_chapter(self, project_id: str) -> str:
        """
        Queue the project's next chapter, built from its stored state.

        Chapters are strictly sequential: nothing is queued while the
        project still has a QUEUED or IN_PROGRESS job.

        Raises:
            ProjectNotFoundError: If project doesn't exist
            InvalidOperationError: No outline yet, all chapters written, or
                another job for the project is still active
        """
        project = self.get_project(project_id)

        if not project.outline:
            raise InvalidOperationError(f"Project {project_id} has no outline yet")
        if project.is_fully_drafted():
            raise InvalidOperationError(f"Project {project_id} has all chapters already")
        if self.persistence.has_active_job_for_project(project_id):
            raise InvalidOperationError(
                f"Project {project_id} already has a job queued or in progress"
            )

        job_id = self.enqueue_chapter_job(
            project_id=project_id,
            chapter_number=project.next_chapter_number,
            premise=project.premise,
            outline=project.outline,
            previous_chapter_texts=[chapter.content for chapter in project.chapters],
            target_word_count=project.target_word_count,
            genre=project.genre,
            subgenre=project.subgenre,
        )
        self.persistence.update_project_status(project_id, ProjectStatus.DRAFTING)
        return job_id

    def process_next_job(self) -> ProcessResult:
        """Run one job if any is queued (serverless trigger)."""
        return self.dispatcher.process_next_job()

    def get_job(self, job_id: str) -> Optional[JobView]:
        """Caller view of a job, or None if it doesn't exist."""
        job = self.queue_manager.get_job(job_id)
        return job.to_view() if job is not None else None

    def list_project_jobs(
        self,
        project_id: str,
        limit: int = DEFAULT_PROJECT_JOB_LIMIT,
    ) -> list[JobView]:
        return [job.to_view() for job in self.queue_manager.list_for_project(project_id, limit)]

    def cancel_job(self, job_id: str) -> JobView:
        """Cancel a QUEUED job."""
        job = self.queue_manager.cancel(job_id)
        self.executor.on_job_failed(job)
        self.progress_hub.publish(ProgressEvent(
            job_id=job.job_id,
            stage="failed",
            progress=job.progress,
            message=job.error or "cancelled",
        ))
        return job.to_view()

    def get_progress_stream(self, job_id: str) -> ProgressStream:
        """
        Subscribe/unsubscribe handle for a job's live progress.

        Raises:
            JobNotFoundError: If job doesn't exist
        """
        if self.queue_manager.get_job(job_id) is None:
            raise JobNotFoundError(job_id)
        return self.progress_hub.get_stream(job_id)

    def cleanup_old_jobs(self, older_than_days: int = DEFAULT_CLEANUP_DAYS) -> int:
        """Delete terminal jobs not updated for older_than_days."""
        return self.queue_manager.cleanup(older_than_days)

    def get_queue_stats(self) -> dict[str, int]:
        return self.queue_manager.get_stats()

    def get_worker_status(self) -> dict:
        return self.dispatcher.get_status()
