"""
Reconciliation tests.

- Jobs older than the staleness window are force-failed with "timeout"
- IN_PROGRESS jobs with no update for the orphan window are requeued
  through the normal retry path
- Running reconcile twice changes nothing the second time
"""

import pytest

from novelgen.scheduler import (
    JobStatus,
    JobType,
    PersistenceAdapter,
    ProjectStatus,
    QueueManager,
)
from novelgen.scheduler.recovery import ORPHAN_ERROR, STALE_ERROR, RecoveryManager


MINUTE = 60
HOUR = 3600


@pytest.fixture
def recovery_manager(persistence: PersistenceAdapter, queue_manager: QueueManager, mock_clock):
    return RecoveryManager(
        persistence,
        queue_manager,
        staleness_hours=24,
        orphan_after_minutes=15,
        clock=mock_clock,
    )


class TestOrphanedJobs:
    """Workers that vanished mid-job."""

    def test_quiet_in_progress_job_is_requeued(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        queue_manager.claim_next()
        mock_clock.tick(16 * MINUTE)

        stats = recovery_manager.reconcile()

        assert stats["orphans_requeued"] == 1
        recovered = queue_manager.get_job(job.job_id)
        assert recovered.status == JobStatus.QUEUED
        assert recovered.retry_count == 1
        assert recovered.error == ORPHAN_ERROR

    def test_recently_updated_job_is_left_alone(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        queue_manager.claim_next()
        mock_clock.tick(10 * MINUTE)
        queue_manager.update_progress(job.job_id, 50)
        mock_clock.tick(10 * MINUTE)

        stats = recovery_manager.reconcile()

        assert stats["orphans_requeued"] == 0
        assert queue_manager.get_job(job.job_id).status == JobStatus.IN_PROGRESS

    def test_orphan_without_budget_fails(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job(max_retries=0)
        queue_manager.claim_next()
        mock_clock.tick(20 * MINUTE)

        stats = recovery_manager.reconcile()

        assert stats["orphans_failed"] == 1
        assert queue_manager.get_job(job.job_id).status == JobStatus.FAILED

    def test_queued_jobs_are_not_orphans(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        mock_clock.tick(2 * HOUR)

        stats = recovery_manager.reconcile()

        assert stats["orphans_requeued"] == 0
        assert queue_manager.get_job(job.job_id).status == JobStatus.QUEUED


class TestStaleJobs:
    """Jobs past the staleness window."""

    def test_stale_queued_job_is_force_failed(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        mock_clock.tick(25 * HOUR)

        stats = recovery_manager.reconcile()

        assert stats["stale_failed"] == 1
        failed = queue_manager.get_job(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert failed.error == STALE_ERROR
        assert failed.retry_count == 0

    def test_stale_in_progress_job_fails_without_retry(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        queue_manager.claim_next()
        mock_clock.tick(25 * HOUR)

        stats = recovery_manager.reconcile()

        assert stats["stale_failed"] == 1
        assert stats["orphans_requeued"] == 0
        assert queue_manager.get_job(job.job_id).status == JobStatus.FAILED
        assert queue_manager.get_job(job.job_id).error == STALE_ERROR

    def test_terminal_jobs_are_ignored(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        job = create_job()
        queue_manager.claim_next()
        queue_manager.complete(job.job_id, {"outline": []})
        mock_clock.tick(48 * HOUR)

        stats = recovery_manager.reconcile()

        assert stats == {"stale_failed": 0, "orphans_requeued": 0, "orphans_failed": 0, "errors": []}
        assert queue_manager.get_job(job.job_id).status == JobStatus.COMPLETED


class TestIdempotency:
    """Reconcile is safe to repeat."""

    def test_second_run_changes_nothing(
        self, create_job, queue_manager, recovery_manager, mock_clock
    ):
        stale = create_job()
        queue_manager.claim_next()
        mock_clock.tick(25 * HOUR)
        orphan = create_job()
        queue_manager.claim_next()
        mock_clock.tick(20 * MINUTE)

        first = recovery_manager.reconcile()
        snapshot = {
            job_id: queue_manager.get_job(job_id)
            for job_id in (stale.job_id, orphan.job_id)
        }
        second = recovery_manager.reconcile()

        assert first["stale_failed"] == 1
        assert first["orphans_requeued"] == 1
        assert second == {"stale_failed": 0, "orphans_requeued": 0, "orphans_failed": 0, "errors": []}
        for job_id, before in snapshot.items():
            assert queue_manager.get_job(job_id) == before


class TestProjectRepair:
    """Terminal failures from reconcile hand the project back to its handler."""

    def test_failed_chapter_job_returns_project_to_outline(self, service, mock_clock):
        persistence = service.persistence
        project = service.create_project(
            title="Ash", premise="p", genre="fantasy", subgenre="dark",
            chapter_count=3, target_word_count=1600,
        )
        persistence.set_project_outline(project.project_id, ["one", "two", "three"])
        service.enqueue_next_chapter(project.project_id)
        assert service.get_project(project.project_id).status == ProjectStatus.DRAFTING

        mock_clock.tick(25 * HOUR)
        stats = service.reconcile()

        assert stats["stale_failed"] == 1
        assert service.get_project(project.project_id).status == ProjectStatus.OUTLINE

    def test_failed_outline_job_returns_project_to_setup(self, service, mock_clock):
        project = service.create_project(
            title="Ash", premise="p", genre="fantasy", subgenre="dark",
            chapter_count=3, target_word_count=1600,
        )
        job_id = service.enqueue_outline_job(project.project_id, "p", "fantasy", "dark", 3)
        service.queue_manager.claim_next()
        service.persistence.update_project_status(project.project_id, ProjectStatus.OUTLINE)

        mock_clock.tick(25 * HOUR)
        service.reconcile()

        assert service.get_job(job_id).status == JobStatus.FAILED
        assert service.get_project(project.project_id).status == ProjectStatus.SETUP
