"""
Queue semantics tests.

- FIFO claims with insertion-order tie-break
- Retry budget: requeue while retry_count < max_retries, then FAILED
- Monotonic progress, only while IN_PROGRESS
- Terminal jobs reject complete/fail
- Cancel and cleanup
"""

import pytest

from novelgen.scheduler import (
    InvalidOperationError,
    JobNotFoundError,
    JobStatus,
    JobType,
    PersistenceAdapter,
    QueueManager,
)
from novelgen.scheduler.queue_manager import CANCELLED_ERROR


class TestCreate:
    """Newly created jobs."""

    def test_new_job_is_queued_with_zero_progress(self, create_job):
        job = create_job()

        assert job.status == JobStatus.QUEUED
        assert job.progress == 0
        assert job.retry_count == 0
        assert job.result is None
        assert job.error is None
        assert job.started_at is None

    def test_job_is_persisted(self, create_job, queue_manager: QueueManager):
        job = create_job(JobType.CHAPTER_GENERATION)

        stored = queue_manager.get_job(job.job_id)
        assert stored.job_type == JobType.CHAPTER_GENERATION
        assert stored.data["chapter_number"] == 1
        assert stored.max_retries == 2

    def test_explicit_max_retries_overrides_default(self, create_job):
        job = create_job(max_retries=5)
        assert job.max_retries == 5

    def test_get_unknown_job_returns_none(self, queue_manager: QueueManager):
        assert queue_manager.get_job("missing") is None


class TestClaim:
    """Claiming jobs in FIFO order."""

    def test_empty_queue_claims_nothing(self, queue_manager: QueueManager):
        assert queue_manager.claim_next() is None

    def test_claims_oldest_first(self, create_job, queue_manager: QueueManager):
        first = create_job()
        second = create_job()
        third = create_job()

        claimed = [queue_manager.claim_next().job_id for _ in range(3)]

        assert claimed == [first.job_id, second.job_id, third.job_id]
        assert queue_manager.claim_next() is None

    def test_same_timestamp_falls_back_to_insertion_order(
        self, queue_manager: QueueManager, create_project
    ):
        project = create_project()
        data = {"premise": "p", "genre": "fantasy", "subgenre": "dark", "chapter_count": 3}
        # No clock tick between creates: identical created_at
        jobs = [
            queue_manager.create(JobType.OUTLINE_GENERATION, project.project_id, data)
            for _ in range(3)
        ]

        claimed = [queue_manager.claim_next().job_id for _ in range(3)]
        assert claimed == [job.job_id for job in jobs]

    def test_claim_marks_in_progress_and_sets_started_at(
        self, create_job, queue_manager: QueueManager
    ):
        job = create_job()

        claimed = queue_manager.claim_next()

        assert claimed.job_id == job.job_id
        assert claimed.status == JobStatus.IN_PROGRESS
        assert claimed.started_at is not None
        assert queue_manager.get_job(job.job_id).status == JobStatus.IN_PROGRESS

    def test_requeued_job_keeps_its_place(self, create_job, queue_manager: QueueManager):
        older = create_job()
        newer = create_job()

        claimed = queue_manager.claim_next()
        assert claimed.job_id == older.job_id
        queue_manager.fail(older.job_id, "transient", should_retry=True)

        # created_at is unchanged by a requeue, so the older job goes first again
        assert queue_manager.claim_next().job_id == older.job_id
        assert queue_manager.claim_next().job_id == newer.job_id


class TestRetryBudget:
    """Failure handling against max_retries."""

    def test_requeue_increments_retry_count_and_resets_progress(
        self, create_job, queue_manager: QueueManager
    ):
        job = create_job()
        queue_manager.claim_next()
        queue_manager.update_progress(job.job_id, 40)

        failed = queue_manager.fail(job.job_id, "rate limited", should_retry=True)

        assert failed.status == JobStatus.QUEUED
        assert failed.retry_count == 1
        assert failed.progress == 0
        assert failed.error == "rate limited"

    def test_budget_of_two_gives_three_attempts(self, create_job, queue_manager: QueueManager):
        job = create_job()
        statuses = []

        for _ in range(3):
            claimed = queue_manager.claim_next()
            assert claimed is not None
            assert claimed.job_id == job.job_id
            statuses.append(queue_manager.fail(job.job_id, "boom", should_retry=True).status)

        assert statuses == [JobStatus.QUEUED, JobStatus.QUEUED, JobStatus.FAILED]
        final = queue_manager.get_job(job.job_id)
        assert final.retry_count == 2
        assert final.error == "boom"
        assert queue_manager.claim_next() is None

    def test_non_retryable_fails_immediately(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        failed = queue_manager.fail(job.job_id, "bad data", should_retry=False)

        assert failed.status == JobStatus.FAILED
        assert failed.retry_count == 0

    def test_zero_budget_never_requeues(self, create_job, queue_manager: QueueManager):
        job = create_job(max_retries=0)
        queue_manager.claim_next()

        failed = queue_manager.fail(job.job_id, "boom", should_retry=True)
        assert failed.status == JobStatus.FAILED

    def test_queued_job_can_be_force_failed(self, create_job, queue_manager: QueueManager):
        job = create_job()

        failed = queue_manager.fail(job.job_id, "timeout", should_retry=False)
        assert failed.status == JobStatus.FAILED

    def test_queued_job_cannot_be_requeued(self, create_job, queue_manager: QueueManager):
        job = create_job()

        with pytest.raises(InvalidOperationError):
            queue_manager.fail(job.job_id, "boom", should_retry=True)

    def test_fail_unknown_job(self, queue_manager: QueueManager):
        with pytest.raises(JobNotFoundError):
            queue_manager.fail("missing", "boom")


class TestProgress:
    """Progress updates."""

    def test_progress_only_moves_forward(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        assert queue_manager.update_progress(job.job_id, 30).progress == 30
        assert queue_manager.update_progress(job.job_id, 10).progress == 30
        assert queue_manager.update_progress(job.job_id, 70).progress == 70

    def test_progress_is_clamped(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        assert queue_manager.update_progress(job.job_id, 250).progress == 100

    def test_progress_rejected_unless_in_progress(self, create_job, queue_manager: QueueManager):
        job = create_job()

        with pytest.raises(InvalidOperationError):
            queue_manager.update_progress(job.job_id, 50)

    def test_progress_can_merge_data(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        updated = queue_manager.update_progress(job.job_id, 20, data={"stage": "drafting"})

        assert updated.data["stage"] == "drafting"
        assert updated.data["premise"] == job.data["premise"]
        assert updated.status == JobStatus.IN_PROGRESS


class TestTerminalStates:
    """Completed and failed jobs are final."""

    def test_complete_sets_result_and_full_progress(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        done = queue_manager.complete(job.job_id, {"outline": ["a", "b", "c"]})

        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.result == {"outline": ["a", "b", "c"]}
        assert done.completed_at is not None

    def test_complete_requires_in_progress(self, create_job, queue_manager: QueueManager):
        job = create_job()

        with pytest.raises(InvalidOperationError):
            queue_manager.complete(job.job_id, {})

    def test_completed_job_rejects_fail_and_complete(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()
        queue_manager.complete(job.job_id, {"ok": True})

        with pytest.raises(InvalidOperationError):
            queue_manager.fail(job.job_id, "late failure")
        with pytest.raises(InvalidOperationError):
            queue_manager.complete(job.job_id, {"ok": False})

        assert queue_manager.get_job(job.job_id).result == {"ok": True}

    def test_failed_job_rejects_complete(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()
        queue_manager.fail(job.job_id, "fatal", should_retry=False)

        with pytest.raises(InvalidOperationError):
            queue_manager.complete(job.job_id, {})


class TestCancel:
    """Cancelling queued jobs."""

    def test_cancel_queued_job(self, create_job, queue_manager: QueueManager):
        job = create_job()

        cancelled = queue_manager.cancel(job.job_id)

        assert cancelled.status == JobStatus.FAILED
        assert cancelled.error == CANCELLED_ERROR
        assert queue_manager.claim_next() is None

    def test_cannot_cancel_running_job(self, create_job, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        with pytest.raises(InvalidOperationError):
            queue_manager.cancel(job.job_id)

    def test_cancel_unknown_job(self, queue_manager: QueueManager):
        with pytest.raises(JobNotFoundError):
            queue_manager.cancel("missing")


class TestListingAndStats:
    """Project listings and status counts."""

    def test_list_for_project_newest_first(
        self, create_job, create_project, queue_manager: QueueManager
    ):
        project = create_project()
        first = create_job(project_id=project.project_id)
        second = create_job(project_id=project.project_id)
        create_job()  # another project

        jobs = queue_manager.list_for_project(project.project_id)

        assert [job.job_id for job in jobs] == [second.job_id, first.job_id]

    def test_stats_count_every_status(self, create_job, queue_manager: QueueManager):
        create_job()
        create_job()
        queue_manager.claim_next()

        stats = queue_manager.get_stats()
        assert stats == {"queued": 1, "in_progress": 1, "completed": 0, "failed": 0}


class TestCleanup:
    """Deleting old terminal jobs."""

    def _finish(self, queue_manager: QueueManager, job, success: bool = True):
        claimed = queue_manager.claim_next()
        assert claimed.job_id == job.job_id
        if success:
            queue_manager.complete(job.job_id, {})
        else:
            queue_manager.fail(job.job_id, "fatal", should_retry=False)

    def test_removes_only_old_terminal_jobs(
        self, create_job, queue_manager: QueueManager, mock_clock
    ):
        old_done = create_job()
        self._finish(queue_manager, old_done)
        old_failed = create_job()
        self._finish(queue_manager, old_failed, success=False)
        old_queued = create_job()

        mock_clock.tick(8 * 24 * 3600)

        deleted = queue_manager.cleanup(older_than_days=7)

        assert deleted == 2
        assert queue_manager.get_job(old_done.job_id) is None
        assert queue_manager.get_job(old_failed.job_id) is None
        assert queue_manager.get_job(old_queued.job_id).status == JobStatus.QUEUED

    def test_recent_terminal_jobs_are_kept(
        self, create_job, queue_manager: QueueManager, mock_clock
    ):
        job = create_job()
        self._finish(queue_manager, job)
        mock_clock.tick(6 * 24 * 3600)

        assert queue_manager.cleanup(older_than_days=7) == 0
        assert queue_manager.get_job(job.job_id).status == JobStatus.COMPLETED

    def test_in_progress_jobs_survive_any_age(
        self, create_job, queue_manager: QueueManager, mock_clock
    ):
        job = create_job()
        queue_manager.claim_next()
        mock_clock.tick(365 * 24 * 3600)

        assert queue_manager.cleanup(older_than_days=0) == 0
        assert queue_manager.get_job(job.job_id).status == JobStatus.IN_PROGRESS

    def test_negative_days_rejected(self, queue_manager: QueueManager):
        with pytest.raises(ValueError):
            queue_manager.cleanup(older_than_days=-1)


class TestPersistenceAcrossInstances:
    """State survives a new adapter on the same file (process restart)."""

    def test_reopen_sees_jobs(self, create_job, temp_db_path, queue_manager: QueueManager):
        job = create_job()
        queue_manager.claim_next()

        reopened = PersistenceAdapter(temp_db_path)
        stored = reopened.get_job(job.job_id)

        assert stored.status == JobStatus.IN_PROGRESS
        assert stored.data == job.data
