"""
Recovery Manager for generation jobs.

Startup (or operator-triggered) reconciliation:
- Jobs not finished within the staleness window (default 24h since
  started_at, or created_at if never started) are force-failed with
  "timeout"
- IN_PROGRESS jobs whose worker has gone quiet for longer than the
  orphan threshold (default 15 minutes) are requeued through the normal
  retry path, so an exhausted budget still ends in FAILED

Reconciliation is idempotent: running it twice in a row changes nothing
the second time.
"""

import logging
import os
from datetime import timedelta
from typing import Optional

from .entities import Clock, Job, JobStatus, parse_timestamp, utc_now
from .errors import InvalidOperationError
from .executor import Executor
from .persistence import PersistenceAdapter
from .queue_manager import QueueManager


logger = logging.getLogger(__name__)


JOB_STALENESS_HOURS = int(os.getenv("JOB_STALENESS_HOURS", "24"))
JOB_ORPHAN_AFTER_MINUTES = int(os.getenv("JOB_ORPHAN_AFTER_MINUTES", "15"))

STALE_ERROR = "timeout"
ORPHAN_ERROR = "Worker lost while job was in progress"


class RecoveryManager:
    """Handles crash recovery and stale job cleanup."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        queue_manager: QueueManager,
        executor: Optional[Executor] = None,
        staleness_hours: float = JOB_STALENESS_HOURS,
        orphan_after_minutes: float = JOB_ORPHAN_AFTER_MINUTES,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            persistence: PersistenceAdapter for storage
            queue_manager: QueueManager that records failures
            executor: Lets handlers repair project state after force-fails
            staleness_hours: Age after which an unfinished job is force-failed
            orphan_after_minutes: Minutes without an update before an IN_PROGRESS job is requeued
            clock: Callable returning the current UTC datetime
        """
        self.persistence = persistence
        self.queue_manager = queue_manager
        self.executor = executor
        self.staleness = timedelta(hours=staleness_hours)
        self.orphan_after = timedelta(minutes=orphan_after_minutes)
        self.clock = clock or persistence.clock or utc_now

    def reconcile(self) -> dict:
        """
        Force-fail stale jobs and requeue orphaned ones.

        Returns:
            Recovery statistics
        """
        stats = {
            "stale_failed": 0,
            "orphans_requeued": 0,
            "orphans_failed": 0,
            "errors": [],
        }

        logger.info("Starting job reconciliation...")
        now = self.clock()

        for job in self.persistence.get_non_terminal_jobs():
            age = now - parse_timestamp(job.started_at or job.created_at)

            try:
                if age > self.staleness:
                    self._force_fail(job)
                    stats["stale_failed"] += 1
                elif (
                    job.status == JobStatus.IN_PROGRESS
                    and now - parse_timestamp(job.updated_at) > self.orphan_after
                ):
                    updated = self.queue_manager.fail(job.job_id, ORPHAN_ERROR, should_retry=True)
                    if updated.status == JobStatus.FAILED:
                        stats["orphans_failed"] += 1
                        self._repair(updated)
                    else:
                        stats["orphans_requeued"] += 1
            except InvalidOperationError as e:
                # Moved on by a live worker between listing and updating
                logger.info(f"Skipping job {job.job_id} during reconciliation: {e}")
            except Exception as e:
                logger.error(f"Error reconciling job {job.job_id}: {e}", exc_info=True)
                stats["errors"].append(f"{job.job_id}: {e}")

        logger.info(
            f"Reconciliation complete: "
            f"{stats['stale_failed']} stale jobs failed, "
            f"{stats['orphans_requeued']} orphaned jobs requeued, "
            f"{stats['orphans_failed']} orphaned jobs failed"
        )

        return stats

    def _force_fail(self, job: Job) -> None:
        logger.warning(
            f"Job {job.job_id} exceeded staleness window "
            f"({self.staleness}), force-failing"
        )
        updated = self.queue_manager.fail(job.job_id, STALE_ERROR, should_retry=False)
        self._repair(updated)

    def _repair(self, job: Job) -> None:
        if self.executor is not None:
            self.executor.on_job_failed(job)
