"""
Dispatcher (generation worker).

- Claims the next job and hands it to the Executor
- Completes the job with the handler's result, or routes the error to
  the RetryController
- Publishes lifecycle events to the progress hub
- Runs a poll loop (long-lived process) or a single pass (serverless
  trigger); both go through process_next_job()

What Dispatcher MUST NOT do:
- Modify job data
- Decide retry policy
- Hold any lock across a generation call
"""

import logging
import os
import threading
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from ..infra.progress_hub import ProgressEvent, ProgressStreamHub
from .entities import Job, JobStatus
from .errors import InvalidOperationError
from .executor import Executor, ProgressReporter
from .queue_manager import QueueManager
from .retry_controller import RetryController


logger = logging.getLogger(__name__)


WORKER_POLL_INTERVAL_SECONDS = float(os.getenv("WORKER_POLL_INTERVAL_SECONDS", "5"))


class DispatcherState(str, Enum):
    """Dispatcher lifecycle states."""

    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one process_next_job() call."""

    processed: bool
    job_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class Dispatcher:
    """
    Pulls jobs from the queue and runs them one at a time.

    Many Dispatchers (in many processes) may share one store; the atomic
    claim keeps each job with a single worker.
    """

    def __init__(
        self,
        queue_manager: QueueManager,
        executor: Executor,
        retry_controller: RetryController,
        progress_hub: Optional[ProgressStreamHub] = None,
        poll_interval: float = WORKER_POLL_INTERVAL_SECONDS,
    ):
        """
        Args:
            queue_manager: QueueManager for claims and transitions
            executor: Runs claimed jobs
            retry_controller: Records failed attempts
            progress_hub: Receives progress events (optional)
            poll_interval: Seconds between queue polls when idle
        """
        self.queue_manager = queue_manager
        self.executor = executor
        self.retry_controller = retry_controller
        self.progress_hub = progress_hub
        self.poll_interval = poll_interval

        self._state = DispatcherState.STOPPED
        self._current_job: Optional[Job] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def current_job(self) -> Optional[Job]:
        """Get the currently running job, if any."""
        return self._current_job

    # =========================================================================
    # Single Job
    # =========================================================================

    def process_next_job(self) -> ProcessResult:
        """
        Claim and run one job.

        Safe to call when the queue is empty: returns processed=False.

        Returns:
            ProcessResult with the job id and, on failure, the error message

        Raises:
            StorageError: If the store fails while claiming or recording
        """
        job = self.queue_manager.claim_next()
        if job is None:
            logger.debug("Queue is empty")
            return ProcessResult(processed=False)

        self._current_job = job
        reporter = ProgressReporter(job, self.queue_manager, self.progress_hub)
        reporter.publish("claimed", f"Job {job.job_id} picked up by worker")

        try:
            try:
                result = self.executor.execute(job, reporter)
            except Exception as e:
                logger.error(f"Job processing failed: {job.job_id}: {e}", exc_info=True)
                try:
                    failed = self.retry_controller.on_job_failed(job, e)
                except InvalidOperationError as transition_error:
                    logger.warning(f"Could not record failure of job {job.job_id}: {transition_error}")
                    return ProcessResult(processed=True, job_id=job.job_id, error=str(e))
                self._publish_failure(failed)
                if failed.status == JobStatus.FAILED:
                    self.executor.on_job_failed(failed)
                return ProcessResult(processed=True, job_id=job.job_id, error=failed.error)

            try:
                completed = self.queue_manager.complete(job.job_id, result)
            except InvalidOperationError as e:
                # Reconciled away (e.g. force-failed as stale) while running
                logger.warning(f"Could not complete job {job.job_id}: {e}")
                return ProcessResult(processed=True, job_id=job.job_id, error=str(e))

            self._publish(completed, "completed", "Job completed")
            return ProcessResult(processed=True, job_id=job.job_id)

        finally:
            self._current_job = None

    def _publish(self, job: Job, stage: str, message: str) -> None:
        if self.progress_hub is None:
            return
        self.progress_hub.publish(ProgressEvent(
            job_id=job.job_id,
            stage=stage,
            progress=job.progress,
            message=message,
        ))

    def _publish_failure(self, job: Job) -> None:
        if job.status == JobStatus.QUEUED:
            self._publish(
                job, "requeued",
                f"Attempt failed, requeued (retry {job.retry_count}/{job.max_retries}): {job.error}",
            )
        else:
            self._publish(job, "failed", job.error or "Job failed")

    # =========================================================================
    # Poll Loop
    # =========================================================================

    def start(self, blocking: bool = False) -> None:
        """
        Start the poll loop.

        Args:
            blocking: If True, run in current thread. If False, run in background.
        """
        if self._state != DispatcherState.STOPPED:
            raise RuntimeError(f"Cannot start dispatcher in {self._state.value} state")

        self._stop_event.clear()
        self._state = DispatcherState.RUNNING
        logger.info(f"Background worker started (poll interval {self.poll_interval}s)")

        if blocking:
            self._dispatch_loop()
        else:
            self._thread = threading.Thread(target=self._dispatch_loop, daemon=True)
            self._thread.start()

    def stop(self, timeout: float = 30.0) -> None:
        """
        Stop the poll loop gracefully.

        The job in hand is allowed to finish; no generation call is cut off.

        Args:
            timeout: Maximum seconds to wait for the current job
        """
        if self._state == DispatcherState.STOPPED:
            return

        logger.info("Stopping dispatcher...")
        self._state = DispatcherState.STOPPING
        self._stop_event.set()

        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Dispatcher thread did not stop within timeout")
            self._thread = None

        self._state = DispatcherState.STOPPED
        logger.info("Dispatcher stopped")

    def _dispatch_loop(self) -> None:
        """Main poll loop."""
        logger.info("Dispatcher loop started")

        while not self._stop_event.is_set():
            try:
                result = self.process_next_job()

                if not result.processed:
                    self._stop_event.wait(self.poll_interval)
                # A job was processed: check for the next one immediately

            except Exception as e:
                logger.error(f"Error in dispatch loop: {e}", exc_info=True)
                self._stop_event.wait(self.poll_interval)

        self._state = DispatcherState.STOPPED
        logger.info("Dispatcher loop ended")

    def is_running(self) -> bool:
        """Check if dispatcher is running."""
        return self._state == DispatcherState.RUNNING

    def is_busy(self) -> bool:
        """Check if dispatcher is executing a job."""
        return self._current_job is not None

    def get_status(self) -> dict:
        return {
            "is_running": self.is_running(),
            "is_busy": self.is_busy(),
            "poll_interval": self.poll_interval,
            "current_job_id": self._current_job.job_id if self._current_job else None,
        }
