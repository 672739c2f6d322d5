"""
Scheduler-specific exceptions.

These exceptions guard the job lifecycle:
- Completed/Failed jobs are terminal
- A job is held by at most one worker
- Storage failures surface unchanged to the caller
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class StorageError(SchedulerError):
    """
    Raised when the underlying store fails (I/O, locking, corruption).

    The job is left in its last known-good state.
    """
    pass


class InvalidOperationError(SchedulerError):
    """
    Raised when an operation violates the job lifecycle.

    Examples:
    - Completing a job that is already Completed or Failed
    - Failing a terminal job
    - Appending a chapter out of order
    """
    pass


class JobNotFoundError(SchedulerError):
    """Raised when a requested job does not exist."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ProjectNotFoundError(SchedulerError):
    """Raised when a requested project does not exist."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class JobValidationError(SchedulerError):
    """
    Raised when a job carries missing or malformed data.

    Never retried: the same data would fail the same way.
    """
    pass


class ConcurrencyViolationError(SchedulerError):
    """
    Raised when a concurrent modification is detected.

    Used for compare-and-swap transitions where the job was already
    moved on by another process.
    """

    def __init__(self, job_id: str, expected_status: str, actual_status: str):
        self.job_id = job_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        super().__init__(
            f"Concurrency violation for job {job_id}: "
            f"expected status '{expected_status}', got '{actual_status}'"
        )
