"""
Job orchestration core.

Persistent queue of generation jobs, worker, job-level retry and
startup reconciliation.
"""

from .entities import (
    JobStatus,
    JobType,
    ProjectStatus,
    Job,
    JobView,
    OutlineGenerationData,
    ChapterGenerationData,
    Project,
    Chapter,
    parse_job_data,
)
from .errors import (
    SchedulerError,
    StorageError,
    InvalidOperationError,
    JobNotFoundError,
    ProjectNotFoundError,
    JobValidationError,
    ConcurrencyViolationError,
)
from .persistence import PersistenceAdapter
from .queue_manager import QueueManager
from .executor import Executor, JobHandler, ProgressReporter
from .retry_controller import RetryController
from .dispatcher import Dispatcher, DispatcherState, ProcessResult
from .recovery import RecoveryManager
from .service import NovelGenerationService

__all__ = [
    # Entities
    "JobStatus",
    "JobType",
    "ProjectStatus",
    "Job",
    "JobView",
    "OutlineGenerationData",
    "ChapterGenerationData",
    "Project",
    "Chapter",
    "parse_job_data",
    # Errors
    "SchedulerError",
    "StorageError",
    "InvalidOperationError",
    "JobNotFoundError",
    "ProjectNotFoundError",
    "JobValidationError",
    "ConcurrencyViolationError",
    # Persistence
    "PersistenceAdapter",
    # Queue
    "QueueManager",
    # Executor
    "Executor",
    "JobHandler",
    "ProgressReporter",
    # Retry
    "RetryController",
    # Dispatcher
    "Dispatcher",
    "DispatcherState",
    "ProcessResult",
    # Recovery
    "RecoveryManager",
    # Service
    "NovelGenerationService",
]
