"""
Scheduler Domain Entities.

- Job: Single unit of generation work queued for execution
- JobView: Caller-facing projection of a Job (no retry bookkeeping)
- OutlineGenerationData / ChapterGenerationData: Typed job payloads
- Project: The novel being generated, with its outline and chapters
- Chapter: One persisted chapter of a project

Job lifecycle:
    QUEUED -> IN_PROGRESS -> COMPLETED
                          -> QUEUED (retry)
                          -> FAILED
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Any, Callable, Union
import uuid

from .errors import JobValidationError


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

Clock = Callable[[], datetime]


class JobStatus(str, Enum):
    """
    Job status values.

    - QUEUED: Waiting to be claimed (new, or requeued after a failure)
    - IN_PROGRESS: Claimed by exactly one worker
    - COMPLETED: Finished with a result (terminal)
    - FAILED: Retries exhausted or fatal error (terminal)
    """

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class JobType(str, Enum):
    """Closed set of job kinds; every member needs a registered handler."""

    OUTLINE_GENERATION = "outline_generation"
    CHAPTER_GENERATION = "chapter_generation"


class ProjectStatus(str, Enum):
    """
    Project status values.

    SETUP -> OUTLINE -> DRAFTING -> COMPLETED, with a reset path back
    to SETUP when outline generation fails.
    """

    SETUP = "setup"
    OUTLINE = "outline"
    DRAFTING = "drafting"
    COMPLETED = "completed"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime as a fixed-width UTC string.

    Fixed width keeps lexical order equal to chronological order,
    which the queue relies on for FIFO claims.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a timestamp written by format_timestamp()."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def now_iso(clock: Optional[Clock] = None) -> str:
    """Get current time as a fixed-width ISO string."""
    return format_timestamp((clock or utc_now)())


# =============================================================================
# Job payloads
# =============================================================================


def _require(data: dict, key: str, kind: type, job_type: "JobType") -> Any:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise JobValidationError(f"Missing required field '{key}' for {job_type.value} job")
    # bool is an int subclass; reject it for numeric fields
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise JobValidationError(
            f"Field '{key}' for {job_type.value} job must be {kind.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class OutlineGenerationData:
    """Payload for an outline generation job."""

    premise: str
    genre: str
    subgenre: str
    chapter_count: int

    job_type = JobType.OUTLINE_GENERATION

    @classmethod
    def from_dict(cls, data: dict) -> "OutlineGenerationData":
        job_type = JobType.OUTLINE_GENERATION
        chapter_count = _require(data, "chapter_count", int, job_type)
        if chapter_count < 1:
            raise JobValidationError("chapter_count must be at least 1")
        return cls(
            premise=_require(data, "premise", str, job_type),
            genre=_require(data, "genre", str, job_type),
            subgenre=_require(data, "subgenre", str, job_type),
            chapter_count=chapter_count,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ChapterGenerationData:
    """
    Payload for a chapter generation job.

    outline holds every chapter summary of the novel; the summary for
    this chapter is outline[chapter_number - 1].
    """

    chapter_number: int
    premise: str
    outline: list
    previous_chapter_texts: list
    target_word_count: int
    genre: str
    subgenre: str

    job_type = JobType.CHAPTER_GENERATION

    @classmethod
    def from_dict(cls, data: dict) -> "ChapterGenerationData":
        job_type = JobType.CHAPTER_GENERATION
        chapter_number = _require(data, "chapter_number", int, job_type)
        outline = _require(data, "outline", list, job_type)
        target_word_count = _require(data, "target_word_count", int, job_type)

        if chapter_number < 1:
            raise JobValidationError("chapter_number must be at least 1")
        if chapter_number > len(outline):
            raise JobValidationError(
                f"chapter_number {chapter_number} exceeds outline length {len(outline)}"
            )
        if target_word_count < 1:
            raise JobValidationError("target_word_count must be positive")

        previous = data.get("previous_chapter_texts") or []
        if not isinstance(previous, list) or not all(isinstance(t, str) for t in previous):
            raise JobValidationError("previous_chapter_texts must be a list of strings")

        return cls(
            chapter_number=chapter_number,
            premise=_require(data, "premise", str, job_type),
            outline=[str(entry) for entry in outline],
            previous_chapter_texts=list(previous),
            target_word_count=target_word_count,
            genre=_require(data, "genre", str, job_type),
            subgenre=_require(data, "subgenre", str, job_type),
        )

    def to_dict(self) -> dict:
        return asdict(self)


JobData = Union[OutlineGenerationData, ChapterGenerationData]

_PAYLOAD_TYPES = {
    JobType.OUTLINE_GENERATION: OutlineGenerationData,
    JobType.CHAPTER_GENERATION: ChapterGenerationData,
}


def parse_job_data(job_type: JobType, data: Optional[dict]) -> JobData:
    """
    Build the typed payload for a job.

    Raises:
        JobValidationError: If required fields are missing or malformed
    """
    if not isinstance(data, dict):
        raise JobValidationError(f"Job data for {job_type.value} must be an object")
    return _PAYLOAD_TYPES[job_type].from_dict(data)


# =============================================================================
# Job
# =============================================================================


@dataclass
class Job:
    """
    Single unit of generation work.

    Mutability rules:
    - job_id, job_type, project_id, data, created_at: Immutable
    - progress: Non-decreasing within one attempt, reset to 0 on requeue
    - result: Set only when COMPLETED
    - started_at: Rewritten on every claim
    - completed_at: Write-once, set on COMPLETED
    """

    job_id: str
    job_type: JobType
    project_id: str
    data: dict
    status: JobStatus
    progress: int = 0
    result: Optional[dict] = None
    error: Optional[str] = None
    retry_count: int = 0
    max_retries: int = 3
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    @classmethod
    def create(
        cls,
        job_type: JobType,
        project_id: str,
        data: dict,
        max_retries: int = 3,
        clock: Optional[Clock] = None,
    ) -> "Job":
        """Create a new Job with generated ID and QUEUED status."""
        now = now_iso(clock)
        return cls(
            job_id=generate_uuid(),
            job_type=JobType(job_type),
            project_id=project_id,
            data=dict(data),
            status=JobStatus.QUEUED,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )

    def is_terminal(self) -> bool:
        """Check if job is in a terminal state."""
        return self.status in TERMINAL_STATUSES

    def payload(self) -> JobData:
        """Typed view of the job data."""
        return parse_job_data(self.job_type, self.data)

    def to_view(self) -> "JobView":
        return JobView(
            job_id=self.job_id,
            job_type=self.job_type,
            project_id=self.project_id,
            status=self.status,
            progress=self.progress,
            result=self.result,
            error=self.error,
            created_at=self.created_at,
            updated_at=self.updated_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
        )


@dataclass(frozen=True)
class JobView:
    """What callers see of a job: no retry bookkeeping, no raw payload."""

    job_id: str
    job_type: JobType
    project_id: str
    status: JobStatus
    progress: int
    result: Optional[dict]
    error: Optional[str]
    created_at: str
    updated_at: str
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    def to_dict(self) -> dict:
        view = asdict(self)
        view["job_type"] = self.job_type.value
        view["status"] = self.status.value
        return view


# =============================================================================
# Project
# =============================================================================


@dataclass
class Chapter:
    """One generated chapter as persisted on its project."""

    chapter_number: int
    content: str
    word_count: int
    generated_at: str = field(default_factory=now_iso)
    regenerated: bool = False
    regeneration_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Chapter":
        return cls(
            chapter_number=data["chapter_number"],
            content=data["content"],
            word_count=data["word_count"],
            generated_at=data.get("generated_at") or now_iso(),
            regenerated=bool(data.get("regenerated", False)),
            regeneration_count=int(data.get("regeneration_count", 0)),
        )


@dataclass
class Project:
    """
    A novel under generation.

    Chapters are appended in ascending chapter_number order and never
    removed by the job layer.
    """

    project_id: str
    title: str
    premise: str
    genre: str
    subgenre: str
    chapter_count: int
    target_word_count: int
    status: ProjectStatus = ProjectStatus.SETUP
    outline: list = field(default_factory=list)
    chapters: list = field(default_factory=list)
    current_chapter: int = 0
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @classmethod
    def create(
        cls,
        title: str,
        premise: str,
        genre: str,
        subgenre: str,
        chapter_count: int,
        target_word_count: int,
        clock: Optional[Clock] = None,
    ) -> "Project":
        """Create a new Project in SETUP status."""
        now = now_iso(clock)
        return cls(
            project_id=generate_uuid(),
            title=title,
            premise=premise,
            genre=genre,
            subgenre=subgenre,
            chapter_count=chapter_count,
            target_word_count=target_word_count,
            created_at=now,
            updated_at=now,
        )

    @property
    def next_chapter_number(self) -> int:
        return len(self.chapters) + 1

    def is_fully_drafted(self) -> bool:
        return len(self.chapters) >= self.chapter_count
