"""
Persistence Adapter for the generation job store.

SQLite with WAL mode, shared by every worker process that points at the
same database file.

Provides:
- Atomic claim of the oldest eligible QUEUED job (compare-and-swap)
- Guarded status transitions (complete / requeue / fail)
- Monotonic progress updates
- Project documents (outline + ordered chapters)
- Recovery and cleanup queries
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator, Sequence

from .entities import (
    Chapter,
    Clock,
    Job,
    JobStatus,
    JobType,
    Project,
    ProjectStatus,
    TERMINAL_STATUSES,
    now_iso,
    utc_now,
)
from .errors import (
    ConcurrencyViolationError,
    InvalidOperationError,
    JobNotFoundError,
    ProjectNotFoundError,
    StorageError,
)


logger = logging.getLogger(__name__)

# Seconds a connection waits on a competing writer before giving up
DEFAULT_BUSY_TIMEOUT = 30.0


class PersistenceAdapter:
    """
    SQLite-based persistence for jobs and projects.

    - Does NOT decide retries (RetryController's responsibility)
    - Does NOT call the generation backend
    - Every status change is a guarded UPDATE so two processes can never
      both move the same job
    """

    def __init__(self, db_path: str | Path, clock: Optional[Clock] = None):
        """
        Initialize persistence adapter.

        Args:
            db_path: Path to SQLite database file
            clock: Callable returning the current UTC datetime (injectable for tests)
        """
        self.db_path = str(db_path)
        self.clock = clock or utc_now
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _now(self) -> str:
        return now_iso(self.clock)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=DEFAULT_BUSY_TIMEOUT)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open job store at {self.db_path}: {e}") from e
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for read-only connections."""
        conn = self._get_connection()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE) so a
                read-then-write sequence cannot interleave with another writer
        """
        conn = self._get_connection()
        try:
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    job_id TEXT PRIMARY KEY,
                    job_type TEXT NOT NULL,
                    project_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    status TEXT NOT NULL,
                    progress INTEGER NOT NULL DEFAULT 0,
                    result TEXT,
                    error TEXT,
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    max_retries INTEGER NOT NULL DEFAULT 3,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    started_at TEXT,
                    completed_at TEXT
                )
            """)

            # Claim order: oldest first, insertion order breaks ties
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_claim_order
                ON jobs (status, created_at ASC)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_project
                ON jobs (project_id, created_at DESC)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    project_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    premise TEXT NOT NULL,
                    genre TEXT NOT NULL,
                    subgenre TEXT NOT NULL,
                    chapter_count INTEGER NOT NULL,
                    target_word_count INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    outline TEXT NOT NULL DEFAULT '[]',
                    chapters TEXT NOT NULL DEFAULT '[]',
                    current_chapter INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    # =========================================================================
    # Job Operations
    # =========================================================================

    def create_job(self, job: Job) -> Job:
        """Insert a new job."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO jobs
                (job_id, job_type, project_id, data, status, progress, result, error,
                 retry_count, max_retries, created_at, updated_at, started_at, completed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.job_id,
                    job.job_type.value,
                    job.project_id,
                    json.dumps(job.data),
                    job.status.value,
                    job.progress,
                    json.dumps(job.result) if job.result is not None else None,
                    job.error,
                    job.retry_count,
                    job.max_retries,
                    job.created_at,
                    job.updated_at,
                    job.started_at,
                    job.completed_at,
                ),
            )
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM jobs WHERE job_id = ?",
                (job_id,),
            ).fetchone()

        if row is None:
            return None

        return self._row_to_job(row)

    def _require_job(self, conn: sqlite3.Connection, job_id: str) -> Job:
        row = conn.execute(
            "SELECT * FROM jobs WHERE job_id = ?",
            (job_id,),
        ).fetchone()
        if row is None:
            raise JobNotFoundError(job_id)
        return self._row_to_job(row)

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        """Convert a database row to a Job entity."""
        return Job(
            job_id=row["job_id"],
            job_type=JobType(row["job_type"]),
            project_id=row["project_id"],
            data=json.loads(row["data"]),
            status=JobStatus(row["status"]),
            progress=row["progress"],
            result=json.loads(row["result"]) if row["result"] else None,
            error=row["error"],
            retry_count=row["retry_count"],
            max_retries=row["max_retries"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    def claim_next_job(self) -> Optional[Job]:
        """
        Atomically claim the oldest eligible QUEUED job.

        Eligible means QUEUED with attempts remaining (retry_count <= max_retries).
        Selection and the QUEUED -> IN_PROGRESS swap run under one write
        lock, so two workers never receive the same job.

        Returns:
            The claimed Job, or None if nothing is claimable

        Raises:
            ConcurrencyViolationError: If the selected job changed status underneath us
        """
        with self._transaction(immediate=True) as conn:
            row = conn.execute(
                """
                SELECT job_id FROM jobs
                WHERE status = ? AND retry_count <= max_retries
                ORDER BY created_at ASC, rowid ASC
                LIMIT 1
                """,
                (JobStatus.QUEUED.value,),
            ).fetchone()

            if row is None:
                return None

            job_id = row["job_id"]
            now = self._now()
            cursor = conn.execute(
                """
                UPDATE jobs
                SET status = ?, started_at = ?, updated_at = ?
                WHERE job_id = ? AND status = ?
                """,
                (
                    JobStatus.IN_PROGRESS.value,
                    now,
                    now,
                    job_id,
                    JobStatus.QUEUED.value,
                ),
            )

            if cursor.rowcount == 0:
                current = self._require_job(conn, job_id)
                raise ConcurrencyViolationError(
                    job_id,
                    expected_status=JobStatus.QUEUED.value,
                    actual_status=current.status.value,
                )

            return self._require_job(conn, job_id)

    def update_progress(
        self,
        job_id: str,
        progress: int,
        data: Optional[dict] = None,
    ) -> Job:
        """
        Raise the progress of an IN_PROGRESS job.

        Progress never moves backwards: a lower value leaves the stored one
        untouched. Status is never changed here.

        Args:
            job_id: Job to update
            progress: New progress value, clamped to 0..100
            data: Optional fields merged into the job data

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If the job is not IN_PROGRESS
        """
        progress = max(0, min(100, int(progress)))

        with self._transaction(immediate=True) as conn:
            job = self._require_job(conn, job_id)
            if job.status != JobStatus.IN_PROGRESS:
                raise InvalidOperationError(
                    f"Cannot update progress of job {job_id} in {job.status.value} status"
                )

            merged = {**job.data, **data} if data else job.data
            conn.execute(
                """
                UPDATE jobs
                SET progress = MAX(progress, ?), data = ?, updated_at = ?
                WHERE job_id = ? AND status = ?
                """,
                (
                    progress,
                    json.dumps(merged),
                    self._now(),
                    job_id,
                    JobStatus.IN_PROGRESS.value,
                ),
            )
            return self._require_job(conn, job_id)

    def complete_job(self, job_id: str, result: dict) -> Job:
        """
        Transition IN_PROGRESS -> COMPLETED with a result.

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If the job is not IN_PROGRESS
        """
        with self._transaction() as conn:
            now = self._now()
            cursor = conn.execute(
                """
                UPDATE jobs
                SET status = ?, progress = 100, result = ?, error = NULL,
                    completed_at = ?, updated_at = ?
                WHERE job_id = ? AND status = ?
                """,
                (
                    JobStatus.COMPLETED.value,
                    json.dumps(result),
                    now,
                    now,
                    job_id,
                    JobStatus.IN_PROGRESS.value,
                ),
            )

            if cursor.rowcount == 0:
                job = self._require_job(conn, job_id)
                raise InvalidOperationError(
                    f"Cannot complete job {job_id} in {job.status.value} status"
                )

            return self._require_job(conn, job_id)

    def fail_job(
        self,
        job_id: str,
        error: str,
        requeue: bool,
        allowed_statuses: Sequence[JobStatus] = (JobStatus.IN_PROGRESS,),
    ) -> Job:
        """
        Record a failure, either requeueing the job or failing it terminally.

        Requeue: status QUEUED, retry_count + 1, progress reset to 0.
        Terminal: status FAILED, retry_count unchanged.

        Args:
            job_id: Job to fail
            error: Error message to store
            requeue: Whether to put the job back on the queue
            allowed_statuses: Statuses the job may currently be in

        Raises:
            JobNotFoundError: If job doesn't exist
            InvalidOperationError: If the job is not in an allowed status
        """
        statuses = [status.value for status in allowed_statuses]
        placeholders = ", ".join("?" for _ in statuses)

        with self._transaction() as conn:
            now = self._now()
            if requeue:
                cursor = conn.execute(
                    f"""
                    UPDATE jobs
                    SET status = ?, error = ?, retry_count = retry_count + 1,
                        progress = 0, updated_at = ?
                    WHERE job_id = ? AND status IN ({placeholders})
                    """,
                    [JobStatus.QUEUED.value, error, now, job_id, *statuses],
                )
            else:
                cursor = conn.execute(
                    f"""
                    UPDATE jobs
                    SET status = ?, error = ?, updated_at = ?
                    WHERE job_id = ? AND status IN ({placeholders})
                    """,
                    [JobStatus.FAILED.value, error, now, job_id, *statuses],
                )

            if cursor.rowcount == 0:
                job = self._require_job(conn, job_id)
                raise InvalidOperationError(
                    f"Cannot fail job {job_id} in {job.status.value} status"
                )

            return self._require_job(conn, job_id)

    def list_jobs_for_project(self, project_id: str, limit: int = 50) -> list[Job]:
        """List a project's jobs, newest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM jobs
                WHERE project_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (project_id, limit),
            ).fetchall()

        return [self._row_to_job(row) for row in rows]

    def count_jobs_by_status(self) -> dict[str, int]:
        """Count jobs grouped by status; every status is present."""
        counts = {status.value: 0 for status in JobStatus}
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT status, COUNT(*) as count FROM jobs GROUP BY status"
            ).fetchall()

        for row in rows:
            counts[row["status"]] = row["count"]
        return counts

    def has_active_job_for_project(self, project_id: str) -> bool:
        """Check whether a project has a QUEUED or IN_PROGRESS job."""
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) as count FROM jobs
                WHERE project_id = ? AND status IN (?, ?)
                """,
                (project_id, JobStatus.QUEUED.value, JobStatus.IN_PROGRESS.value),
            ).fetchone()
        return row["count"] > 0

    def get_non_terminal_jobs(self) -> list[Job]:
        """All QUEUED and IN_PROGRESS jobs, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM jobs
                WHERE status IN (?, ?)
                ORDER BY created_at ASC, rowid ASC
                """,
                (JobStatus.QUEUED.value, JobStatus.IN_PROGRESS.value),
            ).fetchall()

        return [self._row_to_job(row) for row in rows]

    def delete_terminal_jobs_before(self, cutoff: str) -> int:
        """
        Delete COMPLETED/FAILED jobs last updated before the cutoff.

        Returns:
            Number of deleted jobs
        """
        statuses = [status.value for status in TERMINAL_STATUSES]
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM jobs
                WHERE status IN (?, ?) AND updated_at < ?
                """,
                (*statuses, cutoff),
            )
            deleted = cursor.rowcount

        logger.debug(f"Deleted {deleted} terminal jobs updated before {cutoff}")
        return deleted

    # =========================================================================
    # Project Operations
    # =========================================================================

    def create_project(self, project: Project) -> Project:
        """Insert a new project."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO projects
                (project_id, title, premise, genre, subgenre, chapter_count,
                 target_word_count, status, outline, chapters, current_chapter,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project.project_id,
                    project.title,
                    project.premise,
                    project.genre,
                    project.subgenre,
                    project.chapter_count,
                    project.target_word_count,
                    project.status.value,
                    json.dumps(project.outline),
                    json.dumps([chapter.to_dict() for chapter in project.chapters]),
                    project.current_chapter,
                    project.created_at,
                    project.updated_at,
                ),
            )
        return project

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE project_id = ?",
                (project_id,),
            ).fetchone()

        if row is None:
            return None

        return self._row_to_project(row)

    def _require_project(self, conn: sqlite3.Connection, project_id: str) -> Project:
        row = conn.execute(
            "SELECT * FROM projects WHERE project_id = ?",
            (project_id,),
        ).fetchone()
        if row is None:
            raise ProjectNotFoundError(project_id)
        return self._row_to_project(row)

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        """Convert a database row to a Project entity."""
        return Project(
            project_id=row["project_id"],
            title=row["title"],
            premise=row["premise"],
            genre=row["genre"],
            subgenre=row["subgenre"],
            chapter_count=row["chapter_count"],
            target_word_count=row["target_word_count"],
            status=ProjectStatus(row["status"]),
            outline=json.loads(row["outline"]),
            chapters=[Chapter.from_dict(c) for c in json.loads(row["chapters"])],
            current_chapter=row["current_chapter"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def set_project_outline(self, project_id: str, outline: list[str]) -> Project:
        """
        Store a freshly generated outline and move the project to OUTLINE.

        chapter_count becomes the outline's length in the same write.

        Raises:
            ProjectNotFoundError: If project doesn't exist
            InvalidOperationError: If the project already has chapters
        """
        if not outline:
            raise ValueError("outline must have at least one chapter")

        with self._transaction(immediate=True) as conn:
            project = self._require_project(conn, project_id)
            if project.chapters:
                raise InvalidOperationError(
                    f"Project {project_id} already has {len(project.chapters)} chapters; "
                    f"its outline cannot be replaced"
                )
            conn.execute(
                """
                UPDATE projects
                SET outline = ?, chapter_count = ?, status = ?, updated_at = ?
                WHERE project_id = ?
                """,
                (
                    json.dumps(outline),
                    len(outline),
                    ProjectStatus.OUTLINE.value,
                    self._now(),
                    project_id,
                ),
            )
            return self._require_project(conn, project_id)

    def update_project_status(
        self,
        project_id: str,
        status: ProjectStatus,
        current_chapter: Optional[int] = None,
    ) -> Project:
        """Set the project status (and optionally the chapter in progress)."""
        updates = ["status = ?", "updated_at = ?"]
        values: list = [status.value, self._now()]
        if current_chapter is not None:
            updates.append("current_chapter = ?")
            values.append(current_chapter)
        values.append(project_id)

        with self._transaction(immediate=True) as conn:
            self._require_project(conn, project_id)
            conn.execute(
                f"UPDATE projects SET {', '.join(updates)} WHERE project_id = ?",
                values,
            )
            return self._require_project(conn, project_id)

    def append_chapter(self, project_id: str, chapter: Chapter) -> Project:
        """
        Append the next chapter to a project.

        The chapter must carry exactly the next chapter number; anything
        else (a gap or a duplicate) is rejected. When the last chapter of
        the outline lands, the project becomes COMPLETED.

        Raises:
            ProjectNotFoundError: If project doesn't exist
            InvalidOperationError: If the chapter number is not the next one
        """
        with self._transaction(immediate=True) as conn:
            project = self._require_project(conn, project_id)

            expected = project.next_chapter_number
            if chapter.chapter_number != expected:
                raise InvalidOperationError(
                    f"Project {project_id} expects chapter {expected}, "
                    f"got chapter {chapter.chapter_number}"
                )

            chapters = [c.to_dict() for c in project.chapters] + [chapter.to_dict()]
            status = (
                ProjectStatus.COMPLETED
                if len(chapters) >= project.chapter_count
                else ProjectStatus.DRAFTING
            )

            conn.execute(
                """
                UPDATE projects
                SET chapters = ?, status = ?, current_chapter = ?, updated_at = ?
                WHERE project_id = ?
                """,
                (
                    json.dumps(chapters),
                    status.value,
                    chapter.chapter_number,
                    self._now(),
                    project_id,
                ),
            )
            return self._require_project(conn, project_id)

    def list_projects(self, limit: int = 100) -> list[Project]:
        """List projects, newest first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM projects ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()

        return [self._row_to_project(row) for row in rows]
