"""
Scheduler test fixtures.

Base fixtures:
  - Empty database in a temp file
  - Mocked clock at a fixed time
  - Scripted generation client (see tests/conftest.py)

Factories:
  - Projects (optionally with an outline)
  - Outline and chapter jobs with valid payloads
"""

import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator

from novelgen.scheduler import (
    JobType,
    PersistenceAdapter,
    Project,
    QueueManager,
)
from novelgen.scheduler.service import NovelGenerationService


FIXED_DATETIME = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

TEST_OUTLINE = [
    "A courier finds a map stitched into a coat lining.",
    "The map leads to a drowned chapel under the harbour.",
    "The courier bargains with the chapel's keeper and pays in memories.",
]


class MockClock:
    """
    Deterministic clock.

    Starts at a fixed instant and moves only when ticked. Instances are
    callable so they can be passed anywhere a clock is expected.
    """

    def __init__(self, start_time: datetime = FIXED_DATETIME):
        self._current = start_time

    def __call__(self) -> datetime:
        return self._current

    def now(self) -> datetime:
        return self._current

    def tick(self, seconds: float = 1) -> None:
        """Advance time by the given number of seconds."""
        self._current += timedelta(seconds=seconds)

    def set(self, time: datetime) -> None:
        self._current = time


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    Path(db_path).unlink(missing_ok=True)
    Path(f"{db_path}-wal").unlink(missing_ok=True)
    Path(f"{db_path}-shm").unlink(missing_ok=True)


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock()


@pytest.fixture
def persistence(temp_db_path: str, mock_clock: MockClock) -> PersistenceAdapter:
    """Fresh PersistenceAdapter on an empty database."""
    return PersistenceAdapter(temp_db_path, clock=mock_clock)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def queue_manager(persistence: PersistenceAdapter, mock_clock: MockClock) -> QueueManager:
    return QueueManager(persistence, max_retries=2, clock=mock_clock)


@pytest.fixture
def service(temp_db_path: str, fake_client, mock_clock: MockClock) -> NovelGenerationService:
    """Fully wired service on the temp database with the scripted client."""
    return NovelGenerationService.create(
        db_path=temp_db_path,
        client=fake_client,
        poll_interval=0.05,
        max_retries=2,
        clock=mock_clock,
    )


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_project(persistence: PersistenceAdapter, mock_clock: MockClock) -> Callable:
    """Factory for stored projects; pass with_outline=True to attach TEST_OUTLINE."""

    def _create(
        chapter_count: int = 3,
        target_word_count: int = 1600,
        with_outline: bool = False,
    ) -> Project:
        project = Project.create(
            title="The Drowned Chapel",
            premise="A courier carries a map nobody should be able to read.",
            genre="fantasy",
            subgenre="dark",
            chapter_count=chapter_count,
            target_word_count=target_word_count,
            clock=mock_clock,
        )
        persistence.create_project(project)
        if with_outline:
            project = persistence.set_project_outline(
                project.project_id, TEST_OUTLINE[:chapter_count]
            )
        return project

    return _create


@pytest.fixture
def create_job(queue_manager: QueueManager, create_project, mock_clock: MockClock) -> Callable:
    """
    Factory for QUEUED jobs with valid payloads.

    Each created job is one clock tick younger than the previous one.
    """

    def _create(
        job_type: JobType = JobType.OUTLINE_GENERATION,
        project_id: str = None,
        data: dict = None,
        max_retries: int = None,
    ):
        if project_id is None:
            project_id = create_project().project_id

        if data is None:
            if job_type == JobType.OUTLINE_GENERATION:
                data = {
                    "premise": "A courier carries a map nobody should be able to read.",
                    "genre": "fantasy",
                    "subgenre": "dark",
                    "chapter_count": 3,
                }
            else:
                data = {
                    "chapter_number": 1,
                    "premise": "A courier carries a map nobody should be able to read.",
                    "outline": list(TEST_OUTLINE),
                    "previous_chapter_texts": [],
                    "target_word_count": 1600,
                    "genre": "fantasy",
                    "subgenre": "dark",
                }

        job = queue_manager.create(job_type, project_id, data, max_retries=max_retries)
        mock_clock.tick()
        return job

    return _create
