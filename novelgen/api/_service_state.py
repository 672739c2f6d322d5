"""
Service singleton for the API.

Created during the FastAPI lifespan. The background worker is NOT
started automatically; use POST /worker/start, or run the worker
process from the CLI.

Usage:
    # In lifespan:
    init_service(db_path)

    # In routers:
    service = get_service()
"""

from pathlib import Path
from typing import Optional

from novelgen.scheduler.service import NOVELGEN_DB_PATH, NovelGenerationService


_service: Optional[NovelGenerationService] = None


def init_service(db_path: str | Path = NOVELGEN_DB_PATH, **kwargs) -> NovelGenerationService:
    """
    Initialize the service singleton (idempotent).

    Args:
        db_path: Path to SQLite database
        **kwargs: Passed to NovelGenerationService.create()
    """
    global _service

    if _service is not None:
        return _service

    _service = NovelGenerationService.create(db_path=db_path, **kwargs)
    return _service


def set_service(service: Optional[NovelGenerationService]) -> None:
    """Install a prebuilt service (tests, embedding)."""
    global _service
    _service = service


def get_service() -> NovelGenerationService:
    """
    Get the service singleton.

    Raises:
        RuntimeError: If init_service() has not run
    """
    if _service is None:
        raise RuntimeError(
            "Novel generation service not initialized. "
            "Ensure init_service() is called during startup."
        )

    return _service


def shutdown_service() -> None:
    """Stop the worker if running and drop the singleton."""
    global _service

    if _service is not None:
        if _service.is_running:
            _service.stop()

        _service = None
