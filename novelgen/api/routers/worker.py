"""
Worker control router.

Endpoints:
- POST /worker/start - Start the background poll loop
- POST /worker/stop - Stop it (the job in hand finishes first)
- GET /worker/status - Worker state and queue counts
- POST /worker/reconcile - Fail stale jobs, requeue orphans
"""

import logging

from fastapi import APIRouter

from .._service_state import get_service
from ..schemas.jobs import (
    QueueStatsResponse,
    ReconcileResponse,
    WorkerActionResponse,
    WorkerStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _status() -> WorkerStatusResponse:
    service = get_service()
    return WorkerStatusResponse(
        **service.get_worker_status(),
        queue=QueueStatsResponse(**service.get_queue_stats()),
    )


@router.post("/start", response_model=WorkerActionResponse)
def start_worker():
    """Start the background worker. Reconciles first."""
    service = get_service()

    if service.is_running:
        return WorkerActionResponse(
            success=False,
            message="Worker is already running",
            status=_status(),
        )

    stats = service.start(run_reconcile=True)
    return WorkerActionResponse(
        success=True,
        message=(
            f"Worker started ({stats.get('stale_failed', 0)} stale failed, "
            f"{stats.get('orphans_requeued', 0)} orphans requeued)"
        ),
        status=_status(),
    )


@router.post("/stop", response_model=WorkerActionResponse)
def stop_worker():
    """Stop the background worker gracefully."""
    service = get_service()

    if not service.is_running:
        return WorkerActionResponse(
            success=False,
            message="Worker is not running",
            status=_status(),
        )

    service.stop()
    return WorkerActionResponse(success=True, message="Worker stopped", status=_status())


@router.get("/status", response_model=WorkerStatusResponse)
def worker_status():
    """Current worker state."""
    return _status()


@router.post("/reconcile", response_model=ReconcileResponse)
def reconcile():
    """Run reconciliation now. Safe to repeat."""
    return ReconcileResponse(**get_service().reconcile())
