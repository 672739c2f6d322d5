"""
Jobs router.

Endpoints:
- GET /jobs/stats - Job counts per status
- POST /jobs/process-next - Run one queued job (serverless trigger)
- POST /jobs/cleanup - Delete old terminal jobs
- GET /jobs/{job_id} - Job status
- POST /jobs/{job_id}/cancel - Cancel a QUEUED job
- GET /jobs/{job_id}/events - Live progress as Server-Sent Events
"""

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from novelgen.infra.progress_hub import ProgressEvent
from novelgen.scheduler.entities import JobStatus, JobView
from novelgen.scheduler.errors import InvalidOperationError, JobNotFoundError

from .._service_state import get_service
from ..schemas.jobs import (
    JobCleanupRequest,
    JobCleanupResponse,
    JobResponse,
    ProcessNextResponse,
    QueueStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEARTBEAT_SECONDS = 15.0


def to_job_response(view: JobView) -> JobResponse:
    return JobResponse(**view.to_dict())


@router.get("/stats", response_model=QueueStatsResponse)
def queue_stats():
    """Job counts per status."""
    return QueueStatsResponse(**get_service().get_queue_stats())


@router.post("/process-next", response_model=ProcessNextResponse)
def process_next():
    """
    Claim and run one queued job.

    Blocks until the job finishes. Returns processed=false when the
    queue is empty.
    """
    result = get_service().process_next_job()
    return ProcessNextResponse(**result.to_dict())


@router.post("/cleanup", response_model=JobCleanupResponse)
def cleanup_jobs(request: JobCleanupRequest):
    """Delete COMPLETED/FAILED jobs not updated for older_than_days."""
    deleted = get_service().cleanup_old_jobs(request.older_than_days)
    return JobCleanupResponse(deleted=deleted)


@router.get("/{job_id}", response_model=JobResponse)
def get_job(job_id: str):
    """Get job status, progress, result and error."""
    view = get_service().get_job(job_id)
    if view is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return to_job_response(view)


@router.post("/{job_id}/cancel", response_model=JobResponse)
def cancel_job(job_id: str):
    """Cancel a job that has not been picked up yet."""
    try:
        view = get_service().cancel_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    except InvalidOperationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return to_job_response(view)


def _sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_dict())}\n\n"


def _terminal_event(view: JobView) -> ProgressEvent:
    stage = "completed" if view.status == JobStatus.COMPLETED else "failed"
    return ProgressEvent(
        job_id=view.job_id,
        stage=stage,
        progress=view.progress,
        message=view.error or "Job completed",
    )


@router.get("/{job_id}/events")
async def job_events(job_id: str):
    """
    Stream progress events for a job.

    The last known event is sent first. The stream ends after a
    completed or failed event.
    """
    service = get_service()
    try:
        stream = await asyncio.to_thread(service.get_progress_stream, job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    loop = asyncio.get_running_loop()
    events: asyncio.Queue = asyncio.Queue()

    def on_event(event: ProgressEvent) -> None:
        # Published from the worker thread
        loop.call_soon_threadsafe(events.put_nowait, event)

    unsubscribe = stream.subscribe(on_event, replay_last=True)

    async def generate():
        try:
            last = stream.last_event
            view = await asyncio.to_thread(service.get_job, job_id)
            if view is not None and view.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                if last is None or not last.is_final:
                    yield _sse(_terminal_event(view))
                    return

            while True:
                try:
                    event = await asyncio.wait_for(events.get(), timeout=SSE_HEARTBEAT_SECONDS)
                except asyncio.TimeoutError:
                    # Jobs run by a worker in another process publish nothing here
                    view = await asyncio.to_thread(service.get_job, job_id)
                    if view is None or view.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                        if view is not None:
                            yield _sse(_terminal_event(view))
                        return
                    yield ": keep-alive\n\n"
                    continue

                yield _sse(event)
                if event.is_final:
                    return
        finally:
            unsubscribe()
            logger.debug(f"SSE client left job {job_id}")

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
