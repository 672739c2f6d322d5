"""
Job API schemas.

Supports /jobs/* and /worker/* endpoints.
"""

from typing import List, Optional, Literal
from pydantic import BaseModel, Field


# =============================================================================
# Jobs
# =============================================================================


class JobResponse(BaseModel):
    """Caller view of a job."""

    job_id: str = Field(..., description="Unique job identifier")
    job_type: Literal["outline_generation", "chapter_generation"] = Field(..., description="Job type")
    project_id: str = Field(..., description="Owning project")
    status: Literal["queued", "in_progress", "completed", "failed"] = Field(..., description="Job status")
    progress: int = Field(..., ge=0, le=100, description="Progress percentage")
    result: Optional[dict] = Field(default=None, description="Handler result once completed")
    error: Optional[str] = Field(default=None, description="Last error message")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    updated_at: str = Field(..., description="Last update timestamp (ISO format)")
    started_at: Optional[str] = Field(default=None, description="Most recent claim timestamp")
    completed_at: Optional[str] = Field(default=None, description="Terminal timestamp")


class JobListResponse(BaseModel):
    """Jobs of one project, newest first."""

    jobs: List[JobResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of jobs returned")


class JobEnqueueResponse(BaseModel):
    """Response after queueing a job."""

    job_id: str
    project_id: str
    job_type: str
    status: str = "queued"


class ProcessNextResponse(BaseModel):
    """Outcome of a single worker pass."""

    processed: bool = Field(..., description="False when the queue was empty")
    job_id: Optional[str] = Field(default=None, description="Job that was run")
    error: Optional[str] = Field(default=None, description="Failure message if the attempt failed")


class JobCleanupRequest(BaseModel):
    """Delete terminal jobs older than N days."""

    older_than_days: int = Field(default=7, ge=0, description="Age threshold in days")


class JobCleanupResponse(BaseModel):
    """Result of a cleanup run."""

    deleted: int = Field(..., description="Number of jobs deleted")


class QueueStatsResponse(BaseModel):
    """Job counts per status."""

    queued: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0


# =============================================================================
# Worker
# =============================================================================


class WorkerStatusResponse(BaseModel):
    """Background worker state."""

    is_running: bool
    is_busy: bool
    poll_interval: float
    current_job_id: Optional[str] = None
    queue: QueueStatsResponse = Field(default_factory=QueueStatsResponse)


class WorkerActionResponse(BaseModel):
    """Response from worker start/stop."""

    success: bool
    message: str
    status: WorkerStatusResponse


class ReconcileResponse(BaseModel):
    """Reconciliation statistics."""

    stale_failed: int = 0
    orphans_requeued: int = 0
    orphans_failed: int = 0
    errors: List[str] = Field(default_factory=list)
