"""
Projects router.

Endpoints:
- POST /projects - Create a project
- GET /projects - List projects
- GET /projects/genres - Supported genres and subgenres
- GET /projects/{project_id} - Project with outline and chapters
- POST /projects/{project_id}/outline - Queue outline generation
- POST /projects/{project_id}/chapters/next - Queue the next chapter
- GET /projects/{project_id}/jobs - Jobs for the project
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from novelgen.scheduler.entities import JobType, Project
from novelgen.scheduler.errors import InvalidOperationError, ProjectNotFoundError
from novelgen.story.genres import list_genres

from .._service_state import get_service
from ..schemas.jobs import JobEnqueueResponse, JobListResponse
from ..schemas.projects import (
    ChapterResponse,
    GenreResponse,
    OutlineRequest,
    ProjectCreateRequest,
    ProjectListResponse,
    ProjectResponse,
)
from .jobs import to_job_response

router = APIRouter()


def to_project_response(project: Project) -> ProjectResponse:
    return ProjectResponse(
        project_id=project.project_id,
        title=project.title,
        premise=project.premise,
        genre=project.genre,
        subgenre=project.subgenre,
        chapter_count=project.chapter_count,
        target_word_count=project.target_word_count,
        status=project.status.value,
        outline=list(project.outline),
        chapters=[ChapterResponse(**chapter.to_dict()) for chapter in project.chapters],
        current_chapter=project.current_chapter,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def _project_or_404(project_id: str) -> Project:
    try:
        return get_service().get_project(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(request: ProjectCreateRequest):
    """Create a project in setup status."""
    project = get_service().create_project(
        title=request.title,
        premise=request.premise,
        genre=request.genre,
        subgenre=request.subgenre,
        chapter_count=request.chapter_count,
        target_word_count=request.target_word_count,
    )
    return to_project_response(project)


@router.get("", response_model=ProjectListResponse)
def list_projects(limit: int = Query(default=100, ge=1, le=500)):
    """List projects, newest first."""
    projects = get_service().list_projects(limit)
    return ProjectListResponse(
        projects=[to_project_response(project) for project in projects],
        total=len(projects),
    )


@router.get("/genres", response_model=GenreResponse)
def genres():
    """Supported genres and subgenres."""
    return GenreResponse(genres=list_genres())


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(project_id: str):
    """Get a project with its outline and chapters."""
    return to_project_response(_project_or_404(project_id))


@router.post("/{project_id}/outline", response_model=JobEnqueueResponse, status_code=202)
def generate_outline(project_id: str, request: Optional[OutlineRequest] = None):
    """
    Queue outline generation. The worker fills in the outline.

    A chapter_count in the request re-plans the novel: the stored outline
    sets the project's chapter count.
    """
    project = _project_or_404(project_id)
    request = request or OutlineRequest()

    try:
        job_id = get_service().enqueue_outline_job(
            project_id=project_id,
            premise=request.premise or project.premise,
            genre=project.genre,
            subgenre=project.subgenre,
            chapter_count=request.chapter_count or project.chapter_count,
        )
    except InvalidOperationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return JobEnqueueResponse(
        job_id=job_id,
        project_id=project_id,
        job_type=JobType.OUTLINE_GENERATION.value,
    )


@router.post("/{project_id}/chapters/next", response_model=JobEnqueueResponse, status_code=202)
def generate_next_chapter(project_id: str):
    """Queue the project's next chapter from its stored outline and chapters."""
    try:
        job_id = get_service().enqueue_next_chapter(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    except InvalidOperationError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return JobEnqueueResponse(
        job_id=job_id,
        project_id=project_id,
        job_type=JobType.CHAPTER_GENERATION.value,
    )


@router.get("/{project_id}/jobs", response_model=JobListResponse)
def list_project_jobs(project_id: str, limit: int = Query(default=50, ge=1, le=500)):
    """Jobs for a project, newest first."""
    _project_or_404(project_id)
    views = get_service().list_project_jobs(project_id, limit)
    return JobListResponse(jobs=[to_job_response(view) for view in views], total=len(views))
