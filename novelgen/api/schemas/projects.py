"""
Project API schemas.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class ProjectCreateRequest(BaseModel):
    """Request to create a novel project."""

    title: str = Field(..., min_length=1, description="Working title")
    premise: str = Field(..., min_length=1, description="Story premise")
    genre: str = Field(..., description="Genre key, e.g. 'fantasy'")
    subgenre: str = Field(..., description="Subgenre key, e.g. 'epic'")
    chapter_count: int = Field(..., ge=1, le=100, description="Number of chapters")
    target_word_count: int = Field(
        default=1600,
        ge=100,
        le=20000,
        description="Target words per chapter",
    )


class ChapterResponse(BaseModel):
    """One generated chapter."""

    chapter_number: int
    content: str
    word_count: int
    generated_at: str
    regenerated: bool = False
    regeneration_count: int = 0


class ProjectResponse(BaseModel):
    """A project with its outline and chapters."""

    project_id: str
    title: str
    premise: str
    genre: str
    subgenre: str
    chapter_count: int
    target_word_count: int
    status: str = Field(..., description="setup/outline/drafting/completed")
    outline: List[str] = Field(default_factory=list)
    chapters: List[ChapterResponse] = Field(default_factory=list)
    current_chapter: int = 0
    created_at: str
    updated_at: str


class ProjectListResponse(BaseModel):
    """List of projects, newest first."""

    projects: List[ProjectResponse] = Field(default_factory=list)
    total: int


class OutlineRequest(BaseModel):
    """Optional overrides for outline generation; defaults come from the project."""

    premise: Optional[str] = Field(default=None, description="Premise override")
    chapter_count: Optional[int] = Field(default=None, ge=1, le=100, description="Chapter count override")


class GenreResponse(BaseModel):
    """Supported genres and their subgenres."""

    genres: dict = Field(default_factory=dict, description="genre -> list of subgenres")
