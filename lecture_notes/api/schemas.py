"""
Pydantic schemas for API request/response models.
"""

from datetime import date, datetime
from typing import Any, Optional, List
from pydantic import BaseModel, Field


# Generation Schemas
class GenerateNotesRequest(BaseModel):
    """Request model for generating notes from a transcript."""
    # Typed loosely so the orchestrator can answer a bad transcript itself.
    transcript: Any = Field(None, description="Normalized lecture transcript")
    title: Optional[str] = None
    lecture_date: Optional[date] = None
    lecture_url: Optional[str] = None


class GenerateNotesResponse(BaseModel):
    """Response model for a generated (or cached) note."""
    id: str
    title: str
    notes_html: str
    created_at: datetime
    cached: bool


# Folder Schemas
class FolderSummary(BaseModel):
    """Folder as embedded in note responses."""
    id: str
    name: str
    color: str
    icon: Optional[str] = None

    class Config:
        from_attributes = True


class FolderResponse(BaseModel):
    """Response model for folder details."""
    id: str
    name: str
    color: str
    icon: Optional[str] = None
    created_at: datetime
    noteCount: int = 0

    class Config:
        from_attributes = True


class FolderListResponse(BaseModel):
    folders: List[FolderResponse]
    unorganizedCount: int
    totalNotes: int


class FolderCreateRequest(BaseModel):
    name: Any = None
    color: Optional[str] = None
    icon: Optional[str] = None


class FolderUpdateRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None


# Note Schemas
class NoteListItem(BaseModel):
    """A note in the dashboard listing."""
    id: str
    title: str
    lecture_date: Optional[date] = None
    preview: str
    created_at: datetime
    updated_at: datetime
    folder_id: Optional[str] = None
    folder: Optional[FolderSummary] = None


class NoteListResponse(BaseModel):
    """Response model for paginated note list."""
    notes: List[NoteListItem]
    total: int


class NoteResponse(BaseModel):
    """Response model for note details."""
    id: str
    title: str
    lecture_date: Optional[date] = None
    notes_html: str
    raw_transcript: Optional[str] = None
    lecture_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    folder_id: Optional[str] = None
    folder: Optional[FolderSummary] = None

    class Config:
        from_attributes = True


class NoteUpdateRequest(BaseModel):
    title: Optional[str] = None
    folder_id: Optional[str] = None
    lecture_date: Optional[date] = None


# API key Schemas
class ApiKeyRequest(BaseModel):
    api_key: Any = None


class ApiKeyStatusResponse(BaseModel):
    has_key: bool
    is_valid: bool
    last_verified: Optional[datetime] = None


# Health Check Schemas
class HealthCheckResponse(BaseModel):
    """Response model for health check."""
    status: str
    service: str
    checks: dict
    timestamp: datetime


class ReadinessCheckResponse(BaseModel):
    """Response model for readiness check."""
    ready: bool
    checks: dict
    missing: Optional[List[str]] = None
