"""
Note generation and management API routes.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import func
from sqlmodel import Session, col, select

from lecture_notes.config import get_config
from lecture_notes.api.auth import AuthenticatedUser
from lecture_notes.api.models import Folder, Note, utcnow
from lecture_notes.api.schemas import (
    GenerateNotesRequest,
    GenerateNotesResponse,
    FolderSummary,
    NoteListItem,
    NoteListResponse,
    NoteResponse,
    NoteUpdateRequest,
)
from lecture_notes.api.dependencies import get_current_user, get_db_session, get_orchestrator
from lecture_notes.generation import GenerationOrchestrator
from lecture_notes.generation.export import (
    EXPORT_FORMATS,
    note_to_html,
    note_to_markdown,
    safe_filename,
    strip_tags,
)
from lecture_notes.generation.types import GenerationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])
limiter = Limiter(key_func=get_remote_address, enabled=get_config().rate_limit_enabled)

PREVIEW_LENGTH = 200
UNORGANIZED = ("null", "unorganized")


def _get_owned_note(session: Session, note_id: str, user_id: str) -> Note:
    note = session.exec(
        select(Note).where(Note.id == note_id, Note.user_id == user_id)
    ).first()
    if not note:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


def _folder_summary(note: Note) -> Optional[FolderSummary]:
    return FolderSummary.model_validate(note.folder) if note.folder else None


def _note_response(note: Note, include_transcript: bool = False) -> NoteResponse:
    return NoteResponse(
        id=note.id,
        title=note.title,
        lecture_date=note.lecture_date,
        notes_html=note.notes_html,
        raw_transcript=note.raw_transcript if include_transcript else None,
        lecture_url=note.lecture_url if include_transcript else None,
        created_at=note.created_at,
        updated_at=note.updated_at,
        folder_id=note.folder_id,
        folder=_folder_summary(note),
    )


async def parse_generate_request(request: Request) -> GenerateNotesRequest:
    """
    Read the generation body as a dependency.

    Declared after the user dependency so an unauthenticated caller gets a
    401 even when the body is not valid JSON.
    """
    body = await request.body()
    try:
        return GenerateNotesRequest.model_validate_json(body)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


@router.post(
    "/generate",
    response_model=GenerateNotesResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": GenerateNotesRequest.model_json_schema()}},
        }
    },
)
@limiter.limit(lambda: get_config().generation_rate_limit)
def generate_notes(
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    payload: GenerateNotesRequest = Depends(parse_generate_request),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """
    Generate lecture notes from a transcript.

    Returns the stored note with cached=true when the same transcript was
    already submitted by this user, without calling the generation service.
    """
    result = orchestrator.run(
        user.id,
        GenerationRequest(
            transcript=payload.transcript,
            title=payload.title,
            lecture_date=payload.lecture_date,
            lecture_url=payload.lecture_url,
        ),
    )
    return GenerateNotesResponse(**asdict(result))


@router.get("", response_model=NoteListResponse)
def list_notes(
    folder_id: Optional[str] = Query(None, description="Folder id, or 'unorganized'"),
    search: Optional[str] = Query(None, description="Case-insensitive title search"),
    limit: int = Query(50, ge=1, le=100, description="Max results"),
    offset: int = Query(0, ge=0, description="Offset for pagination"),
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """List the caller's notes, newest first."""
    conditions = [Note.user_id == user.id]

    if folder_id in UNORGANIZED:
        conditions.append(col(Note.folder_id).is_(None))
    elif folder_id:
        conditions.append(Note.folder_id == folder_id)

    if search:
        conditions.append(col(Note.title).ilike(f"%{search}%"))

    total = session.exec(select(func.count()).select_from(Note).where(*conditions)).one()

    statement = (
        select(Note)
        .where(*conditions)
        .order_by(col(Note.created_at).desc())
        .limit(limit)
        .offset(offset)
    )
    notes = session.exec(statement).all()

    return NoteListResponse(
        notes=[
            NoteListItem(
                id=note.id,
                title=note.title,
                lecture_date=note.lecture_date,
                preview=strip_tags(note.notes_html)[:PREVIEW_LENGTH],
                created_at=note.created_at,
                updated_at=note.updated_at,
                folder_id=note.folder_id,
                folder=_folder_summary(note),
            )
            for note in notes
        ],
        total=total,
    )


@router.get("/{note_id}", response_model=NoteResponse)
def get_note(
    note_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Get a note with its transcript and source URL."""
    note = _get_owned_note(session, note_id, user.id)
    return _note_response(note, include_transcript=True)


@router.patch("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Rename a note, move it between folders, or change its lecture date."""
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    note = _get_owned_note(session, note_id, user.id)

    if "title" in updates and not (updates["title"] or "").strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title cannot be empty")

    folder_id = updates.get("folder_id")
    if folder_id is not None:
        folder = session.exec(
            select(Folder).where(Folder.id == folder_id, Folder.user_id == user.id)
        ).first()
        if not folder:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Folder not found")

    for field, value in updates.items():
        setattr(note, field, value.strip() if field == "title" else value)
    note.updated_at = utcnow()

    session.add(note)
    session.commit()
    session.refresh(note)
    return _note_response(note)


@router.delete("/{note_id}")
def delete_note(
    note_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Delete a note permanently."""
    note = _get_owned_note(session, note_id, user.id)
    session.delete(note)
    session.commit()
    logger.info(f"Deleted note {note_id} for user {user.id}")
    return {"success": True}


@router.get("/{note_id}/export")
def export_note(
    note_id: str,
    export_format: str = Query("markdown", alias="format", description="markdown or html"),
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Download a note as a Markdown or standalone HTML file."""
    if export_format not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid format. Allowed: {', '.join(EXPORT_FORMATS)}",
        )

    note = _get_owned_note(session, note_id, user.id)

    if export_format == "markdown":
        content = note_to_markdown(
            note.title, note.notes_html, note.lecture_date, note.lecture_url, note.created_at
        )
        media_type, extension = "text/markdown", "md"
    else:
        content = note_to_html(note.title, note.notes_html, note.lecture_date, note.created_at)
        media_type, extension = "text/html", "html"

    filename = safe_filename(note.title, extension)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
