"""
Folder management API routes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from lecture_notes.api.auth import AuthenticatedUser
from lecture_notes.api.models import Folder, Note
from lecture_notes.api.schemas import (
    FolderCreateRequest,
    FolderListResponse,
    FolderResponse,
    FolderUpdateRequest,
)
from lecture_notes.api.dependencies import get_current_user, get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["Folders"])

DEFAULT_COLOR = "#bf5700"
DUPLICATE_NAME = "A folder with this name already exists"


def _get_owned_folder(session: Session, folder_id: str, user_id: str) -> Folder:
    folder = session.exec(
        select(Folder).where(Folder.id == folder_id, Folder.user_id == user_id)
    ).first()
    if not folder:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Folder not found")
    return folder


def _commit_folder(session: Session, folder: Folder) -> None:
    """Commit a folder, mapping a name clash to a 400."""
    try:
        session.add(folder)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=DUPLICATE_NAME)
    session.refresh(folder)


@router.get("", response_model=FolderListResponse)
def list_folders(
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """List folders with note counts, plus the number of notes in no folder."""
    folders = session.exec(
        select(Folder).where(Folder.user_id == user.id).order_by(col(Folder.created_at))
    ).all()

    folder_ids = session.exec(select(Note.folder_id).where(Note.user_id == user.id)).all()

    count_map = {}
    unorganized_count = 0
    for folder_id in folder_ids:
        if folder_id:
            count_map[folder_id] = count_map.get(folder_id, 0) + 1
        else:
            unorganized_count += 1

    return FolderListResponse(
        folders=[
            FolderResponse(
                id=folder.id,
                name=folder.name,
                color=folder.color,
                icon=folder.icon,
                created_at=folder.created_at,
                noteCount=count_map.get(folder.id, 0),
            )
            for folder in folders
        ],
        unorganizedCount=unorganized_count,
        totalNotes=len(folder_ids),
    )


@router.post("", response_model=FolderResponse)
def create_folder(
    payload: FolderCreateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Create a folder. Names are unique per user."""
    name = payload.name
    if not name or not isinstance(name, str) or not name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Folder name is required")

    folder = Folder(
        user_id=user.id,
        name=name.strip(),
        color=payload.color or DEFAULT_COLOR,
        icon=payload.icon or None,
    )
    _commit_folder(session, folder)
    logger.info(f"Created folder {folder.id} for user {user.id}")
    return FolderResponse.model_validate(folder)


@router.patch("/{folder_id}", response_model=FolderResponse)
def update_folder(
    folder_id: str,
    payload: FolderUpdateRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Rename, recolor or change the icon of a folder."""
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    if "name" in updates:
        name = (updates["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Folder name is required")
        updates["name"] = name
    if "color" in updates and not updates["color"]:
        updates["color"] = DEFAULT_COLOR

    folder = _get_owned_folder(session, folder_id, user.id)
    for field, value in updates.items():
        setattr(folder, field, value)
    _commit_folder(session, folder)

    note_count = len(session.exec(select(Note.id).where(Note.folder_id == folder.id)).all())
    response = FolderResponse.model_validate(folder)
    response.noteCount = note_count
    return response


@router.delete("/{folder_id}")
def delete_folder(
    folder_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db_session),
):
    """Delete a folder. Its notes are kept and become unorganized."""
    folder = _get_owned_folder(session, folder_id, user.id)

    # Move notes out of the folder first (foreign key constraint)
    notes = session.exec(
        select(Note).where(Note.folder_id == folder.id, Note.user_id == user.id)
    ).all()
    for note in notes:
        note.folder_id = None
        session.add(note)

    session.delete(folder)
    session.commit()

    logger.info(f"Deleted folder {folder_id} for user {user.id}")
    return {"success": True}
