import uuid
from datetime import date, datetime, timezone
from typing import Optional, List

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import SQLModel, Field, Relationship


def utcnow() -> datetime:
    """Timezone-aware current time; stored timestamps are always UTC."""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "user"

    id: str = Field(primary_key=True)  # identity provider's user id
    email: Optional[str] = None
    gemini_api_key_encrypted: Optional[str] = None
    api_key_is_valid: bool = False
    api_key_last_verified: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)


class Folder(SQLModel, table=True):
    __tablename__ = "folder"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_folder_user_name"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    name: str
    color: str = "#bf5700"
    icon: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    # Relationship
    notes: List["Note"] = Relationship(back_populates="folder")


class Note(SQLModel, table=True):
    __tablename__ = "note"
    __table_args__ = (
        UniqueConstraint("user_id", "transcript_hash", name="uq_note_user_transcript"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    title: str
    lecture_date: Optional[date] = None
    transcript_hash: str = Field(max_length=64)
    raw_transcript: str = Field(sa_column=Column(Text, nullable=False))
    notes_html: str = Field(sa_column=Column(Text, nullable=False))
    lecture_url: Optional[str] = None
    folder_id: Optional[str] = Field(default=None, foreign_key="folder.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    # Relationship
    folder: Optional[Folder] = Relationship(back_populates="notes")
