"""
Persistence and cache lookup for generated notes and user credentials.
"""

import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from lecture_notes.api.models import Note, User, utcnow
from .errors import DuplicateTranscript, PersistenceError
from .types import CredentialStatus, NoteFields

logger = logging.getLogger(__name__)

UNTITLED_LECTURE = "Untitled Lecture"

_FIRST_H1 = re.compile(r"<h1[^>]*>([^<]+)</h1>", re.IGNORECASE)


def infer_title(notes_html: str) -> str:
    """Title from the first top-level heading of generated notes."""
    match = _FIRST_H1.search(notes_html)
    if match:
        title = match.group(1).strip()
        if title:
            return title
    return UNTITLED_LECTURE


class NoteStore:
    """
    Note and credential persistence for one request's database session.

    The (user, transcript hash) uniqueness is enforced by the database, so
    concurrent inserts of the same transcript resolve to one row.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_by_hash(self, user_id: str, transcript_hash: str) -> Optional[Note]:
        statement = select(Note).where(
            Note.user_id == user_id,
            Note.transcript_hash == transcript_hash,
        )
        return self.session.exec(statement).first()

    def insert(self, user_id: str, fields: NoteFields) -> Note:
        """
        Store a newly generated note.

        Raises:
            DuplicateTranscript: A note for this transcript already exists.
            PersistenceError: Any other database failure.
        """
        note = Note(
            user_id=user_id,
            title=fields.title,
            lecture_date=fields.lecture_date,
            transcript_hash=fields.transcript_hash,
            raw_transcript=fields.raw_transcript,
            notes_html=fields.notes_html,
            lecture_url=fields.lecture_url,
        )
        try:
            self.session.add(note)
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if self.find_by_hash(user_id, fields.transcript_hash) is not None:
                raise DuplicateTranscript(user_id, fields.transcript_hash) from e
            logger.error(f"Integrity error saving note for user {user_id}: {e}")
            raise PersistenceError("Failed to save note") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error saving note for user {user_id}: {e}")
            raise PersistenceError("Failed to save note") from e

        self.session.refresh(note)
        return note

    # Credentials

    def _get_user(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_credential(self, user_id: str) -> Optional[str]:
        """Encrypted API key for the user, if one is configured."""
        user = self._get_user(user_id)
        if user is None:
            return None
        return user.gemini_api_key_encrypted or None

    def save_credential(self, user_id: str, ciphertext: str) -> None:
        """Store a freshly validated key."""
        user = self._get_user(user_id) or User(id=user_id)
        user.gemini_api_key_encrypted = ciphertext
        user.api_key_is_valid = True
        user.api_key_last_verified = utcnow()
        self._commit_user(user)

    def clear_credential(self, user_id: str) -> None:
        user = self._get_user(user_id)
        if user is None:
            return
        user.gemini_api_key_encrypted = None
        user.api_key_is_valid = False
        user.api_key_last_verified = None
        self._commit_user(user)

    def mark_credential_invalid(self, user_id: str) -> None:
        """Flag the user's key as rejected upstream. Safe to repeat."""
        user = self._get_user(user_id)
        if user is None or not user.api_key_is_valid:
            return
        user.api_key_is_valid = False
        self._commit_user(user)
        logger.info(f"Marked API key invalid for user {user_id}")

    def credential_status(self, user_id: str) -> CredentialStatus:
        user = self._get_user(user_id)
        if user is None:
            return CredentialStatus(has_key=False, is_valid=False)
        return CredentialStatus(
            has_key=bool(user.gemini_api_key_encrypted),
            is_valid=bool(user.api_key_is_valid),
            last_verified=user.api_key_last_verified,
        )

    def _commit_user(self, user: User) -> None:
        try:
            self.session.add(user)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error updating credential for user {user.id}: {e}")
            raise PersistenceError("Failed to update API key") from e
