from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class GenerationState(str, Enum):
    """States a generation request moves through."""
    VALIDATING = "validating"
    DEDUPING = "deduping"
    RESOLVING_CREDENTIAL = "resolving_credential"
    GENERATING = "generating"
    PERSISTING = "persisting"
    DONE = "done"


@dataclass
class GenerationRequest:
    """A note generation request as submitted by a client."""
    transcript: Any
    title: Optional[str] = None
    lecture_date: Optional[date] = None
    lecture_url: Optional[str] = None


@dataclass
class NoteFields:
    """Column values for a newly generated note."""
    title: str
    transcript_hash: str
    raw_transcript: str
    notes_html: str
    lecture_date: Optional[date] = None
    lecture_url: Optional[str] = None


@dataclass
class GenerationResult:
    """What the generation endpoint returns."""
    id: str
    title: str
    notes_html: str
    created_at: datetime
    cached: bool


@dataclass
class CredentialStatus:
    has_key: bool
    is_valid: bool
    last_verified: Optional[datetime] = None


@dataclass
class GenerationContext:
    """Request-scoped state carried between orchestrator handlers."""
    user_id: str
    request: GenerationRequest
    state: GenerationState = GenerationState.VALIDATING
    transcript: str = ""
    transcript_hash: str = ""
    api_key: Optional[str] = field(default=None, repr=False)
    notes_html: Optional[str] = None
    result: Optional[GenerationResult] = None
