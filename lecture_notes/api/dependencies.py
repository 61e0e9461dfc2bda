"""
Dependency injection utilities for FastAPI.
"""

from typing import Generator, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from lecture_notes.config import Config, get_config
from lecture_notes.api.auth import AuthenticatedUser, authenticate, ensure_user_row
from lecture_notes.generation import GeminiClient, GenerationOrchestrator, NoteStore, SecretVault


def create_db_engine(database_url: str) -> Engine:
    """Engine for the configured database; SQLite connections are shared across threads."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


# Database configuration
engine = create_db_engine(get_config().database_url)


def get_db_session() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    with Session(engine) as session:
        yield session


def get_vault(request: Request) -> SecretVault:
    """The vault built at startup."""
    vault: Optional[SecretVault] = getattr(request.app.state, "vault", None)
    if vault is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unavailable: encryption is not configured",
        )
    return vault


def get_gemini_client(config: Config = Depends(get_config)) -> GeminiClient:
    return GeminiClient(
        base_url=config.gemini_base_url,
        model=config.gemini_model,
        timeout=config.generation_timeout,
    )


def get_current_user(
    user: AuthenticatedUser = Depends(authenticate),
    session: Session = Depends(get_db_session),
) -> AuthenticatedUser:
    """Authenticated caller, with a local user row guaranteed to exist."""
    ensure_user_row(session, user)
    return user


def get_note_store(session: Session = Depends(get_db_session)) -> NoteStore:
    return NoteStore(session)


def get_orchestrator(
    store: NoteStore = Depends(get_note_store),
    vault: SecretVault = Depends(get_vault),
    client: GeminiClient = Depends(get_gemini_client),
    config: Config = Depends(get_config),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        store=store,
        vault=vault,
        client=client,
        max_transcript_length=config.max_transcript_length,
    )


def validate_configuration(config: Config) -> Dict[str, bool]:
    """Check which required settings are configured."""
    return {
        "encryption_key": bool(config.encryption_key),
        "identity_provider": config.identity_configured,
    }
