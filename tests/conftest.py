"""
Shared fixtures for the lecture notes tests.

The app is driven through httpx's ASGITransport, which does not run the
lifespan, so the vault, identity provider and Gemini client are injected
through dependency overrides.
"""

import os

# Must be set before lecture_notes modules read the cached config.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENCRYPTION_KEY"] = "test-encryption-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["IDENTITY_URL"] = "http://identity.test"

from typing import Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlmodel import SQLModel, Session

from lecture_notes.api.auth import AuthenticatedUser, get_identity_client
from lecture_notes.api.dependencies import engine, get_gemini_client, get_vault
from lecture_notes.generation import SecretVault
from lecture_notes.generation.errors import GenerationServiceError
from lecture_notes.main import app

NOTES_HTML = "<h1>Graph Theory Basics</h1><h2>Definitions</h2><p>A graph G = (V, E).</p>"
VALID_KEY = "AIza" + "x" * 35


class FakeIdentityClient:
    """Resolves a fixed set of tokens to users."""

    def __init__(self, users: Dict[str, AuthenticatedUser]):
        self.users = users

    def get_user(self, token: str) -> Optional[AuthenticatedUser]:
        return self.users.get(token)


class FakeGeminiClient:
    """Records calls and answers with canned HTML or a canned error."""

    def __init__(self):
        self.calls: List[str] = []
        self.html = NOTES_HTML
        self.error: Optional[GenerationServiceError] = None
        self.key_is_valid = True

    def generate(self, transcript: str, api_key: str) -> str:
        self.calls.append(transcript)
        if self.error is not None:
            raise self.error
        return self.html

    def validate_key(self, api_key: str) -> bool:
        return self.key_is_valid


@pytest.fixture
def vault():
    return SecretVault(os.environ["ENCRYPTION_KEY"])


@pytest.fixture
def gemini():
    return FakeGeminiClient()


@pytest.fixture
def tables():
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


def open_session() -> Session:
    """Fresh session on the app's engine, for inspecting rows between requests."""
    return Session(engine)


@pytest.fixture
def users():
    return {
        "alice-token": AuthenticatedUser(id="user-alice", email="alice@utexas.edu"),
        "bob-token": AuthenticatedUser(id="user-bob", email="bob@utexas.edu"),
    }


@pytest.fixture
async def client(tables, vault, gemini, users):
    app.dependency_overrides[get_vault] = lambda: vault
    app.dependency_overrides[get_gemini_client] = lambda: gemini
    app.dependency_overrides[get_identity_client] = lambda: FakeIdentityClient(users)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def alice():
    return {"Authorization": "Bearer alice-token"}


@pytest.fixture
def bob():
    return {"Authorization": "Bearer bob-token"}
