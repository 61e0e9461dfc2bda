"""
Session verification against the external identity provider.

Sessions are issued elsewhere; this module only resolves an opaque bearer
token to a user and makes sure that user has a row locally.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from lecture_notes.config import Config, get_config
from lecture_notes.api.models import User

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None


class IdentityClient:
    """Resolves session tokens through the identity provider's user endpoint."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: int = 10):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout

    def get_user(self, token: str) -> Optional[AuthenticatedUser]:
        headers = {"Authorization": f"Bearer {token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        try:
            response = requests.get(
                f"{self.base_url}/auth/v1/user",
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Identity provider request failed: {e}")
            return None

        if response.status_code != 200:
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Identity provider returned a non-JSON user response")
            return None
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return AuthenticatedUser(id=str(data["id"]), email=data.get("email"))


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_identity_client(config: Config = Depends(get_config)) -> Optional[IdentityClient]:
    if not config.identity_configured:
        return None
    return IdentityClient(config.identity_url, config.identity_api_key)


def ensure_user_row(session: Session, user: AuthenticatedUser) -> User:
    """Create the local user row the first time a user is seen."""
    row = session.get(User, user.id)
    if row is None:
        try:
            session.add(User(id=user.id, email=user.email))
            session.commit()
        except IntegrityError:
            # A concurrent first request inserted the row.
            session.rollback()
        row = session.get(User, user.id)
        if row is None:
            raise RuntimeError(f"User row for {user.id} missing after insert")
    elif user.email and row.email != user.email:
        row.email = user.email
        session.add(row)
        session.commit()
    return row


def authenticate(
    authorization: Optional[str] = Header(None),
    identity: Optional[IdentityClient] = Depends(get_identity_client),
    config: Config = Depends(get_config),
) -> AuthenticatedUser:
    """
    Resolve the caller from the Authorization header.

    Raises:
        HTTPException: 401 if unauthenticated, 403 if the email domain is not allowed.
    """
    token = _bearer_token(authorization)
    if token is None or identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    user = identity.get_user(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    domain = config.allowed_email_domain
    if domain and not (user.email or "").lower().strip().endswith(domain.lower()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Please use an email address ending in {domain}",
        )
    return user
