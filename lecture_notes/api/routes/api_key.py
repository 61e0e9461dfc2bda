"""
User API key routes.

Users bring their own Gemini key. It is checked against Gemini before being
stored, stored only encrypted, and never returned.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from lecture_notes.api.auth import AuthenticatedUser
from lecture_notes.api.schemas import ApiKeyRequest, ApiKeyStatusResponse
from lecture_notes.api.dependencies import (
    get_current_user,
    get_gemini_client,
    get_note_store,
    get_vault,
)
from lecture_notes.generation import GeminiClient, NoteStore, SecretVault

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user/api-key", tags=["API key"])

MIN_API_KEY_LENGTH = 20


@router.post("")
def save_api_key(
    payload: ApiKeyRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
    vault: SecretVault = Depends(get_vault),
    client: GeminiClient = Depends(get_gemini_client),
):
    """Validate a Gemini API key with a minimal request, then store it encrypted."""
    api_key = payload.api_key
    if not api_key or not isinstance(api_key, str):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="API key is required")

    api_key = api_key.strip()
    if len(api_key) < MIN_API_KEY_LENGTH:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid API key format")

    if not client.validate_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid API key. Please check your Gemini API key and try again.",
        )

    store.save_credential(user.id, vault.encrypt(api_key))
    logger.info(f"Stored validated API key for user {user.id}")
    return {"success": True, "validated": True}


@router.delete("")
def delete_api_key(
    user: AuthenticatedUser = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    """Remove the stored key."""
    store.clear_credential(user.id)
    logger.info(f"Cleared API key for user {user.id}")
    return {"success": True}


@router.get("/status", response_model=ApiKeyStatusResponse)
def api_key_status(
    user: AuthenticatedUser = Depends(get_current_user),
    store: NoteStore = Depends(get_note_store),
):
    """Whether a key is stored and whether it last worked. Never returns the key."""
    key_status = store.credential_status(user.id)
    return ApiKeyStatusResponse(
        has_key=key_status.has_key,
        is_valid=key_status.is_valid,
        last_verified=key_status.last_verified,
    )
