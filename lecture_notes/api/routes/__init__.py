"""API routes package."""

from lecture_notes.api.routes.notes import router as notes_router, limiter
from lecture_notes.api.routes.folders import router as folders_router
from lecture_notes.api.routes.api_key import router as api_key_router

__all__ = ["notes_router", "folders_router", "api_key_router", "limiter"]
