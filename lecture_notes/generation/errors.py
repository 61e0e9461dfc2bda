"""
Exceptions raised by the note generation pipeline.

Every error that can leave the orchestrator derives from NotesPipelineError and
carries the HTTP status the API layer should answer with.
"""

from typing import Optional


class NotesPipelineError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# Input errors
class InputInvalid(NotesPipelineError):
    status_code = 400


class InputTooLarge(NotesPipelineError):
    status_code = 400


# Credential errors
class NoCredentialConfigured(NotesPipelineError):
    status_code = 400


class CredentialUnreadable(NotesPipelineError):
    status_code = 500


# Upstream errors
class GenerationServiceError(NotesPipelineError):
    """Exception raised for failed calls to the generation service."""

    status_code = 500
    AUTH_MARKERS = ("API_KEY_INVALID", "PERMISSION_DENIED", "UNAUTHENTICATED")

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.response_text = response_text

    @property
    def is_auth_failure(self) -> bool:
        """True when the upstream rejected the credential itself."""
        if self.upstream_status in (401, 403):
            return True
        body = self.response_text or ""
        return any(marker in body for marker in self.AUTH_MARKERS)


class MalformedUpstreamResponse(GenerationServiceError):
    """A success response that does not contain generated text."""


# Persistence errors
class PersistenceError(NotesPipelineError):
    status_code = 500


class DuplicateTranscript(Exception):
    """A note already exists for this (user, transcript hash) pair."""

    def __init__(self, user_id: str, transcript_hash: str):
        super().__init__(f"Note already exists for transcript {transcript_hash[:12]}")
        self.user_id = user_id
        self.transcript_hash = transcript_hash


# Vault errors
class VaultConfigurationError(Exception):
    """The process-wide encryption secret is missing or unusable."""


class DecryptionFailed(Exception):
    """A stored credential could not be decrypted with the current key."""


# Caption capture errors
class CaptionSourceNotFound(Exception):
    """No caption proxy resource was found among the page's resources."""


class CaptionFetchError(Exception):
    """The caption resource could not be downloaded."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyTranscript(Exception):
    """Captions were fetched but contained no spoken text."""
