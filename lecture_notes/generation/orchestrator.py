"""
Note generation orchestrator.

Runs one generation request through its states:

    VALIDATING -> DEDUPING -> DONE                      (cache hit)
    VALIDATING -> DEDUPING -> RESOLVING_CREDENTIAL
               -> GENERATING -> PERSISTING -> DONE      (cache miss)

Each state has one handler that returns the next state. Handlers raise
NotesPipelineError subclasses to exit early.
"""

import logging
from typing import Callable, Dict

from lecture_notes.api.models import Note
from .errors import (
    CredentialUnreadable,
    DecryptionFailed,
    DuplicateTranscript,
    GenerationServiceError,
    InputInvalid,
    InputTooLarge,
    NoCredentialConfigured,
    PersistenceError,
)
from .gemini import GeminiClient
from .store import NoteStore, infer_title
from .transcript import hash_transcript
from .types import (
    GenerationContext,
    GenerationRequest,
    GenerationResult,
    GenerationState,
    NoteFields,
)
from .vault import SecretVault

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_LENGTH = 50_000


def _result(note: Note, cached: bool) -> GenerationResult:
    return GenerationResult(
        id=note.id,
        title=note.title,
        notes_html=note.notes_html,
        created_at=note.created_at,
        cached=cached,
    )


class GenerationOrchestrator:
    """
    Turns a transcript into a stored note, reusing an existing note when the
    same user already submitted the same transcript.
    """

    def __init__(
        self,
        store: NoteStore,
        vault: SecretVault,
        client: GeminiClient,
        max_transcript_length: int = MAX_TRANSCRIPT_LENGTH,
    ):
        self.store = store
        self.vault = vault
        self.client = client
        self.max_transcript_length = max_transcript_length
        self._handlers: Dict[GenerationState, Callable[[GenerationContext], GenerationState]] = {
            GenerationState.VALIDATING: self._validate,
            GenerationState.DEDUPING: self._dedupe,
            GenerationState.RESOLVING_CREDENTIAL: self._resolve_credential,
            GenerationState.GENERATING: self._generate,
            GenerationState.PERSISTING: self._persist,
        }

    def run(self, user_id: str, request: GenerationRequest) -> GenerationResult:
        """
        Process a generation request for a user.

        Raises:
            NotesPipelineError: On any failure; carries the HTTP status.
        """
        ctx = GenerationContext(user_id=user_id, request=request)
        while ctx.state is not GenerationState.DONE:
            logger.debug(f"Generation for user {user_id}: {ctx.state.value}")
            ctx.state = self._handlers[ctx.state](ctx)
        return ctx.result

    def _validate(self, ctx: GenerationContext) -> GenerationState:
        transcript = ctx.request.transcript
        if not transcript or not isinstance(transcript, str):
            raise InputInvalid("Transcript is required")
        # Size is checked before content, so an oversized blank body is too large.
        if len(transcript) > self.max_transcript_length:
            raise InputTooLarge(
                f"Transcript too long. Maximum {self.max_transcript_length} characters."
            )
        if not transcript.strip():
            raise InputInvalid("Transcript is required")
        ctx.transcript = transcript
        return GenerationState.DEDUPING

    def _dedupe(self, ctx: GenerationContext) -> GenerationState:
        ctx.transcript_hash = hash_transcript(ctx.transcript)
        existing = self.store.find_by_hash(ctx.user_id, ctx.transcript_hash)
        if existing is None:
            return GenerationState.RESOLVING_CREDENTIAL
        logger.info(f"Cache hit for user {ctx.user_id}: note {existing.id}")
        ctx.result = _result(existing, cached=True)
        return GenerationState.DONE

    def _resolve_credential(self, ctx: GenerationContext) -> GenerationState:
        ciphertext = self.store.get_credential(ctx.user_id)
        if not ciphertext:
            raise NoCredentialConfigured(
                "No API key configured. Please add your Gemini API key in Settings."
            )
        try:
            ctx.api_key = self.vault.decrypt(ciphertext)
        except DecryptionFailed:
            logger.error(f"Stored API key for user {ctx.user_id} could not be decrypted")
            raise CredentialUnreadable("Failed to decrypt API key")
        return GenerationState.GENERATING

    def _generate(self, ctx: GenerationContext) -> GenerationState:
        try:
            ctx.notes_html = self.client.generate(ctx.transcript, ctx.api_key)
        except GenerationServiceError as e:
            if e.is_auth_failure:
                self.store.mark_credential_invalid(ctx.user_id)
            logger.error(f"Generation failed for user {ctx.user_id}: {e.message}")
            raise GenerationServiceError(
                f"Failed to generate notes: {e.message}",
                upstream_status=e.upstream_status,
                response_text=e.response_text,
            ) from e
        finally:
            ctx.api_key = None
        return GenerationState.PERSISTING

    def _persist(self, ctx: GenerationContext) -> GenerationState:
        request = ctx.request
        fields = NoteFields(
            title=request.title or infer_title(ctx.notes_html),
            transcript_hash=ctx.transcript_hash,
            raw_transcript=ctx.transcript,
            notes_html=ctx.notes_html,
            lecture_date=request.lecture_date,
            lecture_url=request.lecture_url or None,
        )
        try:
            note = self.store.insert(ctx.user_id, fields)
        except DuplicateTranscript:
            # A concurrent request for the same transcript committed first.
            winner = self.store.find_by_hash(ctx.user_id, ctx.transcript_hash)
            if winner is None:
                raise PersistenceError("Failed to save note")
            logger.info(f"Concurrent duplicate for user {ctx.user_id}: returning note {winner.id}")
            ctx.result = _result(winner, cached=True)
            return GenerationState.DONE

        logger.info(f"Generated note {note.id} for user {ctx.user_id}")
        ctx.result = _result(note, cached=False)
        return GenerationState.DONE
