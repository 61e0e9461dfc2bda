"""
Note generation pipeline for lecture transcripts.
"""

from .gemini import GeminiClient
from .orchestrator import GenerationOrchestrator
from .store import NoteStore, infer_title
from .transcript import normalize_transcript, hash_transcript, fetch_transcript
from .vault import SecretVault
