"""
Lecture notes generation using the Gemini API.

This module provides the GeminiClient class, which turns a lecture transcript
into structured HTML lecture notes and checks user-supplied API keys.
"""

import logging
import re
import time
from typing import List, Optional

import requests
from pydantic import BaseModel, ValidationError

from .errors import GenerationServiceError, MalformedUpstreamResponse

# Configure logging
logger = logging.getLogger(__name__)


SYSTEM_INSTRUCTION = """You are turning a raw university lecture transcript into written lecture notes, as if the professor had typed the lecture out cleanly for students.

Your goal is to preserve the lecture content and level of detail, while making it organized, readable, and mathematically precise.

Follow these rules carefully:

1. Overall goal
   - Rewrite the lecture as structured lecture notes "on paper."
   - Preserve essentially all substantive content.
   - Do NOT significantly shorten the lecture.

2. What to keep vs remove
   - REMOVE: jokes, filler, classroom chatter, technical issues.
   - KEEP: all mathematical content, examples, reasoning, and any important logistics that affect the student (exams, assignments, grading).
   - Condense repetition, but do not omit important reasoning.

3. Structure (topic-based)
   - Break the lecture into sections based on topic transitions.
   - Output HTML with:
     - One <h1> lecture title (infer from content if needed).
     - Multiple <h2> sections, each covering one major topic.
     - Use <p> for prose and <ul><li> for structured explanations.

4. Definitions, theorems, and formulas
   - Rewrite definitions and theorems cleanly and precisely.
   - All mathematical expressions MUST be written using MathML (built-in HTML math).
   - For simple expressions, you can use Unicode symbols directly (×, ÷, ≤, ≥, ≠, ∞, etc.).
   - For complex expressions, use MathML tags wrapped in <math> elements.
   - Example: T(n) = 2<sup>n</sup> - 1 (using <sup> for exponents)
   - Example: <math><mfrac><mn>1</mn><mn>2</mn></mfrac></math> for fractions
   - Ensure all math is mathematically equivalent to the lecture.

5. Proofs and reasoning
   - When a proof or reasoning is presented:
     - First give an informal explanation describing the intuition.
     - Then give a formal, structured version using clear steps.
   - Remain faithful to the lecture content.

6. Examples
   - Rewrite all examples from the lecture.
   - Add clarifying steps so the logic is clear in written form.
   - Do not invent new problems.

7. Tone and style
   - Sound like professor-written lecture notes.
   - Clear, precise, and professional.
   - No study tips or meta commentary.
   - No need for any practice problems unless given in the lecture.

8. Output format
   - Output valid HTML only.
   - Use MathML, HTML superscripts/subscripts, and Unicode symbols for all math.
   - Use only <h1>, <h2>, <p>, <ul><li>, <sup>, <sub>, and <math> for structure."""

USER_PROMPT_TEMPLATE = """Apply the rules to the following transcript:

[BEGIN TRANSCRIPT]
{transcript}
[END TRANSCRIPT]"""

GENERATION_CONFIG = {
    "temperature": 0.4,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 8192,
}

_OPENING_FENCE = re.compile(r"^```(?:html)?[ \t]*\r?\n?", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```$")


# Response shape of generateContent, reduced to the fields we read.
class _Part(BaseModel):
    text: Optional[str] = None


class _Content(BaseModel):
    parts: List[_Part] = []


class _Candidate(BaseModel):
    content: Optional[_Content] = None


class _UsageMetadata(BaseModel):
    totalTokenCount: Optional[int] = None


class GenerateContentResponse(BaseModel):
    candidates: List[_Candidate] = []
    usageMetadata: Optional[_UsageMetadata] = None

    def first_text(self) -> Optional[str]:
        if not self.candidates:
            return None
        content = self.candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text or None


def strip_code_fence(text: str) -> str:
    """Remove a markdown code fence wrapped around generated HTML."""
    text = text.strip()
    text = _OPENING_FENCE.sub("", text, count=1)
    return _CLOSING_FENCE.sub("", text, count=1)


class GeminiClient:
    """
    Client for Gemini's generateContent endpoint.

    The API key is passed per call since every user brings their own.
    """

    def __init__(
        self,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        model: str = "gemini-2.0-flash-lite",
        timeout: int = 120,
        http: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: The base URL for the Gemini API.
            model: The model to use.
            timeout: Request timeout in seconds for generation calls.
            http: Optional requests session.
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def _post(self, payload: dict, api_key: str, timeout: int) -> requests.Response:
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }
        return self.http.post(self.endpoint, headers=headers, json=payload, timeout=timeout)

    def generate(self, transcript: str, api_key: str) -> str:
        """
        Generate HTML lecture notes from a transcript.

        Args:
            transcript: The normalized lecture transcript.
            api_key: The user's Gemini API key.

        Returns:
            The generated HTML, with any code fence removed.

        Raises:
            GenerationServiceError: If the call fails or times out.
            MalformedUpstreamResponse: If the response holds no generated text.
        """
        payload = {
            "system_instruction": {"parts": [{"text": SYSTEM_INSTRUCTION}]},
            "contents": [
                {"parts": [{"text": USER_PROMPT_TEMPLATE.format(transcript=transcript)}]}
            ],
            "generationConfig": GENERATION_CONFIG,
        }

        start_time = time.time()
        try:
            response = self._post(payload, api_key, self.timeout)
        except requests.exceptions.Timeout:
            raise GenerationServiceError(
                f"Gemini API request timed out after {self.timeout}s"
            )
        except requests.exceptions.RequestException as e:
            raise GenerationServiceError(f"Gemini API request failed: {e}")
        duration = time.time() - start_time

        if not response.ok:
            logger.warning(f"Gemini API error {response.status_code} after {duration:.1f}s")
            raise GenerationServiceError(
                f"Gemini API error: {response.text}",
                upstream_status=response.status_code,
                response_text=response.text,
            )

        try:
            data = GenerateContentResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MalformedUpstreamResponse(
                f"Unexpected Gemini API response format: {e}",
                upstream_status=response.status_code,
                response_text=response.text,
            )

        text = data.first_text()
        if text is None:
            raise MalformedUpstreamResponse(
                "Unexpected Gemini API response format",
                upstream_status=response.status_code,
                response_text=response.text,
            )

        notes_html = strip_code_fence(text)
        if not notes_html.strip():
            raise MalformedUpstreamResponse(
                "Gemini API returned empty notes",
                upstream_status=response.status_code,
                response_text=response.text,
            )

        tokens = data.usageMetadata.totalTokenCount if data.usageMetadata else None
        logger.info(
            f"Gemini call successful ({duration:.1f}s). "
            f"Model: {self.model}. Tokens: {tokens if tokens is not None else '?'}"
        )
        return notes_html

    def validate_key(self, api_key: str) -> bool:
        """Check a key with a minimal prompt. Any failure counts as invalid."""
        payload = {
            "contents": [{"parts": [{"text": 'Say "ok"'}]}],
            "generationConfig": {"maxOutputTokens": 10},
        }
        try:
            response = self._post(payload, api_key, timeout=30)
        except requests.exceptions.RequestException as e:
            logger.warning(f"Gemini key validation request failed: {e}")
            return False
        return response.ok
