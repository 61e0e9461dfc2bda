"""
Caption transcript handling.

Turns WebVTT caption text into plain prose, fingerprints it for
deduplication, and locates/downloads the caption track a lecture-capture
page loaded.
"""

import hashlib
import logging
import re
from typing import Iterable, Optional

import requests

from .errors import CaptionFetchError, CaptionSourceNotFound, EmptyTranscript

logger = logging.getLogger(__name__)

VTT_HEADER = "WEBVTT"
CUE_SEPARATOR = "-->"
CAPTION_SOURCE_MARKER = "caption_proxy"

_CUE_INDEX = re.compile(r"^\d+$")
_WHITESPACE = re.compile(r"\s+")


def _is_caption_text(line: str) -> bool:
    t = line.strip()
    if not t:
        return False
    if t == VTT_HEADER:
        return False
    if _CUE_INDEX.match(t):
        return False
    if CUE_SEPARATOR in t:
        return False
    return True


def normalize_transcript(raw: str) -> str:
    """
    Convert cue-based subtitle text into a single line of spoken text.

    Drops the format header, cue numbers, timestamp lines and blank lines,
    keeps caption lines in order and collapses whitespace.

    Args:
        raw: Subtitle file contents.

    Returns:
        The normalized transcript (possibly empty).
    """
    kept = [line for line in re.split(r"\r?\n", raw) if _is_caption_text(line)]
    return _WHITESPACE.sub(" ", " ".join(kept)).strip()


def hash_transcript(transcript: str) -> str:
    """SHA-256 hex digest of a transcript, used as the dedup key."""
    return hashlib.sha256(transcript.encode("utf-8")).hexdigest()


def find_caption_source(resource_urls: Iterable[str]) -> str:
    """
    Pick the caption proxy request out of a page's loaded resources.

    Raises:
        CaptionSourceNotFound: If no resource looks like a caption track.
    """
    for url in resource_urls:
        if CAPTION_SOURCE_MARKER in url:
            return url
    raise CaptionSourceNotFound(
        "No caption_proxy request found. "
        "Try toggling CC on and scrubbing the video, then run again."
    )


def fetch_transcript(
    resource_urls: Iterable[str],
    http: Optional[requests.Session] = None,
    timeout: int = 30,
) -> str:
    """
    Download the page's caption track and normalize it.

    Args:
        resource_urls: URLs of resources the lecture page has loaded.
        http: Optional requests session (cookies for the capture site).
        timeout: Request timeout in seconds.

    Returns:
        Normalized transcript text.

    Raises:
        CaptionSourceNotFound: No caption resource among the URLs.
        CaptionFetchError: The caption request failed.
        EmptyTranscript: The captions held no spoken text.
    """
    url = find_caption_source(resource_urls)
    client = http or requests.Session()

    try:
        response = client.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise CaptionFetchError(f"Failed to fetch captions: {e}")

    if not response.ok:
        raise CaptionFetchError(
            f"Failed to fetch captions: {response.status_code} {response.reason}",
            status_code=response.status_code,
        )

    transcript = normalize_transcript(response.text)
    if not transcript:
        raise EmptyTranscript("VTT was fetched but produced empty text.")

    logger.info(f"Fetched transcript ({len(transcript)} chars) from caption source")
    return transcript
