#!/usr/bin/env python3
"""
Send a lecture's captions to the notes API.

Usage:
    python submit_captions.py <captions.vtt | caption_proxy URL> [title]

Example:
    python submit_captions.py lecture12.vtt "Graph Theory Basics"
    python submit_captions.py "https://lectures.example.edu/caption_proxy?id=123"

Environment:
    NOTES_API_URL        Base URL of the API (default http://localhost:8000)
    NOTES_SESSION_TOKEN  Session token issued by the identity provider
"""

import os
import sys
from pathlib import Path
from typing import Optional

import requests
from rich.console import Console

from lecture_notes.generation.errors import (
    CaptionFetchError,
    CaptionSourceNotFound,
    EmptyTranscript,
)
from lecture_notes.generation.transcript import fetch_transcript, normalize_transcript

console = Console()


def load_transcript(source: str) -> str:
    """Normalized transcript from a caption URL or a local subtitle file."""
    if source.startswith(("http://", "https://")):
        return fetch_transcript([source])

    transcript = normalize_transcript(Path(source).read_text(encoding="utf-8"))
    if not transcript:
        raise EmptyTranscript("VTT was read but produced empty text.")
    return transcript


def submit(api_url: str, token: str, transcript: str, title: Optional[str] = None,
           lecture_url: Optional[str] = None) -> dict:
    """POST a transcript to the generation endpoint and return the JSON body."""
    payload = {"transcript": transcript}
    if title:
        payload["title"] = title
    if lecture_url:
        payload["lecture_url"] = lecture_url

    response = requests.post(
        f"{api_url.rstrip('/')}/api/notes/generate",
        headers={"Authorization": f"Bearer {token}"},
        json=payload,
        timeout=180,
    )
    data = response.json()
    if not response.ok:
        raise RuntimeError(data.get("error", f"HTTP {response.status_code}"))
    return data


def main():
    if len(sys.argv) < 2:
        print("Usage: python submit_captions.py <captions.vtt | caption_proxy URL> [title]")
        sys.exit(1)

    source = sys.argv[1]
    title = sys.argv[2] if len(sys.argv) > 2 else None

    from dotenv import load_dotenv
    load_dotenv()

    api_url = os.getenv("NOTES_API_URL", "http://localhost:8000")
    token = os.getenv("NOTES_SESSION_TOKEN", "")
    if not token:
        console.print("[red]✗ Not logged in: set NOTES_SESSION_TOKEN[/red]")
        sys.exit(1)

    try:
        transcript = load_transcript(source)
    except (CaptionSourceNotFound, CaptionFetchError, EmptyTranscript, OSError) as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)

    console.print(f"Transcript: {len(transcript)} characters")

    lecture_url = source if source.startswith(("http://", "https://")) else None
    try:
        with console.status("Generating notes..."):
            note = submit(api_url, token, transcript, title, lecture_url)
    except (requests.exceptions.RequestException, RuntimeError, ValueError) as e:
        console.print(f"[red]✗ Failed to generate notes: {e}[/red]")
        sys.exit(1)

    label = "cached" if note.get("cached") else "new"
    console.print(f"[green]✓ {note['title']}[/green] ({label}, id {note['id']})")


if __name__ == "__main__":
    main()
