"""
API endpoint tests for the lecture notes service.
"""

import pytest
from sqlmodel import select

from conftest import NOTES_HTML, VALID_KEY, open_session
from lecture_notes.api.models import Note, User
from lecture_notes.generation.errors import GenerationServiceError

TRANSCRIPT = "Today we define graphs. A graph is a pair of vertices and edges."


async def store_key(client, headers):
    r = await client.post("/api/user/api-key", json={"api_key": VALID_KEY}, headers=headers)
    assert r.status_code == 200
    return r


async def generate(client, headers, transcript=TRANSCRIPT, **extra):
    return await client.post(
        "/api/notes/generate", json={"transcript": transcript, **extra}, headers=headers
    )


# General

@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] in ["healthy", "degraded"]
    assert data["checks"]["database"] is True


@pytest.mark.asyncio
async def test_ready(client):
    r = await client.get("/ready")
    assert r.status_code == 200
    data = r.json()
    assert data["ready"] is True
    assert data["missing"] is None


# Authentication

@pytest.mark.asyncio
async def test_generate_requires_session(client):
    r = await client.post("/api/notes/generate", json={"transcript": TRANSCRIPT})
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_unknown_token_rejected(client):
    r = await client.get("/api/notes", headers={"Authorization": "Bearer nobody"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_first_request_creates_user_row(client, alice):
    r = await client.get("/api/notes", headers=alice)
    assert r.status_code == 200
    with open_session() as s:
        user = s.get(User, "user-alice")
    assert user is not None
    assert user.email == "alice@utexas.edu"


# Generation

@pytest.mark.asyncio
async def test_generate_without_api_key(client, alice, gemini):
    r = await generate(client, alice)
    assert r.status_code == 400
    assert r.json()["error"] == "No API key configured. Please add your Gemini API key in Settings."
    assert gemini.calls == []


@pytest.mark.asyncio
async def test_generate_and_cache(client, alice, gemini):
    await store_key(client, alice)

    r = await generate(client, alice)
    assert r.status_code == 200
    first = r.json()
    assert first["cached"] is False
    assert first["title"] == "Graph Theory Basics"
    assert first["notes_html"] == NOTES_HTML

    r = await generate(client, alice)
    assert r.status_code == 200
    second = r.json()
    assert second["cached"] is True
    assert second["id"] == first["id"]
    assert len(gemini.calls) == 1

    with open_session() as s:
        assert len(s.exec(select(Note)).all()) == 1


@pytest.mark.asyncio
async def test_cache_is_per_user(client, alice, bob):
    await store_key(client, alice)
    await store_key(client, bob)

    a = (await generate(client, alice)).json()
    b = (await generate(client, bob)).json()
    assert b["cached"] is False
    assert a["id"] != b["id"]


@pytest.mark.asyncio
async def test_cache_hit_needs_no_api_key(client, alice, gemini):
    await store_key(client, alice)
    await generate(client, alice)
    await client.delete("/api/user/api-key", headers=alice)

    r = await generate(client, alice)
    assert r.status_code == 200
    assert r.json()["cached"] is True


@pytest.mark.asyncio
async def test_generate_uses_supplied_title_and_metadata(client, alice):
    await store_key(client, alice)
    r = await generate(
        client, alice,
        title="Lecture 4",
        lecture_date="2025-02-03",
        lecture_url="https://lectures.example.edu/watch/4",
    )
    assert r.status_code == 200
    note_id = r.json()["id"]
    assert r.json()["title"] == "Lecture 4"

    r = await client.get(f"/api/notes/{note_id}", headers=alice)
    data = r.json()
    assert data["lecture_date"] == "2025-02-03"
    assert data["lecture_url"] == "https://lectures.example.edu/watch/4"
    assert data["raw_transcript"] == TRANSCRIPT


@pytest.mark.asyncio
async def test_generate_falls_back_to_untitled(client, alice, gemini):
    gemini.html = "<h2>No heading</h2><p>Body</p>"
    await store_key(client, alice)
    r = await generate(client, alice)
    assert r.json()["title"] == "Untitled Lecture"


@pytest.mark.asyncio
@pytest.mark.parametrize("transcript", [None, "", "   \n\t", 123])
async def test_generate_rejects_missing_transcript(client, alice, gemini, transcript):
    r = await generate(client, alice, transcript=transcript)
    assert r.status_code == 400
    assert r.json()["error"] == "Transcript is required"
    assert gemini.calls == []


@pytest.mark.asyncio
async def test_generate_length_boundary(client, alice, gemini):
    await store_key(client, alice)

    r = await generate(client, alice, transcript="a" * 50_000)
    assert r.status_code == 200

    r = await generate(client, alice, transcript="b" * 50_001)
    assert r.status_code == 400
    assert r.json()["error"] == "Transcript too long. Maximum 50000 characters."
    assert len(gemini.calls) == 1


@pytest.mark.asyncio
async def test_generate_invalid_json(client, alice):
    r = await client.post(
        "/api/notes/generate",
        content="{not json",
        headers={**alice, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid JSON body"}


@pytest.mark.asyncio
async def test_generate_invalid_json_without_session(client):
    r = await client.post(
        "/api/notes/generate",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_generate_invalid_lecture_date(client, alice):
    r = await generate(client, alice, lecture_date="not-a-date")
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid request:")


@pytest.mark.asyncio
async def test_generated_note_persists_timestamps(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]

    r = await client.patch(f"/api/notes/{note_id}", json={"title": "Renamed"}, headers=alice)
    assert r.status_code == 200

    with open_session() as s:
        note = s.get(Note, note_id)
    assert note.title == "Renamed"
    assert note.updated_at is not None


@pytest.mark.asyncio
async def test_auth_failure_marks_key_invalid(client, alice, gemini):
    await store_key(client, alice)
    body = '{"error": {"code": 400, "status": "INVALID_ARGUMENT", "details": [{"reason": "API_KEY_INVALID"}]}}'
    gemini.error = GenerationServiceError(
        f"Gemini API error: {body}", upstream_status=400, response_text=body
    )

    r = await generate(client, alice)
    assert r.status_code == 500
    assert r.json()["error"].startswith("Failed to generate notes:")

    status = (await client.get("/api/user/api-key/status", headers=alice)).json()
    assert status["has_key"] is True
    assert status["is_valid"] is False

    with open_session() as s:
        assert s.exec(select(Note)).all() == []


@pytest.mark.asyncio
async def test_upstream_outage_keeps_key_valid(client, alice, gemini):
    await store_key(client, alice)
    gemini.error = GenerationServiceError(
        "Gemini API error: overloaded", upstream_status=503, response_text="overloaded"
    )

    r = await generate(client, alice)
    assert r.status_code == 500

    status = (await client.get("/api/user/api-key/status", headers=alice)).json()
    assert status["is_valid"] is True


# API key

@pytest.mark.asyncio
async def test_api_key_status_without_key(client, alice):
    r = await client.get("/api/user/api-key/status", headers=alice)
    assert r.status_code == 200
    assert r.json() == {"has_key": False, "is_valid": False, "last_verified": None}


@pytest.mark.asyncio
async def test_save_api_key(client, alice):
    r = await store_key(client, alice)
    assert r.json() == {"success": True, "validated": True}

    status = (await client.get("/api/user/api-key/status", headers=alice)).json()
    assert status["has_key"] is True
    assert status["is_valid"] is True
    assert status["last_verified"] is not None
    assert VALID_KEY not in str(status)

    with open_session() as s:
        stored = s.get(User, "user-alice").gemini_api_key_encrypted
    assert stored and VALID_KEY not in stored


@pytest.mark.asyncio
@pytest.mark.parametrize("api_key,error", [
    (None, "API key is required"),
    ("", "API key is required"),
    ("short-key", "Invalid API key format"),
])
async def test_save_api_key_rejects_bad_input(client, alice, api_key, error):
    r = await client.post("/api/user/api-key", json={"api_key": api_key}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == error


@pytest.mark.asyncio
async def test_save_api_key_rejected_by_gemini(client, alice, gemini):
    gemini.key_is_valid = False
    r = await client.post("/api/user/api-key", json={"api_key": VALID_KEY}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid API key.")

    status = (await client.get("/api/user/api-key/status", headers=alice)).json()
    assert status["has_key"] is False


@pytest.mark.asyncio
async def test_delete_api_key(client, alice):
    await store_key(client, alice)
    r = await client.delete("/api/user/api-key", headers=alice)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    status = (await client.get("/api/user/api-key/status", headers=alice)).json()
    assert status == {"has_key": False, "is_valid": False, "last_verified": None}


# Notes

@pytest.mark.asyncio
async def test_list_notes(client, alice, bob):
    await store_key(client, alice)
    await generate(client, alice, transcript="first lecture", title="Sets")
    await generate(client, alice, transcript="second lecture", title="Graphs")

    r = await client.get("/api/notes", headers=alice)
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2
    assert {n["title"] for n in data["notes"]} == {"Sets", "Graphs"}
    assert data["notes"][0]["preview"].startswith("Graph Theory Basics")

    r = await client.get("/api/notes", params={"search": "gra"}, headers=alice)
    assert [n["title"] for n in r.json()["notes"]] == ["Graphs"]

    r = await client.get("/api/notes", headers=bob)
    assert r.json() == {"notes": [], "total": 0}


@pytest.mark.asyncio
async def test_list_notes_pagination(client, alice):
    await store_key(client, alice)
    for i in range(3):
        await generate(client, alice, transcript=f"lecture {i}")

    r = await client.get("/api/notes", params={"limit": 2, "offset": 0}, headers=alice)
    data = r.json()
    assert data["total"] == 3
    assert len(data["notes"]) == 2


@pytest.mark.asyncio
async def test_get_nonexistent_note(client, alice):
    r = await client.get("/api/notes/nonexistent-id", headers=alice)
    assert r.status_code == 404
    assert r.json() == {"error": "Note not found"}


@pytest.mark.asyncio
async def test_notes_are_private(client, alice, bob):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]

    assert (await client.get(f"/api/notes/{note_id}", headers=bob)).status_code == 404
    assert (await client.delete(f"/api/notes/{note_id}", headers=bob)).status_code == 404


@pytest.mark.asyncio
async def test_update_note(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]

    r = await client.patch(f"/api/notes/{note_id}", json={"title": "  Renamed  "}, headers=alice)
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed"

    r = await client.patch(f"/api/notes/{note_id}", json={"title": "   "}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == "Title cannot be empty"

    r = await client.patch(f"/api/notes/{note_id}", json={}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == "No fields to update"


@pytest.mark.asyncio
async def test_move_note_into_other_users_folder(client, alice, bob):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]
    folder_id = (await client.post("/api/folders", json={"name": "Bob's"}, headers=bob)).json()["id"]

    r = await client.patch(f"/api/notes/{note_id}", json={"folder_id": folder_id}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == "Folder not found"


@pytest.mark.asyncio
async def test_delete_note(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]

    r = await client.delete(f"/api/notes/{note_id}", headers=alice)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = await client.get(f"/api/notes/{note_id}", headers=alice)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_export_markdown(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice, lecture_date="2025-02-03")).json()["id"]

    r = await client.get(f"/api/notes/{note_id}/export", headers=alice)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/markdown")
    assert r.headers["content-disposition"] == 'attachment; filename="Graph_Theory_Basics.md"'
    assert r.text.startswith('---\ntitle: "Graph Theory Basics"\ndate: 2025-02-03\n---\n')
    assert "## Definitions" in r.text


@pytest.mark.asyncio
async def test_export_html(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice, lecture_date="2025-02-03")).json()["id"]

    r = await client.get(f"/api/notes/{note_id}/export", params={"format": "html"}, headers=alice)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "<title>Graph Theory Basics</title>" in r.text
    assert "February 3, 2025" in r.text


@pytest.mark.asyncio
async def test_export_invalid_format(client, alice):
    await store_key(client, alice)
    note_id = (await generate(client, alice)).json()["id"]

    r = await client.get(f"/api/notes/{note_id}/export", params={"format": "pdf"}, headers=alice)
    assert r.status_code == 400


# Folders

@pytest.mark.asyncio
async def test_create_and_list_folders(client, alice):
    r = await client.post("/api/folders", json={"name": " CS 331 "}, headers=alice)
    assert r.status_code == 200
    folder = r.json()
    assert folder["name"] == "CS 331"
    assert folder["color"] == "#bf5700"

    r = await client.get("/api/folders", headers=alice)
    data = r.json()
    assert [f["name"] for f in data["folders"]] == ["CS 331"]
    assert data["unorganizedCount"] == 0
    assert data["totalNotes"] == 0


@pytest.mark.asyncio
async def test_create_folder_requires_name(client, alice):
    r = await client.post("/api/folders", json={"name": "  "}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == "Folder name is required"


@pytest.mark.asyncio
async def test_duplicate_folder_name(client, alice, bob):
    await client.post("/api/folders", json={"name": "Math"}, headers=alice)

    r = await client.post("/api/folders", json={"name": "Math"}, headers=alice)
    assert r.status_code == 400
    assert r.json()["error"] == "A folder with this name already exists"

    r = await client.post("/api/folders", json={"name": "Math"}, headers=bob)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_folder_counts_and_filter(client, alice):
    await store_key(client, alice)
    folder_id = (await client.post("/api/folders", json={"name": "Math"}, headers=alice)).json()["id"]
    filed = (await generate(client, alice, transcript="filed lecture")).json()["id"]
    await generate(client, alice, transcript="loose lecture")

    r = await client.patch(f"/api/notes/{filed}", json={"folder_id": folder_id}, headers=alice)
    assert r.status_code == 200
    assert r.json()["folder"]["name"] == "Math"

    data = (await client.get("/api/folders", headers=alice)).json()
    assert data["folders"][0]["noteCount"] == 1
    assert data["unorganizedCount"] == 1
    assert data["totalNotes"] == 2

    r = await client.get("/api/notes", params={"folder_id": folder_id}, headers=alice)
    assert [n["id"] for n in r.json()["notes"]] == [filed]

    r = await client.get("/api/notes", params={"folder_id": "unorganized"}, headers=alice)
    assert r.json()["total"] == 1


@pytest.mark.asyncio
async def test_update_folder(client, alice):
    folder_id = (await client.post("/api/folders", json={"name": "Math"}, headers=alice)).json()["id"]

    r = await client.patch(
        f"/api/folders/{folder_id}", json={"name": "Algebra", "color": ""}, headers=alice
    )
    assert r.status_code == 200
    assert r.json()["name"] == "Algebra"
    assert r.json()["color"] == "#bf5700"

    r = await client.patch("/api/folders/nonexistent-id", json={"name": "X"}, headers=alice)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_delete_folder_keeps_notes(client, alice):
    await store_key(client, alice)
    folder_id = (await client.post("/api/folders", json={"name": "Math"}, headers=alice)).json()["id"]
    note_id = (await generate(client, alice)).json()["id"]
    await client.patch(f"/api/notes/{note_id}", json={"folder_id": folder_id}, headers=alice)

    r = await client.delete(f"/api/folders/{folder_id}", headers=alice)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = await client.get(f"/api/notes/{note_id}", headers=alice)
    assert r.status_code == 200
    assert r.json()["folder_id"] is None
