import asyncio
import json

from libs.core.exceptions import PersistenceError

TEXT = "FastAPI makes it easy to build APIs with Python type hints. " * 3


def create(client, content=TEXT, **extra):
    response = client.post("/notes", json={"content": content, **extra})
    assert response.status_code == 201
    return response.json()


def parse_sse(body: str):
    return [
        json.loads(frame[len("data: "):])
        for frame in body.split("\n\n")
        if frame.startswith("data: ")
    ]


def test_create_note_endpoint(client):
    data = create(client, title="API notes")
    note = data["note"]
    assert note["content"] == TEXT
    assert note["owner_id"] == "user-1"
    assert note["source_type"] == "text"
    assert data["admission"] == {
        "status": "eligible",
        "eligible": True,
        "wordCount": len(TEXT.split(" ")),
        "charCount": len(TEXT),
    }


def test_create_short_note_is_stored_but_not_eligible(client, store):
    data = create(client, content="hi")
    assert data["admission"]["status"] == "too_short"
    assert data["note"]["id"] in store.notes


def test_requests_without_user_are_rejected(client):
    response = client.get("/notes", headers={"X-User-Id": ""})
    assert response.status_code == 401


def test_get_and_list_notes(client):
    note_id = create(client)["note"]["id"]

    assert client.get(f"/notes/{note_id}").json()["note"]["id"] == note_id
    assert [n["id"] for n in client.get("/notes").json()["notes"]] == [note_id]

    other = client.get(f"/notes/{note_id}", headers={"X-User-Id": "user-2"})
    assert other.status_code == 404
    assert other.json() == {"error": "Note not found"}


def test_update_note_endpoint(client):
    note_id = create(client)["note"]["id"]

    response = client.patch(f"/notes/{note_id}", json={"tags": ["FastAPI", "Web"]})
    assert response.status_code == 200
    assert response.json()["note"]["tags"] == ["fastapi", "web"]

    assert client.patch(f"/notes/{note_id}", json={"title": ""}).status_code == 422
    assert client.patch("/notes/missing", json={"title": "x"}).status_code == 404


def test_process_note_endpoint(client, store):
    note_id = create(client)["note"]["id"]

    response = client.post(f"/notes/{note_id}/process")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "summary": "A short summary.",
        "tags": ["python", "ai"],
        "chunks": 1,
        "tokens": (len(TEXT) + 3) // 4,
    }
    assert store.notes[note_id].summary == "A short summary."


def test_process_rejections(client, store, guard):
    short_id = create(client, content="hi")["note"]["id"]
    response = client.post(f"/notes/{short_id}/process")
    assert response.status_code == 400
    assert response.json() == {
        "error": "Insufficient content to process. Need at least 10 characters.",
        "charCount": 2,
        "message": "This note has 2 characters.",
    }

    assert client.post("/notes/missing/process").status_code == 404

    note_id = create(client)["note"]["id"]
    with guard.hold(note_id):
        assert client.post(f"/notes/{note_id}/process").status_code == 409

    store.fail_update = True
    response = client.post(f"/notes/{note_id}/process")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to update note with AI data"}


def test_word_limit_is_consistent_across_entry_points(client):
    long_text = " ".join(["word"] * 5001)
    data = create(client, content=long_text)
    assert data["admission"]["status"] == "too_long"
    assert data["admission"]["wordCount"] == 5001
    note_id = data["note"]["id"]

    expected = {
        "error": "Note exceeds 5,000 word limit for AI processing",
        "wordCount": 5001,
        "message": (
            "Large notes are not automatically processed to manage costs. "
            "This note has 5,001 words."
        ),
    }
    processed = client.post(f"/notes/{note_id}/process")
    streamed = client.get(f"/notes/{note_id}/stream")
    assert processed.status_code == streamed.status_code == 400
    assert processed.json() == streamed.json() == expected
    assert client.embeddings.calls == []
    assert client.llm.calls == []


def test_stream_endpoint(client, store):
    note_id = create(client)["note"]["id"]

    response = client.get(f"/notes/{note_id}/stream")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache, no-transform"

    events = parse_sse(response.text)
    assert events[0] == {"type": "status", "message": "Generating summary..."}
    assert events[-1] == {
        "type": "complete",
        "summary": "A short summary.",
        "tags": ["python", "ai"],
        "tokens": (len(TEXT) + 3) // 4,
    }
    assert sum(e["type"] in ("complete", "error") for e in events) == 1
    events_log = asyncio.run(store.list_events(note_id))
    assert events_log[-1].details["streaming"] is True


def test_stream_missing_note(client):
    response = client.get("/notes/missing/stream")
    assert response.status_code == 404
    assert response.json() == {"error": "Note not found"}


def test_search_endpoint(client):
    note_id = create(client)["note"]["id"]
    create(client, content="Something about gardening and tomatoes")

    response = client.post("/search", json={"query": "fastapi"})
    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["results"][0]["id"] == note_id

    assert client.post("/search", json={"query": ""}).status_code == 422
    assert client.post("/search", json={"query": "   "}).status_code == 400


def test_short_note_rejection_is_consistent_across_entry_points(client):
    data = create(client, content="hi")
    assert data["admission"]["status"] == "too_short"
    assert data["admission"]["charCount"] == 2
    note_id = data["note"]["id"]

    processed = client.post(f"/notes/{note_id}/process")
    streamed = client.get(f"/notes/{note_id}/stream")
    assert processed.status_code == streamed.status_code == 400
    assert processed.json() == streamed.json() == {
        "error": "Insufficient content to process. Need at least 10 characters.",
        "charCount": 2,
        "message": "This note has 2 characters.",
    }


def test_store_read_failure_is_not_reported_as_save_failure(client, store, monkeypatch):
    note_id = create(client)["note"]["id"]

    async def broken_get(note_id, owner_id):
        raise PersistenceError("db down")

    monkeypatch.setattr(store, "get_note", broken_get)

    for response in (
        client.post(f"/notes/{note_id}/process"),
        client.get(f"/notes/{note_id}/stream"),
    ):
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to load note"}
    assert client.llm.calls == []


def test_create_note_store_failure(client, store, monkeypatch):
    async def broken_create(owner_id, **fields):
        raise PersistenceError("db down")

    monkeypatch.setattr(store, "create_note", broken_create)
    response = client.post("/notes", json={"content": TEXT})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create note"}


def test_event_log_failure_does_not_fail_create_or_update(client, store):
    store.fail_events = True

    data = create(client)
    note_id = data["note"]["id"]
    assert note_id in store.notes

    response = client.patch(f"/notes/{note_id}", json={"title": "Renamed"})
    assert response.status_code == 200
    assert store.notes[note_id].title == "Renamed"
    assert store.events == []
