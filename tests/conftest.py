import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Keep the module-level engine off the network during tests
os.environ.setdefault("POSTGRES_URI", "sqlite+aiosqlite://")

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.core.exceptions import NotFoundError, PersistenceError, UpstreamModelError
from libs.core.models import Chunk, EventType, Note, NoteEvent, utcnow
from libs.core.settings import Settings
from libs.db import RecordStore, SqlRecordStore, init_db, session_scope
from libs.llm import LLMClient, ModelGateway
from libs.usecases import EnrichmentGuard

PROMPTS = ROOT / "config" / "prompts.yaml"


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "prompts_path": PROMPTS,
        "llm_timeout_seconds": 5.0,
        "embedding_timeout_seconds": 5.0,
        "embedding_dim": 4,
    }
    values.update(overrides)
    return Settings(**values)


class FakeLLM(LLMClient):
    """Scriptable text generator; routes calls by their system prompt."""

    def __init__(
        self,
        summary: str = "A short summary.",
        fragments: Sequence[str] = ("A short ", "summary."),
        tags_raw: str = '["Python", "AI"]',
        fail_summary: bool = False,
        fail_tags: bool = False,
        stream_error_after: Optional[int] = None,
    ) -> None:
        self.summary = summary
        self.fragments = list(fragments)
        self.tags_raw = tags_raw
        self.fail_summary = fail_summary
        self.fail_tags = fail_tags
        self.stream_error_after = stream_error_after
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def _is_tags(system: str) -> bool:
        return "JSON array" in system

    def complete(self, system, text, *, temperature, max_tokens, model=None):
        kind = "tags" if self._is_tags(system) else "summary"
        self.calls.append(
            {"kind": kind, "text": text, "temperature": temperature, "max_tokens": max_tokens}
        )
        if kind == "tags":
            if self.fail_tags:
                raise RuntimeError("tags model down")
            return self.tags_raw
        if self.fail_summary:
            raise RuntimeError("summary model down")
        return self.summary

    def stream(self, system, text, *, temperature, max_tokens, model=None) -> Iterator[str]:
        self.calls.append({"kind": "stream", "text": text})
        for i, fragment in enumerate(self.fragments):
            if self.stream_error_after is not None and i >= self.stream_error_after:
                raise RuntimeError("stream broke")
            yield fragment
        if self.stream_error_after is not None and self.stream_error_after >= len(self.fragments):
            raise RuntimeError("stream broke")


class FakeEmbeddings:
    def __init__(self, dim: int = 4, fail_on: Optional[int] = None) -> None:
        self.dim = dim
        self.fail_on = fail_on
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        index = len(self.calls)
        self.calls.append(text)
        if self.fail_on is not None and index == self.fail_on:
            raise UpstreamModelError(f"embedding failed for chunk {index}")
        return [float(len(text)), float(index), 0.0, 1.0]


class MemoryStore(RecordStore):
    """Dict-backed record store for API and use case tests."""

    def __init__(self) -> None:
        self.notes: Dict[str, Note] = {}
        self.chunks: Dict[str, List[Chunk]] = {}
        self.events: List[NoteEvent] = []
        self.fail_update = False
        self.fail_events = False

    async def create_note(self, owner_id: str, **fields: Any) -> Note:
        note = Note(id=str(uuid4()), owner_id=owner_id, **fields)
        self.notes[note.id] = note
        return note

    async def get_note(self, note_id: str, owner_id: str) -> Optional[Note]:
        note = self.notes.get(note_id)
        if note is None or note.owner_id != owner_id:
            return None
        return note

    async def list_notes(self, owner_id: str) -> List[Note]:
        notes = [n for n in self.notes.values() if n.owner_id == owner_id]
        return sorted(notes, key=lambda n: n.created_at, reverse=True)

    async def update_note(self, note_id: str, **fields: Any) -> Note:
        if self.fail_update:
            raise PersistenceError("database unavailable")
        if note_id not in self.notes:
            raise NotFoundError(note_id)
        note = self.notes[note_id].model_copy(update={**fields, "updated_at": utcnow()})
        self.notes[note_id] = note
        return note

    async def replace_chunks(self, note_id: str) -> int:
        return len(self.chunks.pop(note_id, []))

    async def insert_chunk(self, note_id, index, content, embedding) -> None:
        self.chunks.setdefault(note_id, []).append(
            Chunk(note_id=note_id, chunk_index=index, content=content, embedding=embedding)
        )

    async def list_chunks(self, note_id: str) -> List[Chunk]:
        return list(self.chunks.get(note_id, []))

    async def append_event(self, note_id, user_id, event_type, details) -> None:
        if self.fail_events:
            raise PersistenceError("event log unavailable")
        self.events.append(
            NoteEvent(
                note_id=note_id,
                user_id=user_id,
                event_type=EventType(event_type),
                details=dict(details),
            )
        )

    async def list_events(self, note_id: str) -> List[NoteEvent]:
        return [e for e in self.events if e.note_id == note_id]

    async def search_notes(self, owner_id, query, tags=None, limit=20) -> List[Note]:
        q = query.lower()
        hits = [
            n
            for n in await self.list_notes(owner_id)
            if any(q in (v or "").lower() for v in (n.title, n.content, n.summary))
        ]
        if tags:
            hits = [n for n in hits if set(tags) & set(n.tags or [])]
        return hits[:limit]


@asynccontextmanager
async def sqlite_store() -> AsyncIterator[SqlRecordStore]:
    """SqlRecordStore over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    try:
        await init_db(engine, max_attempts=1, delay=0)
        factory = async_sessionmaker(engine, expire_on_commit=False)
        yield SqlRecordStore(session_scope(factory))
    finally:
        await engine.dispose()


def make_gateway(
    llm: Optional[LLMClient] = None,
    embeddings: Optional[FakeEmbeddings] = None,
    settings: Optional[Settings] = None,
) -> ModelGateway:
    settings = settings or make_settings()
    return ModelGateway(llm or FakeLLM(), embeddings or FakeEmbeddings(), settings=settings)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def guard() -> EnrichmentGuard:
    return EnrichmentGuard()


@pytest.fixture()
def client(store, guard):
    """FastAPI test client with dependencies overridden."""
    from apps.api.main import app, get_gateway, get_guard, get_store

    llm = FakeLLM()
    embeddings = FakeEmbeddings()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_guard] = lambda: guard
    app.dependency_overrides[get_gateway] = lambda: make_gateway(llm, embeddings)

    with TestClient(app, headers={"X-User-Id": "user-1"}) as test_client:
        test_client.llm = llm
        test_client.embeddings = embeddings
        yield test_client

    app.dependency_overrides.clear()
