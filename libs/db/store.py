"""Record store used by the enrichment pipeline and the API.

Every operation runs in its own transaction, so rows written before a
later failure (e.g. the first chunks of a note) stay committed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from libs.core.exceptions import NotFoundError, PersistenceError
from libs.core.models import Chunk, EventType, Note, NoteEvent
from .database import SessionScope, get_session
from .repositories import ChunkRepo, EventRepo, NoteRepo

DEFAULT_SEARCH_LIMIT = 20


class RecordStore(ABC):
    """Owner-scoped access to notes, their chunks and their event log."""

    @abstractmethod
    async def create_note(self, owner_id: str, **fields: Any) -> Note:
        """Insert a new note and return it."""

    @abstractmethod
    async def get_note(self, note_id: str, owner_id: str) -> Optional[Note]:
        """Return the note if it exists and belongs to ``owner_id``."""

    @abstractmethod
    async def list_notes(self, owner_id: str) -> List[Note]:
        """Return the owner's notes, newest first."""

    @abstractmethod
    async def update_note(self, note_id: str, **fields: Any) -> Note:
        """Apply a partial update; raises :class:`NotFoundError`."""

    @abstractmethod
    async def replace_chunks(self, note_id: str) -> int:
        """Drop existing chunks of a note before it is re-indexed."""

    @abstractmethod
    async def insert_chunk(
        self, note_id: str, index: int, content: str, embedding: List[float]
    ) -> None:
        """Persist one embedded chunk."""

    @abstractmethod
    async def list_chunks(self, note_id: str) -> List[Chunk]:
        """Return chunks ordered by index."""

    @abstractmethod
    async def append_event(
        self,
        note_id: str,
        user_id: str,
        event_type: EventType,
        details: Dict[str, Any],
    ) -> None:
        """Append an immutable entry to the note's event log."""

    @abstractmethod
    async def list_events(self, note_id: str) -> List[NoteEvent]:
        """Return the note's events, oldest first."""

    @abstractmethod
    async def search_notes(
        self,
        owner_id: str,
        query: str,
        tags: Optional[Sequence[str]] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[Note]:
        """Keyword search over the owner's notes, newest first."""


class SqlRecordStore(RecordStore):
    """:class:`RecordStore` backed by the async SQLAlchemy repositories."""

    def __init__(self, session_scope: SessionScope = get_session) -> None:
        self._session_scope = session_scope

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_scope() as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    async def create_note(self, owner_id: str, **fields: Any) -> Note:
        async with self._transaction("create note") as session:
            note = await NoteRepo(session).create(owner_id=owner_id, **fields)
            return Note.model_validate(note)

    async def get_note(self, note_id: str, owner_id: str) -> Optional[Note]:
        async with self._transaction("load note") as session:
            note = await NoteRepo(session).get_owned(note_id, owner_id)
            return Note.model_validate(note) if note is not None else None

    async def list_notes(self, owner_id: str) -> List[Note]:
        async with self._transaction("list notes") as session:
            notes = await NoteRepo(session).list_by_owner(owner_id)
            return [Note.model_validate(n) for n in notes]

    async def update_note(self, note_id: str, **fields: Any) -> Note:
        async with self._transaction("update note") as session:
            repo = NoteRepo(session)
            note = await repo.get(note_id)
            if note is None:
                raise NotFoundError(f"Note {note_id} not found")
            note = await repo.update(note, **fields)
            return Note.model_validate(note)

    async def replace_chunks(self, note_id: str) -> int:
        async with self._transaction("delete chunks") as session:
            return await ChunkRepo(session).delete_by_note(note_id)

    async def insert_chunk(
        self, note_id: str, index: int, content: str, embedding: List[float]
    ) -> None:
        async with self._transaction("insert chunk") as session:
            await ChunkRepo(session).create(note_id, index, content, embedding)

    async def list_chunks(self, note_id: str) -> List[Chunk]:
        async with self._transaction("list chunks") as session:
            chunks = await ChunkRepo(session).list_by_note(note_id)
            return [Chunk.model_validate(c) for c in chunks]

    async def append_event(
        self,
        note_id: str,
        user_id: str,
        event_type: EventType,
        details: Dict[str, Any],
    ) -> None:
        async with self._transaction("append event") as session:
            await EventRepo(session).create(
                note_id, user_id, EventType(event_type).value, details
            )

    async def list_events(self, note_id: str) -> List[NoteEvent]:
        async with self._transaction("list events") as session:
            events = await EventRepo(session).list_by_note(note_id)
            return [NoteEvent.model_validate(e) for e in events]

    async def search_notes(
        self,
        owner_id: str,
        query: str,
        tags: Optional[Sequence[str]] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[Note]:
        async with self._transaction("search notes") as session:
            notes = await NoteRepo(session).search(owner_id, query)
        # JSON tag columns have no portable overlap operator
        if tags:
            wanted = set(tags)
            notes = [n for n in notes if wanted.intersection(n.tags or [])]
        return [Note.model_validate(n) for n in notes[:limit]]


__all__ = ["RecordStore", "SqlRecordStore", "DEFAULT_SEARCH_LIMIT"]
