"""Repository classes for CRUD operations on ORM models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from libs.core.models import utcnow
from . import models


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class NoteRepo:
    """CRUD operations for :class:`models.Note`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        owner_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        **kwargs: Any,
    ) -> models.Note:
        note = models.Note(owner_id=owner_id, title=title, content=content, **kwargs)
        self.session.add(note)
        await self.session.flush()
        return note

    async def get(self, note_id: str) -> Optional[models.Note]:
        return await self.session.get(models.Note, note_id)

    async def get_owned(self, note_id: str, owner_id: str) -> Optional[models.Note]:
        stmt = select(models.Note).where(
            models.Note.id == note_id, models.Note.owner_id == owner_id
        )
        res = await self.session.execute(stmt)
        return res.scalar_one_or_none()

    async def list_by_owner(self, owner_id: str) -> List[models.Note]:
        res = await self.session.execute(
            select(models.Note)
            .where(models.Note.owner_id == owner_id)
            .order_by(models.Note.created_at.desc())
        )
        return list(res.scalars().all())

    async def search(self, owner_id: str, query: str) -> List[models.Note]:
        """Case-insensitive substring match over title, content and summary."""
        pattern = _like_pattern(query)
        stmt = (
            select(models.Note)
            .where(
                models.Note.owner_id == owner_id,
                or_(
                    models.Note.title.ilike(pattern, escape="\\"),
                    models.Note.content.ilike(pattern, escape="\\"),
                    models.Note.summary.ilike(pattern, escape="\\"),
                ),
            )
            .order_by(models.Note.created_at.desc())
        )
        res = await self.session.execute(stmt)
        return list(res.scalars().all())

    async def update(self, note: models.Note, **fields: Any) -> models.Note:
        for key, value in fields.items():
            setattr(note, key, value)
        note.updated_at = utcnow()
        await self.session.flush()
        return note


class ChunkRepo:
    """CRUD operations for :class:`models.Chunk`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self, note_id: str, chunk_index: int, content: str, embedding: List[float]
    ) -> models.Chunk:
        chunk = models.Chunk(
            note_id=note_id,
            chunk_index=chunk_index,
            content=content,
            embedding=embedding,
        )
        self.session.add(chunk)
        await self.session.flush()
        return chunk

    async def list_by_note(self, note_id: str) -> List[models.Chunk]:
        res = await self.session.execute(
            select(models.Chunk)
            .where(models.Chunk.note_id == note_id)
            .order_by(models.Chunk.chunk_index)
        )
        return list(res.scalars().all())

    async def delete_by_note(self, note_id: str) -> int:
        res = await self.session.execute(
            delete(models.Chunk).where(models.Chunk.note_id == note_id)
        )
        return res.rowcount or 0


class EventRepo:
    """Append-only access to :class:`models.NoteEvent`."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        note_id: str,
        user_id: str,
        event_type: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> models.NoteEvent:
        event = models.NoteEvent(
            note_id=note_id,
            user_id=user_id,
            event_type=event_type,
            details=dict(details or {}),
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_by_note(self, note_id: str) -> List[models.NoteEvent]:
        res = await self.session.execute(
            select(models.NoteEvent)
            .where(models.NoteEvent.note_id == note_id)
            .order_by(models.NoteEvent.created_at)
        )
        return list(res.scalars().all())


__all__ = ["NoteRepo", "ChunkRepo", "EventRepo"]
