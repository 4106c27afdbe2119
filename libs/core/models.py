"""Pydantic models representing core domain entities."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    TEXT = "text"
    AUDIO = "audio"
    PDF = "pdf"
    WEB = "web"


class EventType(str, Enum):
    """Vocabulary of note lifecycle events."""

    CREATED = "created"
    UPDATED = "updated"
    SUMMARIZED = "summarized"


class Note(BaseModel):
    """A captured note, optionally enriched with AI-derived metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: Optional[str] = None
    content: Optional[str] = None
    file_url: Optional[str] = None
    source_type: SourceType = SourceType.TEXT
    summary: Optional[str] = None
    tags: Optional[List[str]] = None
    tokens: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Chunk(BaseModel):
    """Small piece of a note used for vector search."""

    model_config = ConfigDict(from_attributes=True)

    note_id: str
    chunk_index: int
    content: str
    embedding: List[float]


class NoteEvent(BaseModel):
    """Append-only audit record of something that happened to a note."""

    model_config = ConfigDict(from_attributes=True)

    note_id: str
    user_id: str
    event_type: EventType
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class EnrichmentResult(BaseModel):
    """Outcome of a completed batch enrichment run."""

    summary: str
    tags: List[str]
    chunks: int
    tokens: int
    embedded_chunks: int = 0


__all__ = [
    "SourceType",
    "EventType",
    "Note",
    "Chunk",
    "NoteEvent",
    "EnrichmentResult",
    "utcnow",
]
