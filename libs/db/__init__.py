"""Database utilities for the notes service."""

from . import models
from .database import get_session, init_db, session_scope
from .repositories import ChunkRepo, EventRepo, NoteRepo
from .store import RecordStore, SqlRecordStore

__all__ = [
    "models",
    "get_session",
    "init_db",
    "session_scope",
    "NoteRepo",
    "ChunkRepo",
    "EventRepo",
    "RecordStore",
    "SqlRecordStore",
]
