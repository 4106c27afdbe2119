from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from libs.core.admission import AdmissionDecision, evaluate_admission
from libs.core.exceptions import NotFoundError, PersistenceError, ValidationError
from libs.core.models import EventType, Note, SourceType
from libs.core.settings import Settings, get_settings
from libs.db.store import RecordStore

EDITABLE_FIELDS = frozenset({"title", "content", "tags"})

logger = logging.getLogger(__name__)


async def _append_event(
    store: RecordStore,
    note_id: str,
    owner_id: str,
    event_type: EventType,
    details: Dict[str, Any],
) -> None:
    # The note row is already committed when this runs
    try:
        await store.append_event(note_id, owner_id, event_type, details)
    except PersistenceError:
        logger.warning(
            "event_log_write_failed",
            exc_info=True,
            extra={"note_id": note_id, "event_type": event_type.value},
        )


class CreateNote:
    """Store a captured note and report whether it can be auto-enriched."""

    def __init__(self, store: RecordStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or get_settings()

    async def __call__(
        self,
        owner_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        source_type: SourceType = SourceType.TEXT,
        file_url: Optional[str] = None,
    ) -> Tuple[Note, AdmissionDecision]:
        source = SourceType(source_type).value
        note = await self.store.create_note(
            owner_id,
            title=title or None,
            content=content or None,
            file_url=file_url,
            source_type=source,
        )
        await _append_event(
            self.store, note.id, owner_id, EventType.CREATED, {"source_type": source}
        )
        decision = evaluate_admission(note.content, self.settings)
        logger.info(
            "note_created",
            extra={"note_id": note.id, "admission": decision.status.value},
        )
        return note, decision


class UpdateNote:
    """Apply a user edit to title, content or tags and log it."""

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def __call__(
        self, note_id: str, owner_id: str, changes: Dict[str, Any]
    ) -> Note:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {sorted(unknown)}")
        if await self.store.get_note(note_id, owner_id) is None:
            raise NotFoundError("Note not found")
        if "tags" in changes and changes["tags"] is not None:
            changes = {**changes, "tags": [str(t).lower() for t in changes["tags"]]}

        note = await self.store.update_note(note_id, **changes)
        await _append_event(
            self.store,
            note_id,
            owner_id,
            EventType.UPDATED,
            {"updated_fields": list(changes)},
        )
        return note


__all__ = ["CreateNote", "UpdateNote", "EDITABLE_FIELDS"]
