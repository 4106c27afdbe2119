from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from libs.core.admission import evaluate_admission
from libs.core.exceptions import (
    NoteLoadError,
    NotFoundError,
    PersistenceError,
    UpstreamModelError,
)
from libs.core.models import EventType, Note
from libs.core.settings import Settings, get_settings
from libs.db.store import RecordStore
from libs.llm.gateway import ModelGateway
from .guard import EnrichmentGuard

Checkpoint = Callable[[], Awaitable[None]]


class EnrichmentPipeline:
    """Stages shared by the batch and streaming enrichment use cases."""

    def __init__(
        self,
        store: RecordStore,
        gateway: ModelGateway,
        guard: EnrichmentGuard,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.guard = guard
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(f"enrichment.{type(self).__name__}")

    # ------------------------------------------------------------------
    async def load(self, note_id: str, owner_id: str) -> Note:
        try:
            note = await self.store.get_note(note_id, owner_id)
        except PersistenceError as exc:
            self.logger.error(
                "note_load_failed",
                exc_info=True,
                extra={"note_id": note_id, "stage": "load"},
            )
            raise NoteLoadError("Failed to load note") from exc
        if note is None:
            raise NotFoundError("Note not found")
        return note

    def admit(self, note: Note) -> str:
        """Return the text to enrich or raise :class:`AdmissionError`."""
        if note.file_url and not note.content:
            # Text extraction from uploaded files is not supported
            self.logger.info(
                "file_extraction_not_supported",
                extra={"note_id": note.id, "file_url": note.file_url},
            )
        decision = evaluate_admission(note.content, self.settings)
        if not decision.eligible:
            self.logger.info(
                "enrichment_rejected",
                extra={
                    "note_id": note.id,
                    "admission": decision.status.value,
                    "word_count": decision.word_count,
                    "char_count": decision.char_count,
                },
            )
            decision.raise_for_status()
        return note.content or ""

    async def prepare(self, note_id: str, owner_id: str) -> Note:
        """Fetch the note and check it is eligible, before any model call."""
        note = await self.load(note_id, owner_id)
        self.admit(note)
        return note

    # ------------------------------------------------------------------
    async def embed_chunks(
        self, note_id: str, chunks: List[str], checkpoint: Optional[Checkpoint] = None
    ) -> int:
        """Embed and store chunks one at a time; return how many were stored.

        The first failure abandons the phase. Chunks already stored are
        kept and the run carries on without the rest.
        """
        stored = 0
        try:
            await self.store.replace_chunks(note_id)
            for index, chunk in enumerate(chunks):
                if checkpoint is not None:
                    await checkpoint()
                embedding = await self.gateway.embed(chunk)
                await self.store.insert_chunk(note_id, index, chunk, embedding)
                stored += 1
        except (UpstreamModelError, PersistenceError) as exc:
            self.logger.warning(
                "embedding_phase_abandoned",
                extra={
                    "note_id": note_id,
                    "stage": "embeddings",
                    "chunk_index": stored,
                    "chunks": len(chunks),
                    "reason": str(exc),
                },
            )
        return stored

    async def save(
        self,
        note: Note,
        owner_id: str,
        *,
        summary: str,
        tags: List[str],
        tokens: int,
        details: Dict[str, Any],
    ) -> None:
        try:
            await self.store.update_note(note.id, summary=summary, tags=tags, tokens=tokens)
        except (PersistenceError, NotFoundError) as exc:
            self.logger.error(
                "enrichment_save_failed",
                exc_info=True,
                extra={"note_id": note.id, "stage": "persist"},
            )
            raise PersistenceError("Failed to update note with AI data") from exc

        try:
            await self.store.append_event(note.id, owner_id, EventType.SUMMARIZED, details)
        except PersistenceError:
            self.logger.warning(
                "event_log_write_failed",
                exc_info=True,
                extra={"note_id": note.id, "event_type": EventType.SUMMARIZED.value},
            )
        self.logger.info(
            "note_enriched", extra={"note_id": note.id, **details}
        )


__all__ = ["EnrichmentPipeline", "Checkpoint"]
