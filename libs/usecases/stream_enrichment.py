from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Optional

from libs.core.admission import estimate_tokens
from libs.core.exceptions import (
    EnrichmentInProgressError,
    PersistenceError,
    UpstreamModelError,
)
from libs.core.models import Note
from libs.core.stream_events import (
    CompleteEvent,
    ErrorEvent,
    StatusEvent,
    StreamEvent,
    SummaryEvent,
    TagsEvent,
)
from libs.llm.gateway import fallback_summary
from libs.rag.chunker import chunk_text
from .enrichment import EnrichmentPipeline

DisconnectCheck = Callable[[], Awaitable[bool]]


class ConsumerGone(Exception):
    """The client reading the stream has gone away."""


class StreamNoteEnrichment(EnrichmentPipeline):
    """Enrich a note while pushing progress to the caller as typed events.

    ``prepare`` runs the checks that must fail before the channel opens;
    ``events`` then yields ``status``/``summary``/``tags`` events and ends
    with exactly one ``complete`` or ``error`` event. If the consumer
    disconnects the run stops without saving and nothing more is sent.
    """

    async def events(
        self,
        note: Note,
        owner_id: str,
        is_disconnected: Optional[DisconnectCheck] = None,
    ) -> AsyncIterator[StreamEvent]:
        async def checkpoint() -> None:
            if is_disconnected is not None and await is_disconnected():
                raise ConsumerGone()

        try:
            with self.guard.hold(note.id):
                async with aclosing(self._run(note, owner_id, checkpoint)) as run:
                    async for event in run:
                        yield event
        except ConsumerGone:
            self.logger.info(
                "stream_consumer_disconnected", extra={"note_id": note.id}
            )
        except EnrichmentInProgressError as exc:
            yield ErrorEvent(message=str(exc), code="in_progress")
        except PersistenceError:
            yield ErrorEvent(
                message="Failed to save AI results", code="persistence_failed"
            )
        except Exception:
            self.logger.exception(
                "streaming_enrichment_failed", extra={"note_id": note.id}
            )
            yield ErrorEvent(message="AI processing failed")

    async def _run(
        self,
        note: Note,
        owner_id: str,
        checkpoint: Callable[[], Awaitable[None]],
    ) -> AsyncIterator[StreamEvent]:
        text = note.content or ""

        await checkpoint()
        yield StatusEvent(message="Generating summary...")
        summary = ""
        fragments = self._summary_fragments(note.id, text, checkpoint)
        async with aclosing(fragments):
            async for fragment in fragments:
                summary += fragment
                yield SummaryEvent(content=fragment)

        await checkpoint()
        yield StatusEvent(message="Generating tags...")
        tags = await self.gateway.generate_tags(text)
        yield TagsEvent(tags=tags)

        await checkpoint()
        yield StatusEvent(message="Creating embeddings...")
        chunks = chunk_text(text, self.settings.chunk_size, self.settings.chunk_overlap)
        await self.embed_chunks(note.id, chunks, checkpoint)

        await checkpoint()
        tokens = estimate_tokens(text)
        await self.save(
            note,
            owner_id,
            summary=summary,
            tags=tags,
            tokens=tokens,
            details={
                "chunks": len(chunks),
                "tags": tags,
                "tokens": tokens,
                "summary_length": len(summary),
                "streaming": True,
            },
        )
        yield CompleteEvent(summary=summary, tags=tags, tokens=tokens)

    async def _summary_fragments(
        self, note_id: str, text: str, checkpoint: Callable[[], Awaitable[None]]
    ) -> AsyncIterator[str]:
        """Forward summary fragments as they arrive.

        When the model fails before sending anything, the fallback summary
        is sent as a single fragment. When it fails midway, what was already
        sent stands as the summary.
        """
        delivered = False
        stream = self.gateway.stream_summary(text)
        try:
            async for fragment in stream:
                delivered = True
                yield fragment
                await checkpoint()
        except UpstreamModelError as exc:
            self.logger.warning(
                "summary_stream_failed",
                extra={
                    "note_id": note_id,
                    "stage": "summary",
                    "partial": delivered,
                    "reason": str(exc),
                },
            )
            if not delivered:
                yield fallback_summary(text)
        finally:
            await stream.aclose()


__all__ = ["StreamNoteEnrichment", "ConsumerGone", "DisconnectCheck"]
