from __future__ import annotations

from libs.core.admission import estimate_tokens
from libs.core.models import EnrichmentResult
from libs.rag.chunker import chunk_text
from .enrichment import EnrichmentPipeline


class EnrichNote(EnrichmentPipeline):
    """Run the whole enrichment for a note and return a single result.

    Order: admission, chunking, embeddings (best effort), summary, tags,
    then one update of the note and a ``summarized`` event.
    """

    async def __call__(self, note_id: str, owner_id: str) -> EnrichmentResult:
        note = await self.load(note_id, owner_id)
        text = self.admit(note)

        with self.guard.hold(note.id):
            chunks = chunk_text(
                text, self.settings.chunk_size, self.settings.chunk_overlap
            )
            self.logger.info(
                "chunks_created", extra={"note_id": note.id, "chunks": len(chunks)}
            )
            embedded = await self.embed_chunks(note.id, chunks)

            summary = await self.gateway.summarize(text)
            tags = await self.gateway.generate_tags(text)
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
                },
            )

        return EnrichmentResult(
            summary=summary,
            tags=tags,
            chunks=len(chunks),
            tokens=tokens,
            embedded_chunks=embedded,
        )


__all__ = ["EnrichNote"]
