"""Application use cases: note capture, enrichment and search."""

from .guard import EnrichmentGuard
from .enrichment import EnrichmentPipeline
from .enrich_note import EnrichNote
from .stream_enrichment import ConsumerGone, StreamNoteEnrichment
from .notes import CreateNote, UpdateNote
from .search import Search

__all__ = [
    "EnrichmentGuard",
    "EnrichmentPipeline",
    "EnrichNote",
    "StreamNoteEnrichment",
    "ConsumerGone",
    "CreateNote",
    "UpdateNote",
    "Search",
]
