from __future__ import annotations

from typing import List, Optional, Sequence

from libs.core.exceptions import ValidationError
from libs.core.models import Note
from libs.db.store import DEFAULT_SEARCH_LIMIT, RecordStore


class Search:
    """Keyword search over a user's notes.

    Matches the query against title, content and summary. Ranking by
    chunk embeddings is not wired in yet; results are newest first.
    """

    def __init__(self, store: RecordStore, limit: int = DEFAULT_SEARCH_LIMIT) -> None:
        self.store = store
        self.limit = limit

    async def __call__(
        self, owner_id: str, query: str, tags: Optional[Sequence[str]] = None
    ) -> List[Note]:
        query = query.strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        return await self.store.search_notes(
            owner_id, query, tags=tags, limit=self.limit
        )


__all__ = ["Search"]
