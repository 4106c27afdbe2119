from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Set

from libs.core.exceptions import EnrichmentInProgressError


class EnrichmentGuard:
    """In-process marker allowing at most one enrichment run per note.

    Acquisition never waits: a second run for a note that is already being
    enriched fails fast instead of queueing behind the first one. Runs on
    a single event loop, so the check-and-set needs no lock.
    """

    def __init__(self) -> None:
        self._active: Set[str] = set()
        self.logger = logging.getLogger(__name__)

    def is_active(self, note_id: str) -> bool:
        return note_id in self._active

    @contextmanager
    def hold(self, note_id: str) -> Iterator[None]:
        if note_id in self._active:
            self.logger.info("enrichment_already_running", extra={"note_id": note_id})
            raise EnrichmentInProgressError(f"Note {note_id} is already being processed")
        self._active.add(note_id)
        try:
            yield
        finally:
            self._active.discard(note_id)


__all__ = ["EnrichmentGuard"]
