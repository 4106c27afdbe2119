"""Core library exposing domain models, settings, exceptions and policies."""

from .settings import Settings, get_settings
from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    AdmissionError,
    UpstreamModelError,
    PersistenceError,
    NoteLoadError,
    EnrichmentInProgressError,
    Error,
)
from .models import (
    Chunk,
    EnrichmentResult,
    EventType,
    Note,
    NoteEvent,
    SourceType,
)
from .admission import (
    AdmissionDecision,
    AdmissionStatus,
    count_words,
    estimate_tokens,
    evaluate_admission,
)

__all__ = [
    "Settings",
    "get_settings",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "AdmissionError",
    "UpstreamModelError",
    "PersistenceError",
    "NoteLoadError",
    "EnrichmentInProgressError",
    "Error",
    "Chunk",
    "EnrichmentResult",
    "EventType",
    "Note",
    "NoteEvent",
    "SourceType",
    "AdmissionDecision",
    "AdmissionStatus",
    "count_words",
    "estimate_tokens",
    "evaluate_admission",
]
