"""Base exceptions for the domain layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .admission import AdmissionDecision


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class NotFoundError(DomainError):
    """Raised when an entity cannot be located."""


class ValidationError(DomainError):
    """Raised when data fails domain validation rules."""


class AdmissionError(ValidationError):
    """Raised when a note is not eligible for automatic enrichment."""

    def __init__(self, decision: "AdmissionDecision", message: str) -> None:
        super().__init__(message)
        self.decision = decision


class UpstreamModelError(DomainError):
    """Raised when an external model call fails or times out."""


class PersistenceError(DomainError):
    """Raised when results could not be written to the record store."""


class NoteLoadError(DomainError):
    """Raised when the note could not be read before enrichment started."""


class EnrichmentInProgressError(DomainError):
    """Raised when the note is already being enriched by another run."""


# Alias to keep a generic name for error type hints
Error = DomainError

__all__ = [
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "AdmissionError",
    "UpstreamModelError",
    "PersistenceError",
    "NoteLoadError",
    "EnrichmentInProgressError",
    "Error",
]
