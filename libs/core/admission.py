"""Eligibility gate for automatic note enrichment.

Every entry point (note creation, batch processing, streaming) evaluates
the same policy so their decisions cannot drift apart.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .exceptions import AdmissionError
from .settings import Settings, get_settings

_WHITESPACE_RUN = re.compile(r"\s+")


class AdmissionStatus(str, Enum):
    ELIGIBLE = "eligible"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"


class AdmissionDecision(BaseModel):
    status: AdmissionStatus
    char_count: int
    word_count: int
    min_chars: int
    max_words: int

    @property
    def eligible(self) -> bool:
        return self.status is AdmissionStatus.ELIGIBLE

    @property
    def error(self) -> Optional[str]:
        if self.status is AdmissionStatus.TOO_SHORT:
            return (
                "Insufficient content to process. "
                f"Need at least {self.min_chars} characters."
            )
        if self.status is AdmissionStatus.TOO_LONG:
            return f"Note exceeds {self.max_words:,} word limit for AI processing"
        return None

    @property
    def message(self) -> Optional[str]:
        """User-facing explanation, including the computed counts."""
        if self.status is AdmissionStatus.TOO_LONG:
            return (
                "Large notes are not automatically processed to manage costs. "
                f"This note has {self.word_count:,} words."
            )
        if self.status is AdmissionStatus.TOO_SHORT:
            return f"This note has {self.char_count} characters."
        return None

    def raise_for_status(self) -> None:
        if not self.eligible:
            raise AdmissionError(self, f"{self.error} {self.message}")


def count_words(text: str) -> int:
    """Number of pieces left after splitting on whitespace runs.

    Leading or trailing whitespace each contribute an empty piece and the
    empty string counts as one word. Kept as-is so that counts reported to
    users match those of earlier releases.
    """
    return len(_WHITESPACE_RUN.split(text))


def evaluate_admission(
    text: Optional[str], settings: Settings | None = None
) -> AdmissionDecision:
    settings = settings or get_settings()
    text = text or ""
    char_count = len(text)
    word_count = count_words(text)

    if char_count < settings.min_content_chars:
        status = AdmissionStatus.TOO_SHORT
    elif word_count > settings.max_words:
        status = AdmissionStatus.TOO_LONG
    else:
        status = AdmissionStatus.ELIGIBLE

    return AdmissionDecision(
        status=status,
        char_count=char_count,
        word_count=word_count,
        min_chars=settings.min_content_chars,
        max_words=settings.max_words,
    )


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return (len(text) + 3) // 4


__all__ = [
    "AdmissionStatus",
    "AdmissionDecision",
    "count_words",
    "evaluate_admission",
    "estimate_tokens",
]
