from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional


class LLMClient(ABC):
    """Abstract interface for text generation backends."""

    @abstractmethod
    def complete(
        self,
        system: str,
        text: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        """Return the full completion for ``text`` under ``system`` instructions."""

    @abstractmethod
    def stream(
        self,
        system: str,
        text: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> Iterator[str]:
        """Yield completion fragments in arrival order."""
