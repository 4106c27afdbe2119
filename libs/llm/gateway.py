from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, TypeVar

import yaml

from libs.core.exceptions import UpstreamModelError
from libs.core.settings import Settings, get_settings
from .embeddings_provider import EmbeddingsProvider
from .llm_client import LLMClient
from .tag_parser import TagParser

T = TypeVar("T")

SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 200
TAGS_TEMPERATURE = 0.5
TAGS_MAX_TOKENS = 100
FALLBACK_SUMMARY_CHARS = 100

_EXHAUSTED = object()


class PromptsError(Exception):
    """Raised when the prompts file is missing or malformed."""


def fallback_summary(text: str) -> str:
    """Deterministic stand-in used when the summary model is unavailable."""
    return f"Note about: {text[:FALLBACK_SUMMARY_CHARS]}..."


class ModelGateway:
    """Summary, tag and embedding capabilities with per-call timeouts.

    The blocking SDK clients run in worker threads. ``summarize`` and
    ``generate_tags`` always return a usable value; ``stream_summary`` and
    ``embed`` raise :class:`UpstreamModelError` and leave the policy to the
    caller.
    """

    def __init__(
        self,
        llm: LLMClient,
        embeddings: EmbeddingsProvider,
        settings: Settings | None = None,
        prompts_path: str | Path | None = None,
        tag_parser: TagParser | None = None,
    ) -> None:
        self.llm = llm
        self.embeddings = embeddings
        self.settings = settings or get_settings()
        self.tag_parser = tag_parser or TagParser()
        self.logger = logging.getLogger(__name__)

        self.prompts_path = Path(prompts_path or self.settings.prompts_path)
        try:
            with self.prompts_path.open("r", encoding="utf-8") as fh:
                self.prompts: Dict[str, Dict[str, str]] = yaml.safe_load(fh) or {}
            self.logger.debug("Prompts loaded from: %s", str(self.prompts_path))
        except FileNotFoundError as exc:
            raise PromptsError(f"Prompts file not found: {self.prompts_path}") from exc
        except yaml.YAMLError as exc:
            raise PromptsError("Failed to parse prompts file") from exc
        # Fail at construction rather than halfway through a run
        self.summary_prompt = self._prompt("summary", "system")
        self.tags_prompt = self._prompt("tags", "system")

    def _prompt(self, section: str, key: str) -> str:
        try:
            return self.prompts[section][key]
        except (KeyError, TypeError) as exc:
            raise PromptsError(
                f"Prompt '{section}.{key}' not found in {self.prompts_path}"
            ) from exc

    async def _call_blocking(
        self, fn: Callable[..., T], *args: Any, timeout: float, **kwargs: Any
    ) -> T:
        call = functools.partial(fn, *args, **kwargs)
        try:
            return await asyncio.wait_for(asyncio.to_thread(call), timeout)
        except asyncio.TimeoutError as exc:
            raise UpstreamModelError(f"Model call timed out after {timeout}s") from exc
        except UpstreamModelError:
            raise
        except Exception as exc:
            raise UpstreamModelError(str(exc)) from exc

    # ------------------------------------------------------------------
    async def summarize(self, text: str) -> str:
        try:
            summary = await self._call_blocking(
                self.llm.complete,
                self.summary_prompt,
                text,
                temperature=SUMMARY_TEMPERATURE,
                max_tokens=SUMMARY_MAX_TOKENS,
                model=self.settings.summary_model,
                timeout=self.settings.llm_timeout_seconds,
            )
        except UpstreamModelError as exc:
            self.logger.warning(
                "summary_generation_failed", extra={"stage": "summary", "reason": str(exc)}
            )
            return fallback_summary(text)
        return summary or ""

    async def stream_summary(self, text: str) -> AsyncIterator[str]:
        try:
            fragments = iter(
                self.llm.stream(
                    self.summary_prompt,
                    text,
                    temperature=SUMMARY_TEMPERATURE,
                    max_tokens=SUMMARY_MAX_TOKENS,
                    model=self.settings.summary_model,
                )
            )
        except Exception as exc:
            raise UpstreamModelError(str(exc)) from exc
        try:
            while True:
                fragment = await self._call_blocking(
                    next, fragments, _EXHAUSTED, timeout=self.settings.llm_timeout_seconds
                )
                if fragment is _EXHAUSTED:
                    break
                if fragment:
                    yield fragment
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                try:
                    close()
                except ValueError:
                    # Still running in a worker thread after a timeout
                    self.logger.debug("summary stream could not be closed yet")

    async def generate_tags(self, text: str) -> List[str]:
        try:
            raw = await self._call_blocking(
                self.llm.complete,
                self.tags_prompt,
                text,
                temperature=TAGS_TEMPERATURE,
                max_tokens=TAGS_MAX_TOKENS,
                model=self.settings.tags_model,
                timeout=self.settings.llm_timeout_seconds,
            )
        except UpstreamModelError as exc:
            self.logger.warning(
                "tags_generation_failed", extra={"stage": "tags", "reason": str(exc)}
            )
            return self.tag_parser.defaults()
        return self.tag_parser.parse(raw)

    async def embed(self, chunk: str) -> List[float]:
        return await self._call_blocking(
            self.embeddings.embed,
            chunk,
            timeout=self.settings.embedding_timeout_seconds,
        )


__all__ = [
    "ModelGateway",
    "PromptsError",
    "fallback_summary",
    "SUMMARY_TEMPERATURE",
    "SUMMARY_MAX_TOKENS",
    "TAGS_TEMPERATURE",
    "TAGS_MAX_TOKENS",
]
