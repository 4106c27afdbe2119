from __future__ import annotations

from typing import Dict, List

import replicate

from libs.core.exceptions import UpstreamModelError
from libs.core.settings import Settings, get_settings


class EmbeddingsProvider:
    """Simple interface to fetch embeddings from Replicate models."""

    def __init__(
        self,
        model: str | None = None,
        *,
        settings: Settings | None = None,
        embedding_dim: int | None = None,
        enable_cache: bool = True,
    ) -> None:
        settings = settings or get_settings()
        # Allow overriding via args; otherwise pull from settings with sane defaults
        self.model = model or getattr(
            settings, "embeddings_model", "nomic-ai/nomic-embed-text-v1.5"
        )
        self.embedding_dim = (
            embedding_dim if embedding_dim is not None else getattr(settings, "embedding_dim", 768)
        )
        self.client = replicate.Client(
            api_token=getattr(settings, "replicate_api_token", "") or None
        )
        self.enable_cache = enable_cache
        self._cache: Dict[str, List[float]] = {}

    def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        try:
            output = self.client.run(self.model, input={"texts": texts})
        except Exception as exc:
            raise UpstreamModelError(f"Embedding request failed: {exc}") from exc
        if isinstance(output, dict) and "embeddings" in output:
            embeddings = output["embeddings"]
        else:
            embeddings = output
        if not embeddings or len(embeddings) != len(texts):
            raise UpstreamModelError(
                f"Expected {len(texts)} embeddings, got {len(embeddings or [])}"
            )
        for emb in embeddings:
            if len(emb) != self.embedding_dim:
                raise UpstreamModelError(
                    f"Embedding size {len(emb)} does not match expected {self.embedding_dim}"
                )
        return [list(map(float, emb)) for emb in embeddings]

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for a single piece of text."""
        if self.enable_cache and text in self._cache:
            return self._cache[text]
        emb = self._embed_batch([text])[0]
        if self.enable_cache:
            self._cache[text] = emb
        return emb


__all__ = ["EmbeddingsProvider"]
