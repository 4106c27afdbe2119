"""Text preparation helpers for retrieval indexing."""

from .chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, chunk_text, iter_chunks

__all__ = ["DEFAULT_CHUNK_SIZE", "DEFAULT_OVERLAP", "chunk_text", "iter_chunks"]
