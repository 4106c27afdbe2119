from __future__ import annotations

from typing import Iterator, List

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 150


def iter_chunks(
    text: str, size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP
) -> Iterator[str]:
    """Yield fixed-size windows over ``text`` that overlap by ``overlap`` chars.

    The window advances ``size - overlap`` characters per step until its
    start passes the end of the text, so the last window may be shorter.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    if overlap < 0 or overlap >= size:
        raise ValueError(
            f"overlap must be in [0, {size}), got {overlap}"
        )
    step = size - overlap
    start = 0
    while start < len(text):
        yield text[start : start + size]
        start += step


def chunk_text(
    text: str, size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP
) -> List[str]:
    return list(iter_chunks(text, size, overlap))


__all__ = ["DEFAULT_CHUNK_SIZE", "DEFAULT_OVERLAP", "iter_chunks", "chunk_text"]
