"""Character-window chunking with overlap.

Token counts are estimated as ``ceil(len / 4)`` (roughly four characters
per token for English text).  This is an approximation chosen for speed
and is never reconciled with the embedding provider's own token
accounting.
"""

from __future__ import annotations

import math
import re
from typing import NamedTuple

from hybrid_kb.config import settings

_WHITESPACE = re.compile(r"\s+")


class MadeChunk(NamedTuple):
    ordinal: int
    content: str
    token_estimate: int


def normalize_text(text: str | None) -> str:
    """Collapse every whitespace run to one space and trim the ends."""
    return _WHITESPACE.sub(" ", text or "").strip()


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def make_chunks(
    text: str | None,
    size: int | None = None,
    overlap: int | None = None,
) -> list[MadeChunk]:
    """Split *text* into overlapping fixed-size windows.

    Parameters
    ----------
    text:
        Raw text; it is normalized before slicing.
    size:
        Maximum characters per chunk (defaults to ``settings.chunk_chars``).
    overlap:
        Characters shared by consecutive chunks (defaults to
        ``settings.chunk_overlap``).  Negative values count as zero.

    Returns
    -------
    list[MadeChunk]
        Chunks with ordinals ``0, 1, 2, …``.  Empty when the normalized
        text is empty.  The last chunk is the first window that reaches
        the end of the text, so every earlier chunk is exactly *size*
        characters long.
    """
    size = settings.chunk_chars if size is None else size
    overlap = settings.chunk_overlap if overlap is None else overlap
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")

    normalized = normalize_text(text)
    if not normalized:
        return []

    step = max(1, size - max(0, overlap))
    chunks: list[MadeChunk] = []
    for ordinal, start in enumerate(range(0, len(normalized), step)):
        piece = normalized[start : start + size]
        chunks.append(MadeChunk(ordinal, piece, estimate_tokens(piece)))
        if start + size >= len(normalized):
            break
    return chunks
