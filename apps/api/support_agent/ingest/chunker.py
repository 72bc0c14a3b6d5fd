from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

# Size of the window tail searched for a sentence boundary.
SENTENCE_SEARCH_CHARS = 100

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass
class ChunkConfig:
    chunk_size: int = 500
    overlap: int = 50

    def __post_init__(self) -> None:
        if self.overlap < 0:
            raise ValueError(f"overlap must be 0 or greater, got {self.overlap}")
        if self.chunk_size <= self.overlap:
            raise ValueError(
                f"chunk_size ({self.chunk_size}) must be greater than overlap ({self.overlap})"
            )


def normalize_text_for_chunking(text: str) -> str:
    """Collapse every whitespace run (newlines and tabs included) to one space."""
    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def _boundary_end(text: str, start: int, end: int, chunk_size: int) -> int:
    # Prefer the last ". " inside the tail of the window, cutting after the period.
    search_start = max(start + chunk_size - SENTENCE_SEARCH_CHARS, start)
    sentence_end = text.rfind(". ", search_start, end)
    if sentence_end != -1:
        return sentence_end + 1

    # Otherwise the nearest space at or before the window end.
    space_index = text.rfind(" ", start, end + 1)
    if space_index > start:
        return space_index

    return end


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 50) -> List[str]:
    """
    Split text into overlapping, boundary-aware chunks.

    Whitespace is normalized first and all offsets refer to the normalized
    string. Each window of ``chunk_size`` characters is trimmed back to the last
    sentence end in its final 100 characters, or failing that to the last word
    boundary, and the next window starts ``overlap`` characters before the
    previous cut.

    Args:
        text: Raw document text
        chunk_size: Maximum characters per chunk
        overlap: Characters shared between consecutive windows

    Returns:
        Chunks in document order. Empty or whitespace-only text yields no chunks.
    """
    cfg = ChunkConfig(chunk_size=chunk_size, overlap=overlap)
    normalized = normalize_text_for_chunking(text)

    if not normalized:
        return []

    n = len(normalized)
    if n <= cfg.chunk_size:
        return [normalized]

    chunks: List[str] = []
    start = 0

    while start < n:
        end = start + cfg.chunk_size
        if end < n:
            end = _boundary_end(normalized, start, end, cfg.chunk_size)

        chunk = normalized[start:end].strip()
        if chunk:
            chunks.append(chunk)

        next_start = end - cfg.overlap
        # A short boundary cut must never pull the window backwards.
        start = next_start if next_start > start else end

    return chunks
