"""Deterministic fixed-size chunking with overlap.

Units are characters.  A chunk ends at ``start + chunk_size`` unless a
whitespace boundary is available further back in the window, in which
case it ends just before that whitespace.  The next chunk starts exactly
``chunk_overlap`` characters before the end of the previous one, so
adjacent chunks share ``chunk_overlap`` characters and dropping the
first ``chunk_overlap`` characters of every chunk but the first
reconstructs the (stripped) text.

The one exception is a whitespace run longer than a window: no chunk is
made of whitespace alone, so the two chunks around such a run are
separated by blank text instead of overlapping.
"""

from __future__ import annotations

import re

from ragdesk.ingestion.models import Chunk

_NON_SPACE = re.compile(r"\S")


def validate_chunk_params(chunk_size: int, chunk_overlap: int) -> None:
    """Raise ``ValueError`` for a configuration that cannot make progress."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if chunk_overlap < 0:
        raise ValueError(f"chunk_overlap must be >= 0, got {chunk_overlap}")
    if chunk_overlap >= chunk_size:
        raise ValueError(f"chunk_overlap ({chunk_overlap}) must be < chunk_size ({chunk_size})")


def _boundary(text: str, start: int, end: int, chunk_overlap: int) -> int:
    """Pull *end* back to the last whitespace in ``(start + overlap, end]``."""
    floor = start + chunk_overlap
    for pos in range(end, floor, -1):
        if text[pos].isspace():
            return pos
    return end


def chunk_text(
    text: str,
    chunk_size: int = 400,
    chunk_overlap: int = 50,
    *,
    source_id: str = "",
) -> list[Chunk]:
    """Split *text* into overlapping chunks of at most *chunk_size* characters.

    Parameters
    ----------
    text:
        Normalised source text.  Leading and trailing whitespace is not
        part of any chunk.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Number of characters shared by consecutive chunks.
    source_id:
        Identifier stamped on every chunk.

    Returns
    -------
    list[Chunk]
        Chunks in order; offsets index into *text*.  Empty when *text* is
        blank.
    """
    validate_chunk_params(chunk_size, chunk_overlap)

    stripped = text.strip()
    if not stripped:
        return []
    lo = text.index(stripped[0])
    hi = lo + len(stripped)

    chunks: list[Chunk] = []
    start = lo
    while True:
        end = min(start + chunk_size, hi)
        if end < hi:
            end = _boundary(text, start, end, chunk_overlap)

        piece = text[start:end]
        if not piece.strip():
            # Whitespace-only window inside a long blank run: resume just
            # before the next word instead of storing an empty chunk.
            resume = _NON_SPACE.search(text, end).start()
            start = max(resume - chunk_overlap, end - chunk_overlap)
            continue

        chunks.append(Chunk(source_id=source_id, index=len(chunks), text=piece, start=start, end=end))
        if end >= hi:
            break
        start = end - chunk_overlap
    return chunks
