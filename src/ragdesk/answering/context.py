"""Context assembly under a character budget."""

from __future__ import annotations

from ragdesk.retrieval.models import RetrievalResult

CONTEXT_SEPARATOR = "\n\n---\n\n"


def assemble_context(
    results: list[RetrievalResult],
    max_chars: int,
    *,
    separator: str = CONTEXT_SEPARATOR,
) -> tuple[str, list[RetrievalResult]]:
    """Join retrieved chunks, best first, without exceeding *max_chars*.

    *results* must already be in descending score order.  Chunks are
    added until the next one would overflow the budget, so the
    lowest-scored chunks are the ones dropped.  When even the best chunk
    is too long it is truncated to the budget rather than dropped.

    Returns the context string and the results it actually contains.
    """
    parts: list[str] = []
    used: list[RetrievalResult] = []
    total = 0
    for result in results:
        extra = len(result.content) + (len(separator) if parts else 0)
        if total + extra > max_chars:
            if not parts:
                parts.append(result.content[:max_chars])
                used.append(result)
            break
        parts.append(result.content)
        used.append(result)
        total += extra
    return separator.join(parts), used
