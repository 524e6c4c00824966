"""Exception hierarchy shared by every layer of the assistant.

Each error carries a human-readable ``message`` and a ``details`` dict
(source id, dimensions, …) so callers can report *which* source or
setting failed.  ``kind`` is the stable machine-readable name exposed
by the serving layer.
"""

from __future__ import annotations

from typing import Any


class RagDeskError(Exception):
    """Base class for all assistant errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ── Loading ───────────────────────────────────────────────────────────


class UnsupportedSourceKind(RagDeskError):
    """The content type / extension / URL scheme is not a recognised source kind."""

    def __init__(self, declared: str, source_id: str | None = None) -> None:
        details: dict[str, Any] = {"declared": declared}
        if source_id:
            details["source_id"] = source_id
        super().__init__(f"Unsupported source kind: {declared!r}", details)


class LoadError(RagDeskError):
    """I/O or network failure while reading a source."""

    def __init__(self, source_id: str, reason: str) -> None:
        super().__init__(f"Failed to load {source_id}: {reason}", {"source_id": source_id})
        self.source_id = source_id


# ── Store ─────────────────────────────────────────────────────────────


class DimensionMismatch(RagDeskError):
    """A vector's length differs from the store's configured dimensionality.

    This is a configuration error (wrong embedding model for this store),
    never a per-record condition.
    """

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector dimension {actual} does not match store dimension {expected}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class StoreIOError(RagDeskError):
    """The underlying persistence layer failed."""


# ── Ingestion ─────────────────────────────────────────────────────────


class IngestionInProgress(RagDeskError):
    """Another ingestion of the same source has not finished yet."""

    def __init__(self, source_id: str) -> None:
        super().__init__(f"Ingestion already in progress for {source_id}", {"source_id": source_id})
        self.source_id = source_id


class IngestionTimeout(RagDeskError):
    """The caller's deadline expired before the ingestion finished."""

    def __init__(self, source_id: str, timeout: float) -> None:
        super().__init__(
            f"Ingestion of {source_id} exceeded {timeout:g}s",
            {"source_id": source_id, "timeout": timeout},
        )


class EmbeddingError(RagDeskError):
    """The embedding provider failed or returned an unusable vector."""


# ── Retrieval & answering ────────────────────────────────────────────


class EmptyQuery(RagDeskError):
    """The question is empty or whitespace only."""

    def __init__(self) -> None:
        super().__init__("Query cannot be empty")


class NotInitialized(RagDeskError):
    """The assistant has no store to answer from."""


class GenerationError(RagDeskError):
    """The language model call failed or returned no text."""


# ── Serving ──────────────────────────────────────────────────────────


class UploadRejected(RagDeskError):
    """An uploaded file failed validation (size, type, name)."""
