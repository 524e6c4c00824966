"""Domain models for stored records, search hits and citations."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field


class StoredRecord(BaseModel):
    """One persisted embedding record, without its vector.

    Attributes
    ----------
    record_id:
        Deterministic id derived from source and chunk index.
    source_id:
        The source the chunk belongs to (file name or normalised URL).
    chunk_index:
        Position of the chunk among its source's chunks.
    text:
        The chunk text.
    start / end:
        Character offsets of the chunk in the source's normalised text.
    seq:
        Insertion sequence; earlier records win score ties.
    """

    record_id: str
    source_id: str
    chunk_index: int
    text: str
    start: int | None = None
    end: int | None = None
    seq: int = 0


class SearchHit(BaseModel):
    """A record returned by a similarity query with its cosine score."""

    record: StoredRecord
    score: float


class Citation(BaseModel):
    """Provenance record linking a retrieved chunk back to its source.

    Attributes
    ----------
    citation_id:
        Unique identifier for this citation instance.
    record_id:
        The vector-store id of the chunk.
    source:
        Source locator — file name or URL.
    chunk_index:
        Ordinal position of the chunk within the source.
    start / end:
        Character offsets of the chunk within the source text.
    score:
        Cosine similarity returned by the vector store.
    retrieved_at:
        UTC timestamp of when the retrieval happened.
    """

    citation_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    record_id: str | None = None
    source: str = "unknown"
    chunk_index: int | None = None
    start: int | None = None
    end: int | None = None
    score: float | None = None
    retrieved_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{self.source}§{chunk}]"


class RetrievalResult(BaseModel):
    """A single retrieved passage together with its citation."""

    content: str
    citation: Citation

    @classmethod
    def from_hit(cls, hit: SearchHit) -> RetrievalResult:
        rec = hit.record
        return cls(
            content=rec.text,
            citation=Citation(
                record_id=rec.record_id,
                source=rec.source_id,
                chunk_index=rec.chunk_index,
                start=rec.start,
                end=rec.end,
                score=hit.score,
            ),
        )

    def __str__(self) -> str:  # noqa: D105
        return f"{self.citation.short_ref()} {self.content[:120]}…"
