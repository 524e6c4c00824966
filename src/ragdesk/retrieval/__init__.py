"""
Retrieval — vector storage, similarity search, and citations.

Public surface
--------------
- :class:`VectorStoreBase` — abstract backend.
- :class:`SQLiteVectorStore` — default single-file backend.
- :class:`ChromaVectorStore` — Chroma backend (lazy import).
- :class:`SemanticRetriever` — question → ranked chunks with citations.
- :class:`StoredRecord`, :class:`SearchHit`, :class:`Citation`,
  :class:`RetrievalResult` — data models.
- :func:`build_store` — construct the configured backend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ragdesk.retrieval.base import VectorStoreBase
from ragdesk.retrieval.models import Citation, RetrievalResult, SearchHit, StoredRecord
from ragdesk.retrieval.retriever import SemanticRetriever
from ragdesk.retrieval.sqlite_store import SQLiteVectorStore

if TYPE_CHECKING:
    from ragdesk.config import Settings

__all__ = [
    "Citation",
    "ChromaVectorStore",
    "RetrievalResult",
    "SQLiteVectorStore",
    "SearchHit",
    "SemanticRetriever",
    "StoredRecord",
    "VectorStoreBase",
    "build_store",
]


def build_store(settings: Settings) -> VectorStoreBase:
    """Return the vector store selected by ``settings.vector_backend``."""
    if settings.vector_backend == "chroma":
        from ragdesk.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(settings.store_path, settings.embedding_dimensions)
    return SQLiteVectorStore(settings.store_path, settings.embedding_dimensions)


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from ragdesk.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
