"""
Ingestion — loading, chunking, and embedding sources into the vector store.

This package turns raw sources (PDF, Markdown, plain text, web pages)
into chunks, embeds them, and commits them to a vector store with
per-source exclusivity and all-or-nothing semantics.
"""

from ragdesk.ingestion.chunker import chunk_text, validate_chunk_params
from ragdesk.ingestion.models import (
    Chunk,
    FileReference,
    IngestionReceipt,
    LoadedSource,
    SourceKind,
    WebReference,
)
from ragdesk.ingestion.pipeline import IngestionPipeline

__all__ = [
    "Chunk",
    "FileReference",
    "IngestionPipeline",
    "IngestionReceipt",
    "LoadedSource",
    "SourceKind",
    "WebReference",
    "chunk_text",
    "validate_chunk_params",
]
