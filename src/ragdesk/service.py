"""Service façade — the operations offered to serving layers.

:func:`build_service` is the composition root: it constructs the store,
embedder, pipeline and assistant from :class:`~ragdesk.config.Settings`
and hands them to :class:`RagService`.  Nothing below this module reads
global configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ragdesk.answering import ChatGenerator, RagAssistant, get_llm
from ragdesk.ingestion import FileReference, IngestionPipeline, WebReference
from ragdesk.ingestion.embedder import build_embedder
from ragdesk.retrieval import SemanticRetriever, build_store

if TYPE_CHECKING:
    from ragdesk.answering import AnswerResult
    from ragdesk.config import Settings
    from ragdesk.ingestion import IngestionReceipt
    from ragdesk.retrieval import VectorStoreBase

logger = logging.getLogger(__name__)

ItemKind = Literal["web", "pdf", "markdown", "text", "unknown"]

_KIND_ORDER: dict[str, int] = {"web": 0, "pdf": 1, "markdown": 2, "text": 3, "unknown": 4}

_FILE_STYLES: dict[str, tuple[str, ItemKind]] = {
    ".pdf": ("📕", "pdf"),
    ".md": ("📝", "markdown"),
    ".markdown": ("📝", "markdown"),
    ".txt": ("📝", "text"),
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceItem(_CamelModel):
    """A source as presented to users."""

    source: str
    display_name: str
    icon: str
    kind: ItemKind


class HealthStatus(_CamelModel):
    initialized: bool
    record_count: int


def describe_source(source: str) -> SourceItem:
    """Derive display name, icon and kind from a source identifier."""
    parts = urlsplit(source)
    if parts.scheme in ("http", "https") and parts.hostname:
        return SourceItem(source=source, display_name=parts.hostname, icon="🌐", kind="web")

    name = PurePosixPath(source.replace("\\", "/")).name or source
    icon, kind = _FILE_STYLES.get(PurePosixPath(name).suffix.lower(), ("📄", "unknown"))
    return SourceItem(source=source, display_name=name, icon=icon, kind=kind)


class RagService:
    """Owns the store, pipeline and assistant for one deployment.

    Parameters
    ----------
    store:
        The vector store; the service closes it in :meth:`close`.
    pipeline:
        Ingestion pipeline writing into *store*.
    assistant:
        Question answering over *store*.
    ingest_timeout:
        Default deadline for each ingestion, in seconds.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        pipeline: IngestionPipeline,
        assistant: RagAssistant,
        *,
        ingest_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.assistant = assistant
        self.ingest_timeout = ingest_timeout

    def add_web_source(self, url: str) -> IngestionReceipt:
        return self.pipeline.ingest(WebReference(url=url), timeout=self.ingest_timeout)

    def add_file_source(
        self,
        path: str | Path,
        content_type: str,
        original_name: str | None = None,
        *,
        cleanup: bool = True,
    ) -> IngestionReceipt:
        """Ingest a file; by default the file is treated as a temporary upload and deleted."""
        reference = FileReference(path=Path(path), content_type=content_type, original_name=original_name)
        return self.pipeline.ingest(reference, timeout=self.ingest_timeout, cleanup=cleanup)

    def list_sources(self) -> list[SourceItem]:
        """Sources grouped by kind, then ordered by display name."""
        items = [describe_source(source) for source in self.store.list_sources()]
        return sorted(items, key=lambda i: (_KIND_ORDER[i.kind], i.display_name.lower(), i.source))

    def clear_sources(self) -> None:
        logger.info("Clearing all sources")
        self.store.clear()

    def ask(self, question: str) -> AnswerResult:
        return self.assistant.ask(question)

    def health(self) -> HealthStatus:
        initialized = self.store.health_check()
        return HealthStatus(initialized=initialized, record_count=self.store.count() if initialized else 0)

    def close(self) -> None:
        self.store.close()


def build_service(settings: Settings) -> RagService:
    """Construct every component from *settings* and wire them together."""
    store = build_store(settings)
    embedder = build_embedder(settings)
    pipeline = IngestionPipeline(
        store,
        embedder,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        web_timeout=settings.web_request_timeout,
    )
    retriever = SemanticRetriever(store, embedder, default_k=settings.retrieval_k)
    assistant = RagAssistant(
        retriever,
        ChatGenerator(get_llm(settings)),
        store,
        k=settings.retrieval_k,
        max_context_chars=settings.max_context_chars,
        empty_store_policy=settings.empty_store_policy,
    )
    logger.info(
        "Service ready: backend=%s store=%s dim=%d",
        settings.vector_backend,
        settings.store_path,
        settings.embedding_dimensions,
    )
    return RagService(store, pipeline, assistant, ingest_timeout=settings.ingest_timeout_seconds)
