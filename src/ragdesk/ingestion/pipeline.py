"""Ingestion pipeline — load → chunk → embed → store, for one source.

Guarantees
----------
* At most one ingestion per source identifier is in flight; a second
  request is rejected with :class:`IngestionInProgress`.  Different
  sources ingest in parallel.
* Chunks are embedded and written strictly in chunk order.
* All-or-nothing: chunks are written as a staged attempt and committed
  in one store transaction.  Any failure (load, chunk, embed, store,
  deadline) discards the attempt, so the store looks as if the
  ingestion never started.
* Temporary uploads are deleted after the attempt whatever the outcome.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

from ragdesk.errors import IngestionInProgress, IngestionTimeout, LoadError
from ragdesk.ingestion.chunker import chunk_text, validate_chunk_params
from ragdesk.ingestion.loader import load
from ragdesk.ingestion.models import (
    FileReference,
    IngestionReceipt,
    LoadedSource,
    SourceReference,
)

if TYPE_CHECKING:
    from ragdesk.ingestion.embedder import Embedder
    from ragdesk.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)

Loader = Callable[[SourceReference], LoadedSource]


def remove_temp_file(path: str | Path) -> None:
    """Best-effort removal of a temporary input; failures are only logged."""
    try:
        Path(path).unlink(missing_ok=True)
        logger.info("Deleted temporary file: %s", path)
    except OSError:
        logger.warning("Could not delete temporary file %s", path, exc_info=True)


class IngestionPipeline:
    """Turns source references into committed, searchable chunks.

    Parameters
    ----------
    store:
        Destination vector store.
    embedder:
        Embeds chunk text; its dimension must match the store's.
    chunk_size / chunk_overlap:
        Chunking parameters, validated once here.
    loader:
        ``reference → LoadedSource``; defaults to :func:`ragdesk.ingestion.loader.load`.
    web_timeout:
        Per-request timeout for the default loader's web fetches.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        chunk_size: int = 400,
        chunk_overlap: int = 50,
        loader: Loader | None = None,
        web_timeout: float = 30.0,
    ) -> None:
        validate_chunk_params(chunk_size, chunk_overlap)
        self._store = store
        self._embedder = embedder
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._loader = loader or functools.partial(load, timeout=web_timeout)
        self._in_flight: set[str] = set()
        self._guard = threading.Lock()

    @property
    def in_flight(self) -> frozenset[str]:
        with self._guard:
            return frozenset(self._in_flight)

    @contextmanager
    def _claim(self, source_id: str) -> Iterator[None]:
        with self._guard:
            if source_id in self._in_flight:
                raise IngestionInProgress(source_id)
            self._in_flight.add(source_id)
        try:
            yield
        finally:
            with self._guard:
                self._in_flight.discard(source_id)

    def ingest(
        self,
        reference: SourceReference,
        *,
        timeout: float | None = None,
        cleanup: bool = False,
    ) -> IngestionReceipt:
        """Ingest one source and return its committed chunk count.

        Parameters
        ----------
        reference:
            The file or web page to ingest.
        timeout:
            Deadline in seconds, checked between pipeline steps.  Expiry
            raises :class:`IngestionTimeout` and rolls back.
        cleanup:
            Delete ``reference.path`` afterwards (uploaded temp files).
        """
        try:
            source_id = reference.source_id
            with self._claim(source_id):
                return self._run(reference, source_id, timeout)
        finally:
            if cleanup and isinstance(reference, FileReference):
                remove_temp_file(reference.path)

    def _run(self, reference: SourceReference, source_id: str, timeout: float | None) -> IngestionReceipt:
        deadline = time.monotonic() + timeout if timeout is not None else None

        def check_deadline() -> None:
            if deadline is not None and time.monotonic() > deadline:
                raise IngestionTimeout(source_id, timeout)

        attempt = uuid4().hex
        try:
            loaded = self._loader(reference)
            check_deadline()
            chunks = chunk_text(loaded.text, self.chunk_size, self.chunk_overlap, source_id=source_id)
            if not chunks:
                raise LoadError(source_id, "no extractable text")

            for chunk in chunks:
                check_deadline()
                vector = self._embedder.embed(chunk.text)
                self._store.put(
                    source_id,
                    chunk.index,
                    vector,
                    chunk.text,
                    start=chunk.start,
                    end=chunk.end,
                    attempt=attempt,
                )
            check_deadline()
            committed = self._store.commit_attempt(source_id, attempt, expected=len(chunks))
        except BaseException:
            # Includes KeyboardInterrupt / cancellation.
            self._rollback(source_id, attempt)
            raise

        logger.info("Ingested %s: %d chunks (%s)", source_id, committed, loaded.kind.value)
        return IngestionReceipt(source_id=source_id, chunk_count=committed, kind=loaded.kind)

    def _rollback(self, source_id: str, attempt: str) -> None:
        try:
            self._store.discard_attempt(source_id, attempt)
            logger.info("Rolled back ingestion of %s", source_id)
        except Exception:
            logger.exception("Rollback of %s (attempt %s) failed", source_id, attempt)
