"""Semantic retriever — embed a question and rank stored chunks.

Usage::

    from ragdesk.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(store, embedder, default_k=4)
    results   = retriever.search("How is the overlap configured?")
    for r in results:
        print(r.citation.short_ref(), r.content[:80])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ragdesk.retrieval.models import RetrievalResult

if TYPE_CHECKING:
    from ragdesk.ingestion.embedder import Embedder
    from ragdesk.retrieval.base import VectorStoreBase

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Read-only view of a :class:`VectorStoreBase` for question answering.

    Parameters
    ----------
    store:
        The vector store to search.  Never mutated.
    embedder:
        Embeds questions; must share the store's dimensionality.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: Embedder,
        *,
        default_k: int = 4,
        score_threshold: float | None = None,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_k = default_k
        self.score_threshold = score_threshold

    def search(self, query: str, *, k: int | None = None) -> list[RetrievalResult]:
        """Run a semantic search and return results with citations.

        Results are ordered by descending score.
        """
        embedding = self._embedder.embed_query(query)
        return self.search_by_embedding(embedding, k=k)

    def search_by_embedding(self, embedding: list[float], *, k: int | None = None) -> list[RetrievalResult]:
        """Same as :meth:`search` but accepts a pre-computed embedding."""
        k = k or self.default_k
        hits = self._store.query(embedding, k)
        results = [
            RetrievalResult.from_hit(hit)
            for hit in hits
            if self.score_threshold is None or hit.score >= self.score_threshold
        ]
        logger.debug("Retrieved %d/%d chunks (k=%d)", len(results), len(hits), k)
        return results
