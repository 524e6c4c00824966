"""Embedding adapters.

The rest of the assistant only sees :class:`Embedder` — a text → vector
function with a declared dimensionality.  :class:`LangChainEmbedder`
adapts any LangChain ``Embeddings`` implementation (sentence-transformers
by default, or an OpenAI-compatible endpoint such as Ollama).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ragdesk.errors import EmbeddingError

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from ragdesk.config import Settings

logger = logging.getLogger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Text → fixed-dimension vector."""

    dimension: int

    def embed(self, text: str) -> list[float]:
        """Embed a chunk of source text."""
        ...

    def embed_query(self, text: str) -> list[float]:
        """Embed a user question."""
        ...


class LangChainEmbedder:
    """Wrap a LangChain ``Embeddings`` object behind :class:`Embedder`.

    Provider exceptions are re-raised as :class:`EmbeddingError`; the
    length check against *dimension* is left to the vector store, which
    treats a mismatch as a configuration error.
    """

    def __init__(self, embeddings: Embeddings, dimension: int) -> None:
        self._embeddings = embeddings
        self.dimension = dimension

    def embed(self, text: str) -> list[float]:
        try:
            vectors = self._embeddings.embed_documents([text])
        except Exception as exc:
            raise EmbeddingError(f"Embedding provider failed: {exc}") from exc
        if not vectors:
            raise EmbeddingError("Embedding provider returned no vector")
        return list(vectors[0])

    def embed_query(self, text: str) -> list[float]:
        try:
            return list(self._embeddings.embed_query(text))
        except Exception as exc:
            raise EmbeddingError(f"Embedding provider failed: {exc}") from exc


def get_embedding_function(settings: Settings) -> Embeddings:
    """Return the configured LangChain embedding model.

    Imports are deferred so that loading sentence-transformers only
    happens when that provider is selected.
    """
    if settings.embedding_provider == "openai":
        from langchain_openai import OpenAIEmbeddings

        kwargs: dict = {
            "model": settings.embedding_model,
            "api_key": settings.embedding_api_key or settings.openai_api_key or "EMPTY",
            # Non-OpenAI servers (Ollama, LM Studio) accept raw strings only.
            "check_embedding_ctx_length": False,
        }
        if settings.embedding_base_url:
            logger.info("Using embeddings endpoint: %s", settings.embedding_base_url)
            kwargs["base_url"] = settings.embedding_base_url
        return OpenAIEmbeddings(**kwargs)

    from langchain_huggingface import HuggingFaceEmbeddings

    return HuggingFaceEmbeddings(
        model_name=settings.embedding_model,
        encode_kwargs={"normalize_embeddings": True},
    )


def build_embedder(settings: Settings) -> LangChainEmbedder:
    return LangChainEmbedder(get_embedding_function(settings), settings.embedding_dimensions)
