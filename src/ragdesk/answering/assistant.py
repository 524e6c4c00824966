"""Question answering over the vector store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

from ragdesk.answering.context import assemble_context
from ragdesk.errors import EmptyQuery, NotInitialized
from ragdesk.retrieval.models import Citation

if TYPE_CHECKING:
    from ragdesk.answering.generator import Generator
    from ragdesk.retrieval.base import VectorStoreBase
    from ragdesk.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)

NO_SOURCES_NOTICE = "Note: no sources have been added yet, so this answer is not based on any document."

EmptyStorePolicy = Literal["notice", "reject"]


class AnswerResult(BaseModel):
    """Answer text plus the citations of the chunks it was conditioned on.

    ``notice`` is set when the answer was produced without any source.
    """

    answer: str
    citations: list[Citation] = Field(default_factory=list)
    notice: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RagAssistant:
    """Retrieve the top-k chunks for a question and hand them to the generator.

    Parameters
    ----------
    retriever:
        Ranks stored chunks for a question.
    generator:
        Produces the answer from the assembled context.
    store:
        Consulted (read-only) to tell an empty store from a miss.
    k:
        Number of chunks to retrieve.
    max_context_chars:
        Budget for the assembled context.
    empty_store_policy:
        ``"notice"`` answers from the generator alone and prefixes
        :data:`NO_SOURCES_NOTICE`; ``"reject"`` raises
        :class:`NotInitialized`.
    """

    def __init__(
        self,
        retriever: SemanticRetriever,
        generator: Generator,
        store: VectorStoreBase,
        *,
        k: int = 4,
        max_context_chars: int = 4000,
        empty_store_policy: EmptyStorePolicy = "notice",
    ) -> None:
        self._retriever = retriever
        self._generator = generator
        self._store = store
        self.k = k
        self.max_context_chars = max_context_chars
        self.empty_store_policy = empty_store_policy

    def answer(self, question: str) -> str:
        """Answer *question* and return the text only."""
        return self.ask(question).answer

    def ask(self, question: str) -> AnswerResult:
        question = (question or "").strip()
        if not question:
            raise EmptyQuery()

        if self._store.count() == 0:
            if self.empty_store_policy == "reject":
                raise NotInitialized("No sources have been added yet")
            logger.info("Answering without sources: store is empty")
            return self._answer_without_sources(question)

        results = self._retriever.search(question, k=self.k)
        if not results:
            logger.info("No chunk passed the score threshold; answering without sources")
            return self._answer_without_sources(question)

        context, used = assemble_context(results, self.max_context_chars)
        logger.info(
            "Answering with %d/%d chunks (%d chars of context)", len(used), len(results), len(context)
        )
        generated = self._generator.generate(context, question)
        return AnswerResult(
            answer=generated.text,
            citations=[r.citation for r in used],
            metadata=generated.metadata,
        )

    def _answer_without_sources(self, question: str) -> AnswerResult:
        generated = self._generator.generate("", question)
        return AnswerResult(
            answer=f"{NO_SOURCES_NOTICE}\n\n{generated.text}",
            notice=NO_SOURCES_NOTICE,
            metadata=generated.metadata,
        )
