"""Unit tests for the semantic retriever, citations and context assembly."""

from __future__ import annotations

from ragdesk.answering.context import CONTEXT_SEPARATOR, assemble_context
from ragdesk.retrieval.models import Citation, RetrievalResult, SearchHit, StoredRecord
from ragdesk.retrieval.retriever import SemanticRetriever


def _result(content: str, score: float = 0.5, source: str = "doc.md", index: int = 0) -> RetrievalResult:
    record = StoredRecord(record_id=f"r{index}", source_id=source, chunk_index=index, text=content)
    return RetrievalResult.from_hit(SearchHit(record=record, score=score))


def _seed(store, embedder, texts: list[str], source: str = "doc.md") -> None:
    for i, text in enumerate(texts):
        store.put(source, i, embedder.embed_query(text), text)


# ── SemanticRetriever ────────────────────────────────────────────────


class TestSemanticRetriever:
    def test_search_ranks_by_similarity(self, store, embedder) -> None:
        _seed(store, embedder, ["cats purr loudly", "dogs bark at night", "the stock market fell"])
        retriever = SemanticRetriever(store, embedder, default_k=2)

        results = retriever.search("why do dogs bark")

        assert len(results) == 2
        assert results[0].content == "dogs bark at night"
        assert results[0].citation.source == "doc.md"
        assert results[0].citation.chunk_index == 1

    def test_explicit_k_overrides_default(self, store, embedder) -> None:
        _seed(store, embedder, ["one", "two", "three"])
        retriever = SemanticRetriever(store, embedder, default_k=1)
        assert len(retriever.search("one", k=3)) == 3

    def test_score_threshold_filters(self, store, embedder) -> None:
        _seed(store, embedder, ["alpha beta", "gamma delta"])
        retriever = SemanticRetriever(store, embedder, default_k=2, score_threshold=0.9)

        results = retriever.search("alpha beta")

        assert [r.content for r in results] == ["alpha beta"]

    def test_search_does_not_mutate_store(self, store, embedder) -> None:
        _seed(store, embedder, ["a b c"])
        SemanticRetriever(store, embedder).search("a")
        assert store.count() == 1

    def test_search_by_embedding(self, store, embedder) -> None:
        _seed(store, embedder, ["red apples", "green pears"])
        retriever = SemanticRetriever(store, embedder, default_k=1)
        (result,) = retriever.search_by_embedding(embedder.embed_query("green pears"))
        assert result.content == "green pears"

    def test_empty_store(self, store, embedder) -> None:
        assert SemanticRetriever(store, embedder).search("anything") == []


# ── Models ───────────────────────────────────────────────────────────


class TestModels:
    def test_from_hit_copies_provenance(self) -> None:
        record = StoredRecord(
            record_id="abc_2", source_id="https://example.com/", chunk_index=2, text="body", start=5, end=9
        )
        result = RetrievalResult.from_hit(SearchHit(record=record, score=0.83))

        assert result.content == "body"
        assert result.citation.record_id == "abc_2"
        assert result.citation.score == 0.83
        assert (result.citation.start, result.citation.end) == (5, 9)

    def test_short_ref(self) -> None:
        assert Citation(source="notes.md", chunk_index=4).short_ref() == "[notes.md§4]"
        assert Citation(source="notes.md").short_ref() == "[notes.md§?]"

    def test_citation_ids_are_unique(self) -> None:
        assert Citation().citation_id != Citation().citation_id

    def test_str_includes_reference(self) -> None:
        assert str(_result("some content", index=1)).startswith("[doc.md§1] some content")


# ── Context assembly ─────────────────────────────────────────────────


class TestAssembleContext:
    def test_joins_in_given_order(self) -> None:
        results = [_result("first", 0.9), _result("second", 0.8)]
        context, used = assemble_context(results, max_chars=1000)
        assert context == f"first{CONTEXT_SEPARATOR}second"
        assert used == results

    def test_drops_lowest_scored_over_budget(self) -> None:
        results = [_result("a" * 40, 0.9), _result("b" * 40, 0.8), _result("c" * 40, 0.7)]
        budget = 80 + len(CONTEXT_SEPARATOR)

        context, used = assemble_context(results, max_chars=budget)

        assert used == results[:2]
        assert len(context) == budget
        assert "c" not in context

    def test_truncates_single_oversized_chunk(self) -> None:
        results = [_result("x" * 500, 0.9), _result("y" * 10, 0.5)]
        context, used = assemble_context(results, max_chars=100)
        assert context == "x" * 100
        assert used == results[:1]

    def test_empty_results(self) -> None:
        assert assemble_context([], max_chars=100) == ("", [])

    def test_custom_separator(self) -> None:
        context, _ = assemble_context([_result("a"), _result("b")], max_chars=100, separator=" | ")
        assert context == "a | b"
