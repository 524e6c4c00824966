"""Unit tests for the Chroma vector-store backend."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from ragdesk.errors import DimensionMismatch, StoreIOError
from ragdesk.ingestion.models import chunk_record_id
from ragdesk.retrieval.chroma_store import ChromaVectorStore

DIM = 8


def _unit(*hot: int) -> list[float]:
    vec = [0.0] * DIM
    for i in hot:
        vec[i] = 1.0
    return vec


@pytest.fixture()
def chroma(tmp_path: Path) -> ChromaVectorStore:
    return ChromaVectorStore(tmp_path / "chroma", dimension=DIM)


def test_put_and_query(chroma: ChromaVectorStore) -> None:
    record_id = chroma.put("a.md", 0, _unit(0), "exact", start=0, end=5)
    chroma.put("a.md", 1, _unit(0, 1), "partial")
    chroma.put("b.md", 0, _unit(4), "orthogonal")

    hits = chroma.query(_unit(0), k=2)

    assert record_id == chunk_record_id("a.md", 0)
    assert [h.record.text for h in hits] == ["exact", "partial"]
    assert hits[0].score == pytest.approx(1.0, abs=1e-5)
    assert (hits[0].record.start, hits[0].record.end) == (0, 5)
    assert hits[1].record.start is None


def test_empty_store(chroma: ChromaVectorStore) -> None:
    assert chroma.query(_unit(0), k=3) == []
    assert chroma.count() == 0
    assert chroma.list_sources() == set()


def test_fewer_records_than_k(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(1), "only")
    assert len(chroma.query(_unit(1), k=10)) == 1


def test_ties_follow_insertion_order(chroma: ChromaVectorStore) -> None:
    for name in ["first", "second", "third"]:
        chroma.put(name, 0, _unit(2), name)
    assert [h.record.text for h in chroma.query(_unit(2), k=2)] == ["first", "second"]


def test_dimension_mismatch(chroma: ChromaVectorStore, tmp_path: Path) -> None:
    with pytest.raises(DimensionMismatch):
        chroma.put("a", 0, [1.0, 2.0], "bad")
    assert chroma.count() == 0

    chroma.put("a", 0, _unit(0), "ok")
    with pytest.raises(DimensionMismatch):
        ChromaVectorStore(tmp_path / "chroma", dimension=DIM + 1)


def test_staged_records_and_commit(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(0), "old-0")
    chroma.put("a", 1, _unit(1), "old-1")
    chroma.put("a", 0, _unit(0), "new-0", attempt="t1")

    assert chroma.count() == 2
    assert chroma.commit_attempt("a", "t1") == 1

    assert chroma.count() == 1
    (hit,) = chroma.query(_unit(0), k=5)
    assert hit.record.text == "new-0"
    assert hit.record.record_id == chunk_record_id("a", 0)


def test_failed_commit_keeps_previous_version(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(0), "old-0")
    chroma.put("a", 0, _unit(0), "new-0", attempt="t1")

    with patch.object(type(chroma._collection), "upsert", side_effect=RuntimeError("disk full")):
        with pytest.raises(StoreIOError):
            chroma.commit_attempt("a", "t1")
    chroma.discard_attempt("a", "t1")

    assert chroma.count() == 1
    assert [h.record.text for h in chroma.query(_unit(0), k=5)] == ["old-0"]


def test_commit_drops_leftover_chunks(chroma: ChromaVectorStore) -> None:
    for i in range(3):
        chroma.put("a", i, _unit(i), f"old-{i}")
    chroma.put("a", 0, _unit(0), "new-0", attempt="t1")
    chroma.put("a", 1, _unit(1), "new-1", attempt="t1")

    assert chroma.commit_attempt("a", "t1", expected=2) == 2

    assert chroma.count() == 2
    assert {h.record.text for h in chroma.query(_unit(0, 1, 2), k=5)} == {"new-0", "new-1"}


def test_commit_with_lost_staged_records_changes_nothing(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(0), "old-0")
    chroma.put("a", 0, _unit(0), "new-0", attempt="t1")

    with pytest.raises(StoreIOError) as excinfo:
        chroma.commit_attempt("a", "t1", expected=3)

    assert excinfo.value.details["staged"] == 1
    assert [h.record.text for h in chroma.query(_unit(0), k=5)] == ["old-0"]


def test_discard_attempt(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(0), "committed")
    chroma.put("a", 0, _unit(0), "staged", attempt="t2")
    chroma.discard_attempt("a", "t2")
    chroma.discard_attempt("a", "t2")
    assert [h.record.text for h in chroma.query(_unit(0), k=5)] == ["committed"]


def test_delete_and_clear(chroma: ChromaVectorStore) -> None:
    chroma.put("a", 0, _unit(0), "x")
    chroma.put("b", 0, _unit(1), "y")

    chroma.delete_source("a")
    chroma.delete_source("a")
    assert chroma.list_sources() == {"b"}

    chroma.clear()
    assert chroma.count() == 0
    chroma.put("c", 0, _unit(2), "z")
    assert chroma.list_sources() == {"c"}


def test_health_check(chroma: ChromaVectorStore) -> None:
    assert chroma.health_check() is True
