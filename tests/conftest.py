"""Shared pytest configuration and fixtures."""

from __future__ import annotations

import re
import zlib
from pathlib import Path

import pytest

from ragdesk.answering.generator import GenerationResult
from ragdesk.errors import EmbeddingError
from ragdesk.retrieval.sqlite_store import SQLiteVectorStore

DIM = 64


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class HashingEmbedder:
    """Deterministic bag-of-words embedder: each word bumps one CRC32 bucket."""

    def __init__(self, dimension: int = DIM, fail_on_call: int | None = None) -> None:
        self.dimension = dimension
        self.fail_on_call = fail_on_call
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dimension
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vec

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise EmbeddingError("embedding backend unavailable")
        return self._vector(text)

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


class FakeGenerator:
    """Records every call and echoes a canned answer."""

    def __init__(self, answer: str = "The answer.", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def generate(self, context: str, question: str) -> GenerationResult:
        self.calls.append((context, question))
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.answer, metadata={"model": "fake"})


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "store" / "vectors.db"


@pytest.fixture()
def store(store_path: Path) -> SQLiteVectorStore:
    return SQLiteVectorStore(store_path, dimension=DIM)


@pytest.fixture()
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture()
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture()
def make_embedder():
    """Factory for embedders with custom dimension / failure injection."""
    return HashingEmbedder


@pytest.fixture()
def make_generator():
    return FakeGenerator
