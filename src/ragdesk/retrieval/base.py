"""Abstract base class for vector-store backends.

Every backend stores ``(vector, chunk metadata)`` records of one fixed
dimensionality and answers cosine-similarity queries.  Records written
with an ``attempt`` tag are *staged*: they are invisible to
:meth:`~VectorStoreBase.query`, :meth:`~VectorStoreBase.list_sources`
and :meth:`~VectorStoreBase.count` until
:meth:`~VectorStoreBase.commit_attempt` promotes them.

Concurrency contract: reads run concurrently with each other, writes
are serialised process-wide, and :meth:`~VectorStoreBase.clear`
excludes every other operation until it returns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np

from ragdesk.errors import DimensionMismatch
from ragdesk.retrieval.locks import ReadWriteLock
from ragdesk.retrieval.models import SearchHit


def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of every row of *matrix* with *query* (0.0 for zero vectors)."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, (matrix @ query) / norms, 0.0)
    return scores.astype(np.float64)


def rank(scores: np.ndarray, seqs: np.ndarray, k: int) -> np.ndarray:
    """Indices of the top-*k* scores, descending; ties go to the lower sequence."""
    order = np.lexsort((seqs, -scores))
    return order[:k]


class VectorStoreBase(ABC):
    """Backend-agnostic vector-store interface.

    Parameters
    ----------
    dimension:
        Length every stored and queried vector must have.
    """

    def __init__(self, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension
        self._lock = ReadWriteLock()

    def _check_dimension(self, vector: Sequence[float]) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float32)
        if arr.ndim != 1 or arr.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, int(arr.size))
        return arr

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def put(
        self,
        source_id: str,
        chunk_index: int,
        vector: Sequence[float],
        text: str,
        *,
        start: int | None = None,
        end: int | None = None,
        attempt: str | None = None,
    ) -> str:
        """Insert or replace the record for ``(source_id, chunk_index)``.

        Returns the record id.  Raises :class:`DimensionMismatch` without
        touching the store when ``len(vector) != self.dimension``.
        """
        ...

    @abstractmethod
    def query(self, vector: Sequence[float], k: int) -> list[SearchHit]:
        """Return up to *k* committed records, highest cosine score first.

        Ties are broken by insertion order (earlier wins).  An empty store
        yields an empty list.
        """
        ...

    @abstractmethod
    def list_sources(self) -> set[str]:
        """Distinct source identifiers with committed records."""
        ...

    @abstractmethod
    def delete_source(self, source_id: str) -> None:
        """Remove every record (staged or committed) of *source_id*.  Idempotent."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Drop all records and leave the store immediately writable."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of committed records."""
        ...

    @abstractmethod
    def commit_attempt(self, source_id: str, attempt: str, expected: int | None = None) -> int:
        """Atomically replace *source_id*'s records with those staged under *attempt*.

        Returns the number of records promoted.  When *expected* is given
        and fewer (or more) records are staged, for instance because
        :meth:`clear` ran mid-ingestion, nothing changes and
        :class:`StoreIOError` is raised.
        """
        ...

    @abstractmethod
    def discard_attempt(self, source_id: str, attempt: str) -> None:
        """Delete the records staged under *attempt*.  Idempotent."""
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def close(self) -> None:
        """Release backend resources.  No-op by default."""
