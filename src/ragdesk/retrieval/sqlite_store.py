"""Embedded single-file vector store on SQLite.

Vectors are stored as float32 blobs next to their chunk metadata and
scored with numpy at query time.  The committed records are cached as a
matrix keyed on a generation token that every write transaction replaces
in ``store_meta``, so writes made by other processes on the same file
invalidate the cache too.  The file is created on the
first write; until then every read behaves like an empty store.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from uuid import uuid4

import numpy as np

from ragdesk.errors import DimensionMismatch, StoreIOError
from ragdesk.ingestion.models import chunk_record_id
from ragdesk.retrieval.base import VectorStoreBase, cosine_scores, rank
from ragdesk.retrieval.models import SearchHit, StoredRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS store_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS records (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    record_id TEXT NOT NULL UNIQUE,
    source TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    start_offset INTEGER,
    end_offset INTEGER,
    content TEXT NOT NULL,
    vector BLOB NOT NULL,
    attempt TEXT  -- NULL once committed
);
CREATE INDEX IF NOT EXISTS idx_records_source ON records(source, attempt);
"""

_UPSERT = """
INSERT INTO records (record_id, source, chunk_index, start_offset, end_offset, content, vector, attempt)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(record_id) DO UPDATE SET
    start_offset = excluded.start_offset,
    end_offset = excluded.end_offset,
    content = excluded.content,
    vector = excluded.vector
"""


def _bump_generation(conn: sqlite3.Connection) -> None:
    """Stamp the current write transaction with a fresh generation token."""
    conn.execute(
        "INSERT OR REPLACE INTO store_meta (key, value) VALUES ('generation', ?)", (uuid4().hex,)
    )


def _staged_id(record_id: str, attempt: str) -> str:
    return f"{record_id}@{attempt}"


class SQLiteVectorStore(VectorStoreBase):
    """Vector store persisted in a single SQLite file.

    Parameters
    ----------
    path:
        Location of the database file.  Parent directories are created
        on the first write.
    dimension:
        Vector length.  A file written with a different dimensionality
        is rejected with :class:`DimensionMismatch` at construction.
    """

    def __init__(self, path: str | Path, dimension: int) -> None:
        super().__init__(dimension)
        self.path = Path(path)
        self._cache: tuple[str, list[StoredRecord], np.ndarray] | None = None
        self._cache_lock = threading.Lock()
        if self.path.exists():
            with self._lock.read(), self._connect() as conn:
                self._verify_dimension(conn)

    # -- connection helpers ---------------------------------------------------

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection; any SQLite failure surfaces as :class:`StoreIOError`."""
        try:
            conn = sqlite3.connect(self.path, timeout=30)
        except sqlite3.Error as exc:
            raise StoreIOError(f"Cannot open vector store: {exc}", {"path": str(self.path)}) from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            raise StoreIOError(f"Vector store operation failed: {exc}", {"path": str(self.path)}) from exc
        finally:
            conn.close()

    @contextmanager
    def _writer(self) -> Iterator[sqlite3.Connection]:
        """Exclusive write transaction; invalidates the query cache."""
        with self._lock.write():
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreIOError(f"Cannot create store directory: {exc}", {"path": str(self.path)}) from exc
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                self._init_schema(conn)
                with conn:
                    yield conn
                    _bump_generation(conn)

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(_SCHEMA)
        self._verify_dimension(conn)

    def _verify_dimension(self, conn: sqlite3.Connection) -> None:
        try:
            row = conn.execute("SELECT value FROM store_meta WHERE key = 'dimension'").fetchone()
        except sqlite3.OperationalError:
            # File exists but schema not created yet.
            return
        if row is None:
            with conn:
                conn.execute(
                    "INSERT INTO store_meta (key, value) VALUES ('dimension', ?)", (str(self.dimension),)
                )
        elif int(row[0]) != self.dimension:
            raise DimensionMismatch(int(row[0]), self.dimension)

    # -- writes ---------------------------------------------------------------

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
        arr = self._check_dimension(vector)
        record_id = chunk_record_id(source_id, chunk_index)
        row_id = _staged_id(record_id, attempt) if attempt else record_id
        with self._writer() as conn:
            conn.execute(
                _UPSERT,
                (row_id, source_id, chunk_index, start, end, text, arr.tobytes(), attempt),
            )
        return record_id

    def delete_source(self, source_id: str) -> None:
        if not self.path.exists():
            return
        with self._writer() as conn:
            deleted = conn.execute("DELETE FROM records WHERE source = ?", (source_id,)).rowcount
        logger.info("Deleted %d records of %s", deleted, source_id)

    def commit_attempt(self, source_id: str, attempt: str, expected: int | None = None) -> int:
        with self._writer() as conn:
            staged = conn.execute(
                "SELECT seq, chunk_index FROM records WHERE source = ? AND attempt = ?",
                (source_id, attempt),
            ).fetchall()
            if expected is not None and len(staged) != expected:
                raise StoreIOError(
                    f"Staged records of {source_id} were lost before commit",
                    {"source_id": source_id, "expected": expected, "staged": len(staged)},
                )
            conn.execute("DELETE FROM records WHERE source = ? AND attempt IS NULL", (source_id,))
            conn.executemany(
                "UPDATE records SET attempt = NULL, record_id = ? WHERE seq = ?",
                [(chunk_record_id(source_id, idx), seq) for seq, idx in staged],
            )
        return len(staged)

    def discard_attempt(self, source_id: str, attempt: str) -> None:
        if not self.path.exists():
            return
        with self._writer() as conn:
            conn.execute("DELETE FROM records WHERE source = ? AND attempt = ?", (source_id, attempt))

    def clear(self) -> None:
        """Drop and recreate both tables, then compact the file."""
        with self._lock.write():
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StoreIOError(f"Cannot create store directory: {exc}", {"path": str(self.path)}) from exc
            with self._connect() as conn:
                with conn:
                    conn.execute("DROP TABLE IF EXISTS records")
                    conn.execute("DROP TABLE IF EXISTS store_meta")
                self._init_schema(conn)
                with conn:
                    _bump_generation(conn)
                conn.execute("VACUUM")
        logger.info("Vector store cleared: %s", self.path)

    # -- reads ----------------------------------------------------------------

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection | None]:
        """Shared lock plus one read snapshot; ``None`` while no schema exists."""
        with self._lock.read():
            if not self.path.exists():
                yield None
                return
            with self._connect() as conn:
                conn.execute("BEGIN")
                try:
                    row = conn.execute(
                        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'records'"
                    ).fetchone()
                    yield conn if row is not None else None
                finally:
                    conn.rollback()

    def _committed(self, conn: sqlite3.Connection) -> tuple[list[StoredRecord], np.ndarray]:
        """Committed records and their vector matrix, cached per generation token."""
        row = conn.execute("SELECT value FROM store_meta WHERE key = 'generation'").fetchone()
        generation = row[0] if row is not None else ""
        with self._cache_lock:
            if self._cache is not None and self._cache[0] == generation:
                return self._cache[1], self._cache[2]
            rows = conn.execute(
                "SELECT seq, record_id, source, chunk_index, start_offset, end_offset, content, vector "
                "FROM records WHERE attempt IS NULL ORDER BY seq"
            ).fetchall()
            records = [
                StoredRecord(
                    seq=seq,
                    record_id=record_id,
                    source_id=source,
                    chunk_index=idx,
                    start=start,
                    end=end,
                    text=content,
                )
                for seq, record_id, source, idx, start, end, content, _ in rows
            ]
            if rows:
                matrix = np.vstack([np.frombuffer(row[7], dtype=np.float32) for row in rows])
            else:
                matrix = np.empty((0, self.dimension), dtype=np.float32)
            # Stores written before generation tokens existed are never cached.
            if generation:
                self._cache = (generation, records, matrix)
            return records, matrix

    def query(self, vector: Sequence[float], k: int) -> list[SearchHit]:
        query_vec = self._check_dimension(vector)
        if k <= 0:
            return []
        with self._reader() as conn:
            if conn is None:
                return []
            records, matrix = self._committed(conn)
        if not records:
            return []

        scores = cosine_scores(matrix, query_vec)
        seqs = np.array([rec.seq for rec in records])
        return [SearchHit(record=records[i], score=float(scores[i])) for i in rank(scores, seqs, k)]

    def list_sources(self) -> set[str]:
        with self._reader() as conn:
            if conn is None:
                return set()
            rows = conn.execute("SELECT DISTINCT source FROM records WHERE attempt IS NULL").fetchall()
        return {row[0] for row in rows}

    def count(self) -> int:
        with self._reader() as conn:
            if conn is None:
                return 0
            (total,) = conn.execute("SELECT COUNT(*) FROM records WHERE attempt IS NULL").fetchone()
        return int(total)

    def health_check(self) -> bool:
        if not self.path.exists():
            return True
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StoreIOError:
            logger.warning("Vector store health-check failed", exc_info=True)
            return False
