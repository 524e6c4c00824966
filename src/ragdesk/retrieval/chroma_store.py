"""Chroma implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import chromadb
import numpy as np
from chromadb.config import Settings as ChromaSettings

from ragdesk.errors import DimensionMismatch, StoreIOError
from ragdesk.ingestion.models import chunk_record_id
from ragdesk.retrieval.base import VectorStoreBase, rank
from ragdesk.retrieval.models import SearchHit, StoredRecord

logger = logging.getLogger(__name__)

# Extra candidates fetched so score ties at the k-th position are resolved
# by insertion order rather than by HNSW visiting order.
_TIE_MARGIN = 16

_COMMITTED = "committed"


def _where_source(source_id: str, attempt: str) -> dict[str, Any]:
    return {"$and": [{"source": source_id}, {"attempt": attempt}]}


def _to_record(record_id: str, content: str | None, meta: dict[str, Any]) -> StoredRecord:
    return StoredRecord(
        record_id=record_id.split("@", 1)[0],
        source_id=str(meta.get("source", "unknown")),
        chunk_index=int(meta.get("chunk_index", 0)),
        text=content or "",
        start=meta.get("start"),
        end=meta.get("end"),
        seq=int(meta.get("seq", 0)),
    )


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store persisted under a local directory.

    Parameters
    ----------
    path:
        Directory for Chroma's persistent client.
    dimension:
        Vector length; stored in the collection metadata and verified on open.
    collection_name:
        Name of the Chroma collection.
    client:
        Pre-built Chroma client, e.g. an ``EphemeralClient`` or ``HttpClient``.
    """

    def __init__(
        self,
        path: str | Path,
        dimension: int,
        *,
        collection_name: str = "ragdesk",
        client: Any | None = None,
    ) -> None:
        super().__init__(dimension)
        self.collection_name = collection_name
        if client is None:
            client = chromadb.PersistentClient(
                path=str(path), settings=ChromaSettings(anonymized_telemetry=False)
            )
        self._client = client
        self._collection = self._open_collection()
        self._seq = self._max_seq()

    def _open_collection(self) -> Any:
        collection = self._client.get_or_create_collection(
            self.collection_name, metadata={"hnsw:space": "cosine"}
        )
        # An existing collection is checked against one of its stored vectors.
        sample = collection.get(limit=1, include=["embeddings"]).get("embeddings")
        if sample is not None and len(sample) > 0 and len(sample[0]) != self.dimension:
            raise DimensionMismatch(len(sample[0]), self.dimension)
        return collection

    def _max_seq(self) -> int:
        metas = self._collection.get(include=["metadatas"]).get("metadatas") or []
        return max((int(m.get("seq", 0)) for m in metas if m), default=0)

    def _call(self, op: str, fn: Any, **kwargs: Any) -> Any:
        try:
            return fn(**kwargs)
        except Exception as exc:
            raise StoreIOError(f"Chroma {op} failed: {exc}", {"collection": self.collection_name}) from exc

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
        row_id = f"{record_id}@{attempt}" if attempt else record_id

        with self._lock.write():
            existing = self._call("get", self._collection.get, ids=[row_id], include=["metadatas"])
            if existing.get("ids"):
                seq = int(existing["metadatas"][0].get("seq", 0))
            else:
                self._seq += 1
                seq = self._seq
            meta: dict[str, Any] = {
                "source": source_id,
                "chunk_index": chunk_index,
                "attempt": attempt or _COMMITTED,
                "seq": seq,
            }
            # Chroma metadata values cannot be None.
            if start is not None:
                meta["start"] = start
            if end is not None:
                meta["end"] = end
            self._call(
                "upsert",
                self._collection.upsert,
                ids=[row_id],
                embeddings=[arr.tolist()],
                documents=[text],
                metadatas=[meta],
            )
        return record_id

    def delete_source(self, source_id: str) -> None:
        with self._lock.write():
            self._call("delete", self._collection.delete, where={"source": source_id})

    def commit_attempt(self, source_id: str, attempt: str, expected: int | None = None) -> int:
        # Chroma has no multi-call transaction: promoted records overwrite the
        # committed ids first, so a failed upsert leaves the old version live.
        with self._lock.write():
            staged = self._call(
                "get",
                self._collection.get,
                where=_where_source(source_id, attempt),
                include=["embeddings", "documents", "metadatas"],
            )
            ids = staged.get("ids") or []
            if expected is not None and len(ids) != expected:
                raise StoreIOError(
                    f"Staged records of {source_id} were lost before commit",
                    {"source_id": source_id, "expected": expected, "staged": len(ids)},
                )
            if not ids:
                self._call("delete", self._collection.delete, where=_where_source(source_id, _COMMITTED))
                return 0

            metas = [{**meta, "attempt": _COMMITTED} for meta in staged["metadatas"]]
            self._call(
                "upsert",
                self._collection.upsert,
                ids=[chunk_record_id(source_id, int(m["chunk_index"])) for m in metas],
                embeddings=[np.asarray(e, dtype=np.float32).tolist() for e in staged["embeddings"]],
                documents=list(staged["documents"]),
                metadatas=metas,
            )
            # Leftovers of a longer previous version.
            self._call(
                "delete",
                self._collection.delete,
                where={
                    "$and": [
                        {"source": source_id},
                        {"attempt": _COMMITTED},
                        {"chunk_index": {"$gte": len(ids)}},
                    ]
                },
            )
            self._call("delete", self._collection.delete, ids=list(ids))
        return len(ids)

    def discard_attempt(self, source_id: str, attempt: str) -> None:
        with self._lock.write():
            self._call("delete", self._collection.delete, where=_where_source(source_id, attempt))

    def clear(self) -> None:
        with self._lock.write():
            try:
                self._client.delete_collection(self.collection_name)
            except Exception:
                logger.debug("Collection %s did not exist", self.collection_name)
            self._collection = self._open_collection()
            self._seq = 0
        logger.info("Chroma collection cleared: %s", self.collection_name)

    # -- reads ----------------------------------------------------------------

    def _committed_ids(self) -> list[str]:
        result = self._call("get", self._collection.get, where={"attempt": _COMMITTED}, include=["metadatas"])
        return list(result.get("ids") or [])

    def query(self, vector: Sequence[float], k: int) -> list[SearchHit]:
        arr = self._check_dimension(vector)
        if k <= 0:
            return []
        with self._lock.read():
            available = len(self._committed_ids())
            if available == 0:
                return []
            results = self._call(
                "query",
                self._collection.query,
                query_embeddings=[arr.tolist()],
                n_results=min(available, k + _TIE_MARGIN),
                where={"attempt": _COMMITTED},
                include=["documents", "metadatas", "distances"],
            )

        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]
        records = [_to_record(i, d, m or {}) for i, d, m in zip(ids, docs, metas)]
        if not records:
            return []

        # Chroma's cosine space returns 1 - cosine similarity.
        scores = np.array([1.0 - float(dist) for dist in distances])
        seqs = np.array([rec.seq for rec in records])
        return [SearchHit(record=records[i], score=float(scores[i])) for i in rank(scores, seqs, k)]

    def list_sources(self) -> set[str]:
        with self._lock.read():
            result = self._call(
                "get", self._collection.get, where={"attempt": _COMMITTED}, include=["metadatas"]
            )
        return {str(m["source"]) for m in (result.get("metadatas") or []) if m and "source" in m}

    def count(self) -> int:
        with self._lock.read():
            return len(self._committed_ids())

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
