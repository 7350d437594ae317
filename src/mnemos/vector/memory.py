"""In-process vector store backed by numpy.

Exact (brute-force) cosine search over vectors held in memory. Suitable
for development, tests and small single-process deployments; contents are
lost on restart.
"""

import threading
from typing import Any

import numpy as np


class InMemoryVectorStore:
    """Brute-force cosine similarity store with metadata filtering."""

    def __init__(self) -> None:
        self._vectors: dict[str, np.ndarray] = {}
        self._documents: dict[str, str] = {}
        self._metadata: dict[str, dict[str, Any]] = {}
        # Called from executor threads
        self._lock = threading.Lock()

    @staticmethod
    def _matches(meta: dict[str, Any], where: dict[str, Any] | None) -> bool:
        if not where:
            return True
        return all(meta.get(key) == value for key, value in where.items())

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadata: list[dict[str, Any]],
    ) -> None:
        with self._lock:
            for doc_id, emb, doc, meta in zip(ids, embeddings, documents, metadata, strict=True):
                vec = np.asarray(emb, dtype=np.float64)
                norm = np.linalg.norm(vec)
                self._vectors[doc_id] = vec / norm if norm else vec
                self._documents[doc_id] = doc
                self._metadata[doc_id] = dict(meta)

    def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        where: dict[str, Any] | None = None,
    ) -> tuple[list[str], list[str], list[dict[str, Any]], list[float]]:
        query = np.asarray(query_embedding, dtype=np.float64)
        norm = np.linalg.norm(query)
        if norm:
            query = query / norm

        with self._lock:
            candidates = [
                doc_id
                for doc_id, meta in self._metadata.items()
                if self._matches(meta, where)
            ]
            if not candidates:
                return [], [], [], []

            matrix = np.stack([self._vectors[doc_id] for doc_id in candidates])
            distances = 1.0 - matrix @ query
            order = np.argsort(distances, kind="stable")[:top_k]

            ids = [candidates[i] for i in order]
            return (
                ids,
                [self._documents[doc_id] for doc_id in ids],
                [dict(self._metadata[doc_id]) for doc_id in ids],
                [float(distances[i]) for i in order],
            )

    def delete(
        self,
        ids: list[str] | None = None,
        where: dict[str, Any] | None = None,
    ) -> None:
        with self._lock:
            targets = set(ids or [])
            if where:
                targets.update(
                    doc_id for doc_id, meta in self._metadata.items() if self._matches(meta, where)
                )
            for doc_id in targets:
                self._vectors.pop(doc_id, None)
                self._documents.pop(doc_id, None)
                self._metadata.pop(doc_id, None)

    def count(self) -> int:
        with self._lock:
            return len(self._vectors)
