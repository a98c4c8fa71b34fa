"""In-process implementation of SimilaritySearchBackend.

Keeps every record in a dict and scores a query by brute-force cosine
similarity over all entries. Used when VECTOR_STORE_MODE=memory and as
the fallback when an indexed backend cannot be provisioned.
"""

import itertools
import threading
import uuid
from typing import Any

import numpy as np

from behavior_router.entities import SearchResult, StoredEmbeddingRecord
from behavior_router.exceptions import DimensionMismatchError
from behavior_router.utils import cosine_similarity_matrix


class InMemorySimilarityBackend:
    """Dict-backed backend with brute-force cosine search.

    This class satisfies the SimilaritySearchBackend protocol through
    structural typing - no explicit inheritance needed.

    Inserts build the new rows first and then publish them under a lock,
    so a batch is either fully visible to searches or not at all.
    """

    def __init__(self, dimension: int | None = None) -> None:
        """Initialize the in-memory backend.

        Args:
            dimension: Expected vector length. If None, the first insert fixes it.
        """
        self._dimension = dimension
        self._triggers: dict[str, StoredEmbeddingRecord] = {}
        self._embeddings: dict[str, StoredEmbeddingRecord] = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    @property
    def mode(self) -> str:
        return "memory"

    def initialize(self) -> None:
        """Nothing to provision."""

    def add_triggers(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert trigger embeddings under ids ``behavior:{behavior_id}:{n}``."""
        self._check_dimensions(records)
        staged = {}
        for record in records:
            behavior_id = record.metadata.get("behavior_id", "unknown")
            key = f"behavior:{behavior_id}:{next(self._sequence)}"
            staged[key] = _with_id(record, key)

        with self._lock:
            self._triggers.update(staged)
        return list(staged)

    def add_embeddings(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert conversation embeddings under random ids."""
        self._check_dimensions(records)
        staged = {}
        for record in records:
            key = record.id or uuid.uuid4().hex
            staged[key] = _with_id(record, key)

        with self._lock:
            self._embeddings.update(staged)
        return list(staged)

    def search_triggers(
        self,
        vector: list[float],
        top_k: int,
        vector_type: str | None = None,
    ) -> list[SearchResult]:
        with self._lock:
            records = list(self._triggers.values())

        if vector_type is not None:
            # Untyped triggers answer every vector type
            records = [r for r in records if r.metadata.get("vector_type") in (None, vector_type)]
        return self._rank(vector, records, top_k)

    def search_embeddings(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any] | None = None,
        since: float | None = None,
    ) -> list[SearchResult]:
        with self._lock:
            records = list(self._embeddings.values())

        if filters:
            records = [
                r for r in records
                if all(r.metadata.get(key) == value for key, value in filters.items())
            ]
        if since is not None:
            records = [r for r in records if r.created_at >= since]
        return self._rank(vector, records, top_k)

    def clear(self) -> int:
        with self._lock:
            count = len(self._triggers) + len(self._embeddings)
            self._triggers.clear()
            self._embeddings.clear()
        return count

    def counts(self) -> dict[str, int]:
        with self._lock:
            return {"triggers": len(self._triggers), "embeddings": len(self._embeddings)}

    def _rank(
        self,
        vector: list[float],
        records: list[StoredEmbeddingRecord],
        top_k: int,
    ) -> list[SearchResult]:
        if not records or top_k <= 0:
            return []

        matrix = np.asarray([r.embedding for r in records], dtype=np.float64)
        scores = cosine_similarity_matrix(vector, matrix)

        # Stable sort keeps insertion order between equal scores
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            SearchResult(
                id=records[i].id,
                content=records[i].content,
                similarity=float(scores[i]),
                metadata=dict(records[i].metadata),
            )
            for i in order
        ]

    def _check_dimensions(self, records: list[StoredEmbeddingRecord]) -> None:
        for record in records:
            if self._dimension is None:
                self._dimension = len(record.embedding)
            elif len(record.embedding) != self._dimension:
                raise DimensionMismatchError(self._dimension, len(record.embedding))


def _with_id(record: StoredEmbeddingRecord, key: str) -> StoredEmbeddingRecord:
    return StoredEmbeddingRecord(
        id=key,
        content=record.content,
        embedding=record.embedding,
        metadata=record.metadata,
        created_at=record.created_at,
    )
