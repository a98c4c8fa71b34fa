"""Similarity search backend protocol.

Defines the interface for any storage backend that can persist trigger
and conversation embeddings and search them by cosine similarity.

Implementations:
- In-process map with brute-force cosine scan
- PostgreSQL with pgvector (HNSW index)
- Redis Stack with vector search (HNSW index)

Methods are synchronous; the vector store service runs them in a worker
thread so they never block the event loop.
"""

from typing import Any, Protocol, runtime_checkable

from behavior_router.entities import SearchResult, StoredEmbeddingRecord


@runtime_checkable
class SimilaritySearchBackend(Protocol):
    """Protocol for similarity search backends."""

    @property
    def mode(self) -> str:
        """Short backend name reported in stats (e.g. "memory")."""
        ...

    def initialize(self) -> None:
        """Provision schema, indexes and connections.

        Raises:
            StoreUnavailableError: If the backend cannot be provisioned
        """
        ...

    def add_triggers(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert trigger embeddings atomically.

        Args:
            records: Records whose metadata carries ``behavior_id``

        Returns:
            Storage ids of the inserted records, in input order
        """
        ...

    def add_embeddings(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Insert conversation embeddings atomically.

        Returns:
            Storage ids of the inserted records, in input order
        """
        ...

    def search_triggers(
        self,
        vector: list[float],
        top_k: int,
        vector_type: str | None = None,
    ) -> list[SearchResult]:
        """Find the trigger embeddings most similar to ``vector``.

        Args:
            vector: Query embedding
            top_k: Maximum number of results
            vector_type: Only consider triggers of this type or untyped ones

        Returns:
            Results sorted by similarity descending, at most ``top_k``
        """
        ...

    def search_embeddings(
        self,
        vector: list[float],
        top_k: int,
        filters: dict[str, Any] | None = None,
        since: float | None = None,
    ) -> list[SearchResult]:
        """Find the conversation embeddings most similar to ``vector``.

        Args:
            vector: Query vector
            top_k: Maximum number of results
            filters: Exact-match constraints on metadata keys
            since: Only records created at or after this Unix timestamp

        Returns:
            Results sorted by similarity descending, at most ``top_k``
        """
        ...

    def clear(self) -> int:
        """Delete all trigger and conversation embeddings.

        Returns:
            Number of records deleted, or -1 when unknown
        """
        ...

    def counts(self) -> dict[str, int]:
        """Return record counts keyed by "triggers" and "embeddings"."""
        ...
