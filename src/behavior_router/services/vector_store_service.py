"""Vector store service.

Persists trigger and conversation embeddings and searches them by
cosine similarity, through whichever SimilaritySearchBackend was
configured. If the configured backend cannot be provisioned the service
falls back, once, to the in-memory backend.
"""

import asyncio
import logging
import time
from typing import Any

from behavior_router.config import settings
from behavior_router.entities import BehaviorTrigger, SearchResult, StoredEmbeddingRecord, VectorType
from behavior_router.protocols import SimilaritySearchBackend
from behavior_router.repositories import (
    InMemorySimilarityBackend,
    PgVectorBackend,
    RedisVectorBackend,
)

from .embedding_service import EmbeddingService

logger = logging.getLogger(__name__)


class VectorStoreService:
    """Trigger and conversation embedding storage.

    Backend calls are synchronous and run in a worker thread via
    ``asyncio.to_thread`` so they never block the event loop.

    Example:
        ```python
        store = VectorStoreService.create(embedding_service)
        await store.initialize()
        await store.store_trigger_embeddings([
            BehaviorTrigger("breathing_exercise", "I can't calm down"),
        ])
        results = await store.top_k_similar("I'm so stressed", top_k=5)
        ```
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        backend: SimilaritySearchBackend,
        latency_warn_ms: float | None = None,
    ) -> None:
        """Initialize the vector store service.

        Args:
            embedding_service: Used to embed trigger and query texts (required).
            backend: Preferred similarity backend (required).
            latency_warn_ms: Search latency target. Defaults to settings.
        """
        self._embeddings = embedding_service
        self._backend = backend
        self._latency_warn_ms = latency_warn_ms or settings.search_latency_warn_ms
        self._initialized = False
        self._degraded = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        embedding_service: EmbeddingService,
        mode: str | None = None,
    ) -> "VectorStoreService":
        """Factory method selecting the backend from VECTOR_STORE_MODE.

        Args:
            embedding_service: Embedding service shared with the rest of the app.
            mode: "memory", "postgres" or "redis". If None, uses settings.

        Returns:
            Configured (not yet initialized) VectorStoreService
        """
        mode = mode or settings.vector_store_mode
        dimension = embedding_service.dimension

        backend: SimilaritySearchBackend
        if mode == "memory":
            backend = InMemorySimilarityBackend(dimension=dimension)
        elif mode == "redis":
            backend = RedisVectorBackend.create(dimension=dimension)
        else:
            backend = PgVectorBackend.create(dimension=dimension)

        return cls(embedding_service=embedding_service, backend=backend)

    async def initialize(self) -> None:
        """Provision the backend, falling back to memory mode on failure.

        Never raises for provisioning problems; the fallback is logged as a
        degraded-mode warning.
        """
        async with self._init_lock:
            if self._initialized:
                return

            try:
                await asyncio.to_thread(self._backend.initialize)
            except Exception as e:
                logger.warning(
                    "Vector store backend %r unavailable (%s); falling back to memory mode",
                    self._backend.mode,
                    e,
                )
                self._backend = InMemorySimilarityBackend(dimension=self._embeddings.dimension)
                self._degraded = True
            else:
                if isinstance(self._backend, InMemorySimilarityBackend):
                    logger.info("Vector store initialized in memory mode")

            self._initialized = True

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def store_trigger_embeddings(self, triggers: list[BehaviorTrigger]) -> list[str]:
        """Embed and store behavior triggers.

        The whole call is atomic: either every trigger becomes searchable
        or none does.

        Args:
            triggers: Triggers to store

        Returns:
            Storage ids of the stored triggers
        """
        if not triggers:
            return []
        await self._ensure_initialized()

        start_time = time.perf_counter()
        vectors = await self._embeddings.generate_batch_embeddings([t.trigger_text for t in triggers])

        now = time.time()
        records = [
            StoredEmbeddingRecord(
                id="",
                content=trigger.trigger_text,
                embedding=vector,
                metadata={
                    **trigger.metadata,
                    "behavior_id": trigger.behavior_id,
                    "trigger_text": trigger.trigger_text,
                    **({"vector_type": trigger.vector_type.value} if trigger.vector_type else {}),
                },
                created_at=now,
            )
            for trigger, vector in zip(triggers, vectors)
        ]
        ids = await asyncio.to_thread(self._backend.add_triggers, records)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info("Stored %d behavior trigger embeddings in %.0fms", len(triggers), duration_ms)
        return ids

    async def store_embeddings(self, records: list[StoredEmbeddingRecord]) -> list[str]:
        """Store pre-computed conversation embeddings."""
        if not records:
            return []
        await self._ensure_initialized()
        return await asyncio.to_thread(self._backend.add_embeddings, records)

    async def search_similar(
        self,
        query_embedding: list[float],
        top_k: int = 20,
        vector_type: VectorType | None = None,
    ) -> list[SearchResult]:
        """Search trigger embeddings by cosine similarity.

        Args:
            query_embedding: Query vector
            top_k: Maximum number of results
            vector_type: Restrict to triggers of this type (untyped triggers always match)

        Returns:
            Results sorted by similarity descending
        """
        await self._ensure_initialized()

        start_time = time.perf_counter()
        type_name = vector_type.value if vector_type is not None else None
        results = await asyncio.to_thread(self._backend.search_triggers, query_embedding, top_k, type_name)
        self._warn_if_slow(start_time)
        return results

    async def search_embeddings(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
        since: float | None = None,
    ) -> list[SearchResult]:
        """Search stored conversation embeddings by cosine similarity."""
        await self._ensure_initialized()

        start_time = time.perf_counter()
        results = await asyncio.to_thread(
            self._backend.search_embeddings, query_embedding, top_k, filters, since
        )
        self._warn_if_slow(start_time)
        return results

    async def top_k_similar(self, query_text: str, top_k: int = 20) -> list[SearchResult]:
        """Embed ``query_text`` and return the most similar triggers."""
        query_embedding = await self._embeddings.generate_embedding(query_text)
        return await self.search_similar(query_embedding, top_k)

    async def clear_all(self) -> int:
        """Delete every stored embedding.

        Returns:
            Number of records deleted, or -1 when unknown
        """
        await self._ensure_initialized()
        return await asyncio.to_thread(self._backend.clear)

    async def get_stats(self) -> dict:
        """Get storage statistics.

        Returns:
            Dictionary with backend mode and record counts
        """
        await self._ensure_initialized()
        counts = await asyncio.to_thread(self._backend.counts)
        return {
            "mode": self._backend.mode,
            "degraded": self._degraded,
            "count": counts.get("triggers", 0),
            "embeddings_count": counts.get("embeddings", 0),
        }

    def _warn_if_slow(self, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        if duration_ms > self._latency_warn_ms:
            logger.warning(
                "%s search took %.0fms (target: <%.0fms)",
                self._backend.mode,
                duration_ms,
                self._latency_warn_ms,
            )

    @property
    def backend(self) -> SimilaritySearchBackend:
        """Get the active backend (for testing)."""
        return self._backend

    @property
    def is_degraded(self) -> bool:
        """True when running on the in-memory fallback."""
        return self._degraded
