"""Service layer for business logic.

This layer contains the behavior routing pipeline.
Services depend on protocols (interfaces), not concrete implementations,
making them testable and flexible.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)

Usage:
    ```python
    from behavior_router.services import (
        EmbeddingService,
        VectorBroadcastService,
        VectorSearchService,
        VectorStoreService,
    )

    embeddings = EmbeddingService.create(provider)
    store = VectorStoreService.create(embeddings)
    search = VectorSearchService(vector_store=store, state_store=state_store)
    broadcaster = VectorBroadcastService(embeddings, search, chat_provider)
    ```
"""

from .embedding_service import EmbeddingService
from .vector_broadcast_service import VectorBroadcastService
from .vector_search_service import VectorSearchService, merge_weights
from .vector_store_service import VectorStoreService

__all__ = [
    "EmbeddingService",
    "VectorStoreService",
    "VectorSearchService",
    "VectorBroadcastService",
    "merge_weights",
]
