"""Behavior Router - multi-vector behavior routing for conversational agents.

Each user turn is embedded along several channels (user message, agent
message, combined exchange, agent inner thought, external context, tool
calls), every channel is searched against stored behavior triggers, and
the hits are folded into a weighted, priority-adjusted behavior ranking.

Layers:
    - protocols: Interface contracts (EmbeddingProvider, SimilaritySearchBackend, ...)
    - repositories: Data access implementations
    - services: Business logic
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from behavior_router.services import EmbeddingService, VectorStoreService

    embeddings = EmbeddingService.create(OpenAIEmbeddingProvider.create())
    store = VectorStoreService.create(embeddings, mode="memory")
    ```

For HTTP API:
    ```python
    from behavior_router.api.app import app
    ```
"""

from behavior_router.config import get_async_redis_client, get_redis_client, settings
from behavior_router.entities import (
    BehaviorRanking,
    BehaviorTrigger,
    BroadcastInput,
    BroadcastResult,
    ToolCall,
    VectorType,
)
from behavior_router.exceptions import (
    BehaviorRouterError,
    ProviderError,
    SearchError,
    ValidationError,
)
from behavior_router.protocols import (
    ChatProvider,
    ConversationStateStore,
    EmbeddingProvider,
    SimilaritySearchBackend,
)
from behavior_router.repositories import (
    InMemoryConversationStateStore,
    InMemorySimilarityBackend,
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
)
from behavior_router.services import (
    EmbeddingService,
    VectorBroadcastService,
    VectorSearchService,
    VectorStoreService,
)

__all__ = [
    # Configuration
    "settings",
    "get_redis_client",
    "get_async_redis_client",
    # Protocols (interfaces)
    "ChatProvider",
    "ConversationStateStore",
    "EmbeddingProvider",
    "SimilaritySearchBackend",
    # Services (business logic)
    "EmbeddingService",
    "VectorStoreService",
    "VectorSearchService",
    "VectorBroadcastService",
    # Repositories (data access)
    "InMemoryConversationStateStore",
    "InMemorySimilarityBackend",
    "OpenAIChatProvider",
    "OpenAIEmbeddingProvider",
    # Entities (domain models)
    "BehaviorRanking",
    "BehaviorTrigger",
    "BroadcastInput",
    "BroadcastResult",
    "ToolCall",
    "VectorType",
    # Errors
    "BehaviorRouterError",
    "ProviderError",
    "SearchError",
    "ValidationError",
]
