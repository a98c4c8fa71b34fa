"""Repository layer for data access.

This layer abstracts external dependencies (embedding and chat APIs,
PostgreSQL, Redis) behind protocol-based interfaces. This enables:
- Easy swapping of implementations (memory -> pgvector -> Redis, etc.)
- Unit testing with fake implementations
- Clear separation of concerns

The repositories are protocol-based (structural typing), not inheritance-based.
Any class implementing the required methods will satisfy the protocol.
"""

from behavior_router.protocols import (
    ChatProvider,
    ConversationStateStore,
    EmbeddingProvider,
    SimilaritySearchBackend,
)

from .conversation_state import InMemoryConversationStateStore, RedisConversationStateStore
from .memory_backend import InMemorySimilarityBackend
from .openai_chat_provider import OpenAIChatProvider
from .openai_embedding_provider import OpenAIEmbeddingProvider
from .pgvector_backend import PgVectorBackend
from .redis_backend import RedisVectorBackend

__all__ = [
    "ChatProvider",
    "ConversationStateStore",
    "EmbeddingProvider",
    "SimilaritySearchBackend",
    "InMemoryConversationStateStore",
    "InMemorySimilarityBackend",
    "OpenAIChatProvider",
    "OpenAIEmbeddingProvider",
    "PgVectorBackend",
    "RedisConversationStateStore",
    "RedisVectorBackend",
]
