"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (memory -> pgvector -> Redis, etc.)
- Unit testing with fake implementations
- Clear separation of concerns
"""

from .chat_provider import ChatProvider
from .conversation_state_store import ConversationStateStore
from .embedding_provider import EmbeddingProvider
from .similarity_backend import SimilaritySearchBackend

__all__ = [
    "ChatProvider",
    "ConversationStateStore",
    "EmbeddingProvider",
    "SimilaritySearchBackend",
]
