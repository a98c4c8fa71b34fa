"""Domain entities for internal representation.

These are pure dataclasses used internally by services and
repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .broadcast import DEFAULT_BEHAVIOR_ID, BroadcastInput, BroadcastResult, VectorGenerationResult
from .conversation import ConversationEmbedding, ConversationState, ConversationStateUpdate, ToolCall
from .ranking import BehaviorCandidate, BehaviorRanking, MultiVectorSearchResult
from .trigger import BehaviorTrigger, SearchResult, StoredEmbeddingRecord, TriggerMatch
from .vector_type import DEFAULT_VECTOR_WEIGHTS, VectorType

__all__ = [
    "DEFAULT_BEHAVIOR_ID",
    "DEFAULT_VECTOR_WEIGHTS",
    "BehaviorCandidate",
    "BehaviorRanking",
    "BehaviorTrigger",
    "BroadcastInput",
    "BroadcastResult",
    "ConversationEmbedding",
    "ConversationState",
    "ConversationStateUpdate",
    "MultiVectorSearchResult",
    "SearchResult",
    "StoredEmbeddingRecord",
    "ToolCall",
    "TriggerMatch",
    "VectorGenerationResult",
    "VectorType",
]
