"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import (
    BroadcastRequest,
    StoreTriggersRequest,
    ToolCallItem,
    TriggerItem,
    WeightsUpdateRequest,
)
from .responses import (
    BehaviorRankingItem,
    BroadcastResponse,
    CandidacyPoolResponse,
    ClearTriggersResponse,
    ConversationStateResponse,
    HealthCheckResponse,
    StatsResponse,
    StoreTriggersResponse,
    WeightsResponse,
)

__all__ = [
    "BroadcastRequest",
    "ToolCallItem",
    "TriggerItem",
    "StoreTriggersRequest",
    "WeightsUpdateRequest",
    "BehaviorRankingItem",
    "BroadcastResponse",
    "CandidacyPoolResponse",
    "WeightsResponse",
    "StoreTriggersResponse",
    "ClearTriggersResponse",
    "StatsResponse",
    "ConversationStateResponse",
    "HealthCheckResponse",
]
