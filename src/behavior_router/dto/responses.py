"""Response DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class BehaviorRankingItem(BaseModel):
    """Single ranked behavior (in rankings array)."""

    behavior_id: str = Field(..., description="Candidate behavior")
    overall_score: float = Field(..., description="Weighted score after priority and continuity")
    vector_scores: dict[str, float] = Field(
        default_factory=dict,
        description="Best similarity per searched vector type (0 when not found)",
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Trigger metadata")


class BroadcastResponse(BaseModel):
    """Response DTO for the broadcast operation."""

    rankings: list[BehaviorRankingItem] = Field(
        default_factory=list,
        description="Candidates sorted by score, best first",
    )
    top_behavior_id: str = Field(..., description="Best behavior, or 'default' when nothing matched")
    top_behavior_score: float = Field(..., description="Score of the best behavior (0 when none)")
    generated_vectors: dict[str, bool] = Field(..., description="Which vector types were produced")
    inner_thought: str | None = Field(None, description="Synthesized agent observation")
    vector_latency_ms: float = Field(..., description="Time spent generating vectors in milliseconds")
    search_latency_ms: float = Field(..., description="Time spent searching triggers in milliseconds")
    total_latency_ms: float = Field(..., description="End-to-end ranking time in milliseconds")


class CandidacyPoolResponse(BaseModel):
    """Response DTO for the candidacy pool operation."""

    candidates: list[BehaviorRankingItem] = Field(
        default_factory=list,
        description="Top N ranked behaviors for the agent to choose from",
    )


class WeightsResponse(BaseModel):
    """Response DTO for the current vector weights."""

    weights: dict[str, float] = Field(..., description="Weight per vector type name")


class StoreTriggersResponse(BaseModel):
    """Response DTO for trigger seeding."""

    success: bool = Field(..., description="Whether the operation succeeded")
    ids: list[str] = Field(default_factory=list, description="Storage ids of the stored triggers")
    message: str = Field(..., description="Human-readable status message")


class ClearTriggersResponse(BaseModel):
    """Response DTO for clearing the store."""

    success: bool = Field(..., description="Whether the operation succeeded")
    deleted_count: int = Field(..., description="Records deleted (-1 when unknown)")
    message: str = Field(..., description="Human-readable status message")


class StatsResponse(BaseModel):
    """Response DTO for store and cache statistics."""

    mode: str = Field(..., description="Active similarity backend")
    degraded: bool = Field(..., description="True when running on the in-memory fallback")
    trigger_count: int = Field(..., description="Stored trigger embeddings", ge=0)
    embeddings_count: int = Field(..., description="Stored conversation embeddings", ge=0)
    embedding_cache: dict[str, Any] = Field(default_factory=dict, description="Embedding cache statistics")


class ConversationStateResponse(BaseModel):
    """Response DTO for a user's conversation state."""

    user_id: str = Field(..., description="Owner of the conversation")
    session_id: str | None = Field(None, description="Current session")
    last_user_message: str | None = Field(None, description="Most recent user message")
    last_agent_message: str | None = Field(None, description="Most recent agent message")
    recent_tool_calls: list[dict[str, Any]] = Field(default_factory=list, description="Recent tool calls")
    active_behavior_id: str | None = Field(None, description="Behavior currently running")
    message_count_in_behavior: int = Field(0, description="Turns seen in the active behavior", ge=0)
    updated_at: float = Field(0.0, description="Last write (Unix timestamp)")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'degraded'")
    store_mode: str = Field(..., description="Active similarity backend")
    store_degraded: bool = Field(..., description="Whether the store fell back to memory mode")
    state_healthy: bool = Field(..., description="Whether the conversation state store is reachable")
    embedding_healthy: bool | None = Field(
        None,
        description="Whether the embedding provider is reachable",
    )
