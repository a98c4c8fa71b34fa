"""Request DTOs for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from behavior_router.entities import VectorType


class ToolCallItem(BaseModel):
    """A tool invocation the agent made since the last turn."""

    tool: str = Field(..., description="Tool name", min_length=1)
    params: dict[str, Any] = Field(default_factory=dict, description="Parameters the tool was called with")
    result: Any = Field(None, description="Tool result, if any")


class BroadcastRequest(BaseModel):
    """Request DTO for routing one conversational turn.

    The handler will convert this to a BroadcastInput for the service layer.
    """

    user_id: str = Field(..., description="Owner of the conversation", min_length=1)
    user_message: str = Field(..., description="The message just received", min_length=1)
    last_agent_message: str | None = Field(None, description="The agent's previous reply")
    recent_tool_calls: list[ToolCallItem] = Field(
        default_factory=list,
        description="Tool calls made since the last turn",
    )
    current_behavior_id: str | None = Field(None, description="Behavior currently active")
    session_id: str | None = Field(None, description="Session identifier")


class TriggerItem(BaseModel):
    """Single trigger phrasing for a behavior."""

    behavior_id: str = Field(..., description="Behavior this trigger selects", min_length=1)
    trigger_text: str = Field(..., description="Example phrasing to embed", min_length=1)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Optional metadata; 'priority' (1-10) boosts the behavior",
    )
    vector_type: VectorType | None = Field(
        None,
        description="Only match this vector type; omit to match every type",
    )


class StoreTriggersRequest(BaseModel):
    """Request DTO for seeding behavior triggers."""

    triggers: list[TriggerItem] = Field(..., description="Triggers to embed and store", min_length=1)


class WeightsUpdateRequest(BaseModel):
    """Request DTO for overriding vector weights.

    Only the listed vector types change; the rest keep their weight.
    """

    weights: dict[str, float] = Field(
        ...,
        description="Weight per vector type name, e.g. {'agent_thought': 0.6}",
    )
