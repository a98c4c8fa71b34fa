"""Conversation state domain entities."""

from dataclasses import dataclass, field
from typing import Any

from .vector_type import VectorType


@dataclass(frozen=True)
class ToolCall:
    """A recent tool invocation made by the agent."""

    tool: str
    params: dict[str, Any] = field(default_factory=dict)
    result: Any = None


@dataclass(frozen=True)
class ConversationState:
    """Per-user conversation record owned by the search service.

    Attributes:
        user_id: Owner of the conversation
        session_id: Current session, if known
        last_user_message: Most recent user message
        last_agent_message: Most recent agent message
        recent_tool_calls: Serialized recent tool calls
        active_behavior_id: Behavior the agent is currently running
        message_count_in_behavior: Turns seen since the behavior started
        updated_at: Unix timestamp of the last write
    """

    user_id: str
    session_id: str | None = None
    last_user_message: str | None = None
    last_agent_message: str | None = None
    recent_tool_calls: list[dict[str, Any]] = field(default_factory=list)
    active_behavior_id: str | None = None
    message_count_in_behavior: int = 0
    updated_at: float = 0.0


@dataclass(frozen=True)
class ConversationStateUpdate:
    """Partial update for a conversation state.

    Fields left as None keep the stored value.
    """

    session_id: str | None = None
    last_user_message: str | None = None
    last_agent_message: str | None = None
    recent_tool_calls: list[dict[str, Any]] | None = None
    active_behavior_id: str | None = None
    message_count_in_behavior: int | None = None

    def changes(self) -> dict[str, Any]:
        """Return only the fields that carry a value."""
        return {
            name: value
            for name, value in self.__dict__.items()
            if value is not None
        }


@dataclass(frozen=True)
class ConversationEmbedding:
    """A live-conversation embedding written back after a broadcast."""

    user_id: str
    vector_type: VectorType
    source_text: str
    embedding: list[float]
    session_id: str | None = None
    behavior_context: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
