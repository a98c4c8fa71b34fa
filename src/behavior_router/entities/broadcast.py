"""Broadcast input/output entities."""

from dataclasses import dataclass, field

from .conversation import ToolCall
from .ranking import BehaviorRanking
from .vector_type import VectorType

DEFAULT_BEHAVIOR_ID = "default"


@dataclass(frozen=True)
class BroadcastInput:
    """One conversational turn to route.

    Attributes:
        user_id: Owner of the conversation
        user_message: The message just received
        last_agent_message: The agent's previous reply, if any
        recent_tool_calls: Tool calls made since the last turn
        current_behavior_id: Behavior currently active, if any
        session_id: Session identifier, if any
    """

    user_id: str
    user_message: str
    last_agent_message: str | None = None
    recent_tool_calls: list[ToolCall] = field(default_factory=list)
    current_behavior_id: str | None = None
    session_id: str | None = None


@dataclass
class VectorGenerationResult:
    """Embeddings produced for one broadcast, by logical name."""

    user_message: list[float] | None = None
    agent_message: list[float] | None = None
    combined: list[float] | None = None
    agent_thought: list[float] | None = None
    external_context: list[float] | None = None
    tool_call: list[float] | None = None
    inner_thought: str | None = None
    external_context_text: str | None = None

    def as_vectors(self) -> dict[VectorType, list[float]]:
        """Map present embeddings to their vector types."""
        pairs = [
            (VectorType.USER_MESSAGE, self.user_message),
            (VectorType.AGENT_MESSAGE, self.agent_message),
            (VectorType.COMBINED_EXCHANGE, self.combined),
            (VectorType.AGENT_THOUGHT, self.agent_thought),
            (VectorType.EXTERNAL_CONTEXT, self.external_context),
            (VectorType.TOOL_CALL, self.tool_call),
        ]
        return {vector_type: vector for vector_type, vector in pairs if vector is not None}

    def generated(self) -> dict[str, bool]:
        """Flag which of the six vectors were produced."""
        present = self.as_vectors()
        return {vector_type.value: vector_type in present for vector_type in VectorType}


@dataclass(frozen=True)
class BroadcastResult:
    """Ranked candidates plus timing telemetry for one broadcast."""

    rankings: list[BehaviorRanking]
    top_behavior_id: str
    top_behavior_score: float
    vector_latency_ms: float
    search_latency_ms: float
    total_latency_ms: float
    generated_vectors: dict[str, bool]
    inner_thought: str | None = None
