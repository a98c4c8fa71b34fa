"""Vector type enumeration and default ranking weights."""

from enum import Enum


class VectorType(str, Enum):
    """The six embedding channels generated for one conversational turn.

    Declaration order is the canonical order used when aggregating
    search results, so it also decides ties between equal scores.
    """

    USER_MESSAGE = "user_message"
    AGENT_MESSAGE = "agent_message"
    COMBINED_EXCHANGE = "combined_exchange"
    AGENT_THOUGHT = "agent_thought"
    EXTERNAL_CONTEXT = "external_context"
    TOOL_CALL = "tool_call"


DEFAULT_VECTOR_WEIGHTS: dict[str, float] = {
    VectorType.USER_MESSAGE.value: 1.0,  # primary signal
    VectorType.AGENT_MESSAGE.value: 0.3,
    VectorType.COMBINED_EXCHANGE.value: 0.5,
    VectorType.AGENT_THOUGHT.value: 0.7,
    VectorType.EXTERNAL_CONTEXT.value: 0.4,
    VectorType.TOOL_CALL.value: 0.3,
}
