"""Conversation state store protocol.

Holds one mutable record per user. The message counter must be
incremented atomically by the store itself so concurrent turns for the
same user never lose an increment.
"""

from typing import Protocol, runtime_checkable

from behavior_router.entities import ConversationState, ConversationStateUpdate


@runtime_checkable
class ConversationStateStore(Protocol):
    """Protocol for per-user conversation state storage."""

    async def get(self, user_id: str) -> ConversationState | None:
        """Return the stored state, or None for a user never seen."""
        ...

    async def upsert(self, user_id: str, update: ConversationStateUpdate) -> ConversationState:
        """Create or merge the user's state; None fields keep stored values."""
        ...

    async def increment_message_count(self, user_id: str) -> int:
        """Atomically add one to ``message_count_in_behavior``.

        Returns:
            The new count (1 for a user never seen)
        """
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...
