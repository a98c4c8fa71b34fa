"""Conversation state store implementations.

Both stores satisfy the ConversationStateStore protocol, increment the
per-user message counter atomically and reset it to zero whenever the
active behavior changes:
- InMemoryConversationStateStore: a dict guarded by a lock
- RedisConversationStateStore: one hash per user, counter via HINCRBY
"""

import json
import threading
import time
from dataclasses import replace

import redis.asyncio as aioredis

from behavior_router.config import get_async_redis_client, settings
from behavior_router.entities import ConversationState, ConversationStateUpdate


class InMemoryConversationStateStore:
    """Process-local conversation state.

    All reads and writes happen under one lock with no awaits inside, so
    a read-modify-write never interleaves with another coroutine or thread.
    """

    def __init__(self) -> None:
        self._states: dict[str, ConversationState] = {}
        self._lock = threading.Lock()

    async def get(self, user_id: str) -> ConversationState | None:
        with self._lock:
            return self._states.get(user_id)

    async def upsert(self, user_id: str, update: ConversationStateUpdate) -> ConversationState:
        with self._lock:
            current = self._states.get(user_id) or ConversationState(user_id=user_id)
            changes = update.changes()
            if _switches_behavior(current.active_behavior_id, update):
                changes["message_count_in_behavior"] = 0
            state = replace(current, **changes, updated_at=time.time())
            self._states[user_id] = state
            return state

    async def increment_message_count(self, user_id: str) -> int:
        with self._lock:
            current = self._states.get(user_id) or ConversationState(user_id=user_id)
            count = current.message_count_in_behavior + 1
            self._states[user_id] = replace(current, message_count_in_behavior=count, updated_at=time.time())
            return count

    async def health_check(self) -> bool:
        return True


class RedisConversationStateStore:
    """Redis-backed conversation state.

    Each user's state is a hash at ``{prefix}:{user_id}``. Field updates use
    HSET with only the provided fields; the counter uses HINCRBY, which is
    atomic on the server.
    """

    COUNT_FIELD = "message_count_in_behavior"

    def __init__(
        self,
        redis_client: aioredis.Redis | None = None,
        key_prefix: str | None = None,
    ) -> None:
        """Initialize the Redis state store.

        Args:
            redis_client: asyncio Redis client with decode_responses=True.
            key_prefix: Key prefix. Defaults to settings.state_key_prefix.
        """
        self._client = redis_client or get_async_redis_client()
        self._prefix = key_prefix or settings.state_key_prefix

    @classmethod
    def create(cls, key_prefix: str | None = None) -> "RedisConversationStateStore":
        """Factory method to create RedisConversationStateStore with defaults."""
        return cls(key_prefix=key_prefix)

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}:{user_id}"

    async def get(self, user_id: str) -> ConversationState | None:
        data = await self._client.hgetall(self._key(user_id))
        if not data:
            return None

        return ConversationState(
            user_id=user_id,
            session_id=data.get("session_id"),
            last_user_message=data.get("last_user_message"),
            last_agent_message=data.get("last_agent_message"),
            recent_tool_calls=json.loads(data.get("recent_tool_calls", "[]")),
            active_behavior_id=data.get("active_behavior_id"),
            message_count_in_behavior=int(data.get(self.COUNT_FIELD, 0)),
            updated_at=float(data.get("updated_at", 0.0)),
        )

    async def upsert(self, user_id: str, update: ConversationStateUpdate) -> ConversationState:
        mapping = {"updated_at": str(time.time())}
        for name, value in update.changes().items():
            if name == "recent_tool_calls":
                mapping[name] = json.dumps(value, default=str)
            else:
                mapping[name] = str(value)

        key = self._key(user_id)
        if update.active_behavior_id is not None:
            active = await self._client.hget(key, "active_behavior_id")
            if _switches_behavior(active, update):
                mapping[self.COUNT_FIELD] = "0"

        await self._client.hset(key, mapping=mapping)
        state = await self.get(user_id)
        return state or ConversationState(user_id=user_id)

    async def increment_message_count(self, user_id: str) -> int:
        key = self._key(user_id)
        pipe = self._client.pipeline(transaction=True)
        pipe.hincrby(key, self.COUNT_FIELD, 1)
        pipe.hset(key, "updated_at", str(time.time()))
        count, _ = await pipe.execute()
        return int(count)

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self._client.aclose()


def _switches_behavior(active_behavior_id: str | None, update: ConversationStateUpdate) -> bool:
    return update.active_behavior_id is not None and update.active_behavior_id != active_behavior_id
