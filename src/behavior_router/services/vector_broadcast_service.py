"""Vector broadcast service.

Core broadcast mechanism: generates every vector type for a turn
concurrently and ranks behaviors using weighted multi-vector similarity
search.

Pipeline per call:
    generate vectors (parallel) -> search -> rank -> prioritize
    -> persist embeddings (best-effort) -> update state (best-effort)
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime
from typing import Any

from behavior_router.config import settings
from behavior_router.entities import (
    DEFAULT_BEHAVIOR_ID,
    DEFAULT_VECTOR_WEIGHTS,
    BehaviorRanking,
    BroadcastInput,
    BroadcastResult,
    ConversationEmbedding,
    ConversationStateUpdate,
    ToolCall,
    VectorGenerationResult,
    VectorType,
)
from behavior_router.exceptions import PersistenceError, ProviderError, StateUpdateError, ValidationError
from behavior_router.protocols import ChatProvider

from .embedding_service import EmbeddingService
from .vector_search_service import VectorSearchService, merge_weights

logger = logging.getLogger(__name__)

FALLBACK_THOUGHT_TEMPLATE = "User said: {user_message}"
FALLBACK_EXTERNAL_CONTEXT = "Conversation context"
DEFAULT_THOUGHT = "User is engaging in conversation."

INNER_THOUGHT_PROMPT = """You are an AI wellness companion observing a conversation.

User's message: "{user_message}"
{agent_line}
{behavior_line}

In 1-2 sentences, what is your internal observation about the user's state, needs, or the conversation direction?
Focus on: emotional state, underlying needs, topic shifts, or appropriate next behavior.

Inner thought:"""


def time_of_day(hour: int) -> str:
    """Bucket an hour of the day into morning, afternoon or evening."""
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def format_tool_calls(tool_calls: list[ToolCall]) -> str:
    """Describe recent tool calls as one embeddable sentence list."""
    return ". ".join(
        f"Called {call.tool} with params {json.dumps(call.params, sort_keys=True, default=str)}"
        for call in tool_calls
    )


class VectorBroadcastService:
    """Top-level broadcast orchestrator.

    Example:
        ```python
        broadcaster = VectorBroadcastService(
            embedding_service=embeddings,
            search_service=search,
            chat_provider=OpenAIChatProvider.create(),
        )
        result = await broadcaster.broadcast(
            BroadcastInput(user_id="u1", user_message="I feel anxious about tomorrow")
        )
        print(result.top_behavior_id)
        ```
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        search_service: VectorSearchService,
        chat_provider: ChatProvider,
        weights: Mapping[str, float] | None = None,
        task_timeout: float | None = None,
        top_k: int | None = None,
        similarity_threshold: float | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the broadcast service.

        Args:
            embedding_service: Cache-aware embedding generation (required).
            search_service: Multi-vector search and state (required).
            chat_provider: Language model used for the inner thought (required).
            weights: Initial weight overrides merged over the defaults.
            task_timeout: Deadline in seconds for each generation task.
            top_k: Results per vector type. Defaults to settings.search_top_k.
            similarity_threshold: Minimum similarity. Defaults to settings.
            clock: Source of the current local time for the context vector.
        """
        self._embeddings = embedding_service
        self._search = search_service
        self._chat = chat_provider
        self._weights = merge_weights(DEFAULT_VECTOR_WEIGHTS, weights)
        self._task_timeout = task_timeout or settings.vector_task_timeout
        self._top_k = top_k or settings.search_top_k
        self._threshold = (
            similarity_threshold if similarity_threshold is not None else settings.search_similarity_threshold
        )
        self._clock = clock

    async def broadcast(self, turn: BroadcastInput) -> BroadcastResult:
        """Turn one conversational turn into a ranked list of behaviors.

        Raises:
            ValidationError: If the user message is empty
            ProviderError: If the user message cannot be embedded
            SearchError: If the trigger search fails
        """
        if not turn.user_message or not turn.user_message.strip():
            raise ValidationError("User message cannot be empty")

        start_time = time.perf_counter()

        # Generate all vectors in parallel
        vectors = await self._generate_all_vectors(turn)
        vector_latency_ms = (time.perf_counter() - start_time) * 1000

        # Broadcast all vectors against behavior triggers
        search_start = time.perf_counter()
        found = await self._search.search_multi_vector(
            vectors.as_vectors(),
            top_k=self._top_k,
            similarity_threshold=self._threshold,
        )
        search_latency_ms = (time.perf_counter() - search_start) * 1000

        # Weighting establishes relevance; the priority pass then adds stability
        candidates = self._search.rank_behavior_candidates(found.results, self._weights)
        candidates = self._search.apply_behavior_priority(candidates, turn.current_behavior_id)

        rankings = [
            BehaviorRanking(
                behavior_id=c.behavior_id,
                overall_score=c.score,
                vector_scores=c.vector_scores,
                metadata=c.metadata,
            )
            for c in candidates
        ]

        total_latency_ms = (time.perf_counter() - start_time) * 1000

        await self._store_conversation_embeddings(turn, vectors)
        await self._update_conversation_state(turn)

        top = rankings[0] if rankings else None
        return BroadcastResult(
            rankings=rankings,
            top_behavior_id=top.behavior_id if top else DEFAULT_BEHAVIOR_ID,
            top_behavior_score=top.overall_score if top else 0.0,
            vector_latency_ms=vector_latency_ms,
            search_latency_ms=search_latency_ms,
            total_latency_ms=total_latency_ms,
            generated_vectors=vectors.generated(),
            inner_thought=vectors.inner_thought,
        )

    async def get_behavior_candidacy_pool(self, turn: BroadcastInput, top_n: int = 20) -> list[BehaviorRanking]:
        """Get the top N ranked behaviors for the agent to choose from."""
        result = await self.broadcast(turn)
        return result.rankings[:top_n]

    def set_vector_weights(self, weights: Mapping[str, float]) -> None:
        """Merge weight overrides into the current weights.

        Raises:
            ValidationError: On an unknown vector type or a negative weight
        """
        self._weights = merge_weights(self._weights, weights)

    def get_vector_weights(self) -> dict[str, float]:
        """Get a copy of the current vector weights."""
        return dict(self._weights)

    async def _generate_all_vectors(self, turn: BroadcastInput) -> VectorGenerationResult:
        tasks: dict[str, Awaitable[Any]] = {
            "user_message": self._embeddings.generate_embedding(turn.user_message),
        }

        if turn.last_agent_message:
            combined = f"Agent: {turn.last_agent_message}\nUser: {turn.user_message}"
            tasks["agent_message"] = self._embeddings.generate_embedding(turn.last_agent_message)
            tasks["combined"] = self._embeddings.generate_embedding(combined)

        tasks["agent_thought"] = self._generate_inner_thought(turn)
        tasks["external_context"] = self._generate_external_context(turn.user_id)

        if turn.recent_tool_calls:
            tasks["tool_call"] = self._embeddings.generate_embedding(format_tool_calls(turn.recent_tool_calls))

        names = list(tasks)
        outcomes = await asyncio.gather(*(self._bounded(name, tasks[name]) for name in names))
        by_name = dict(zip(names, outcomes))

        primary = by_name["user_message"]
        if isinstance(primary, BaseException):
            if isinstance(primary, ProviderError):
                raise primary
            raise ProviderError(f"Failed to embed user message: {primary}") from primary

        vectors = VectorGenerationResult(user_message=primary)
        for name, outcome in by_name.items():
            if name == "user_message" or isinstance(outcome, BaseException):
                continue
            if name == "agent_thought":
                vectors.inner_thought, vectors.agent_thought = outcome
            elif name == "external_context":
                vectors.external_context_text, vectors.external_context = outcome
            else:
                setattr(vectors, name, outcome)

        return vectors

    async def _bounded(self, name: str, task: Awaitable[Any]) -> Any:
        """Await one generation task under the deadline.

        Returns the task's value, or the exception it raised so the caller
        can treat the vector as absent.
        """
        try:
            return await asyncio.wait_for(task, timeout=self._task_timeout)
        except asyncio.TimeoutError:
            logger.warning("Vector task %s timed out after %.1fs", name, self._task_timeout)
            return ProviderError(f"Vector task {name} timed out")
        except Exception as e:
            logger.warning("Vector task %s failed: %s", name, e)
            return e

    async def _generate_inner_thought(self, turn: BroadcastInput) -> tuple[str, list[float]]:
        """Synthesize and embed the agent's observation about the turn."""
        try:
            prompt = INNER_THOUGHT_PROMPT.format(
                user_message=turn.user_message,
                agent_line=f'Your last response: "{turn.last_agent_message}"' if turn.last_agent_message else "",
                behavior_line=f"Current behavior: {turn.current_behavior_id}" if turn.current_behavior_id else "",
            )
            thought = await self._chat.complete(
                prompt,
                max_tokens=settings.thought_max_tokens,
                temperature=settings.thought_temperature,
            )
            thought = thought or DEFAULT_THOUGHT
            return thought, await self._embeddings.generate_embedding(thought)
        except Exception as e:
            logger.error("Error generating inner thought: %s", e)
            fallback = FALLBACK_THOUGHT_TEMPLATE.format(user_message=turn.user_message)
            return fallback, await self._embeddings.generate_embedding(fallback)

    async def _generate_external_context(self, user_id: str) -> tuple[str, list[float]]:
        """Embed time of day, weekday and the user's conversation state."""
        try:
            now = self._clock()
            state = await self._search.get_conversation_state(user_id)

            context = f"Current time: {time_of_day(now.hour)} {now.strftime('%A')}. "
            if state and state.active_behavior_id:
                context += f"Active behavior: {state.active_behavior_id}. "
            if state and state.message_count_in_behavior:
                context += f"Messages in current behavior: {state.message_count_in_behavior}. "

            return context, await self._embeddings.generate_embedding(context)
        except Exception as e:
            logger.error("Error generating external context: %s", e)
            return FALLBACK_EXTERNAL_CONTEXT, await self._embeddings.generate_embedding(FALLBACK_EXTERNAL_CONTEXT)

    async def _store_conversation_embeddings(self, turn: BroadcastInput, vectors: VectorGenerationResult) -> None:
        """Persist the turn's embeddings; failures are logged, never raised."""
        to_store = []
        if vectors.user_message is not None:
            to_store.append((VectorType.USER_MESSAGE, turn.user_message, vectors.user_message))
        if vectors.agent_message is not None and turn.last_agent_message:
            to_store.append((VectorType.AGENT_MESSAGE, turn.last_agent_message, vectors.agent_message))
        if vectors.agent_thought is not None and vectors.inner_thought:
            to_store.append((VectorType.AGENT_THOUGHT, vectors.inner_thought, vectors.agent_thought))

        embeddings = [
            ConversationEmbedding(
                user_id=turn.user_id,
                session_id=turn.session_id,
                vector_type=vector_type,
                source_text=source_text,
                embedding=embedding,
                behavior_context=turn.current_behavior_id,
            )
            for vector_type, source_text, embedding in to_store
        ]

        try:
            await self._search.store_conversation_embeddings(embeddings)
        except PersistenceError as e:
            logger.error("Error storing conversation embeddings: %s", e)

    async def _update_conversation_state(self, turn: BroadcastInput) -> None:
        """Record the turn and bump the message counter; failures are logged."""
        update = ConversationStateUpdate(
            session_id=turn.session_id,
            last_user_message=turn.user_message,
            last_agent_message=turn.last_agent_message,
            recent_tool_calls=[
                {"tool": call.tool, "params": call.params, "result": call.result}
                for call in turn.recent_tool_calls
            ] or None,
            active_behavior_id=turn.current_behavior_id,
        )

        try:
            await self._search.update_conversation_state(turn.user_id, update)
            await self._search.increment_message_count(turn.user_id)
        except StateUpdateError as e:
            logger.warning("Conversation state not updated: %s", e)

    @property
    def search_service(self) -> VectorSearchService:
        return self._search

    @property
    def embedding_service(self) -> EmbeddingService:
        return self._embeddings
