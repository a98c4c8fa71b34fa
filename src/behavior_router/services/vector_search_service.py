"""Multi-vector search and ranking service.

Runs one trigger search per vector type, folds the per-type similarity
scores into weighted behavior candidates, applies priority and
continuity adjustments, and owns the per-user conversation state.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import replace

from behavior_router.config import settings
from behavior_router.entities import (
    DEFAULT_VECTOR_WEIGHTS,
    BehaviorCandidate,
    ConversationEmbedding,
    ConversationState,
    ConversationStateUpdate,
    MultiVectorSearchResult,
    SearchResult,
    StoredEmbeddingRecord,
    TriggerMatch,
    VectorType,
)
from behavior_router.exceptions import PersistenceError, SearchError, StateUpdateError, ValidationError
from behavior_router.protocols import ConversationStateStore

from .vector_store_service import VectorStoreService

logger = logging.getLogger(__name__)


def merge_weights(
    base: Mapping[str, float],
    overrides: Mapping[str, float] | None,
) -> dict[str, float]:
    """Merge partial weight overrides over ``base``.

    Raises:
        ValidationError: On an unknown vector type or a negative weight
    """
    merged = dict(base)
    for key, value in (overrides or {}).items():
        name = key.value if isinstance(key, VectorType) else key
        if name not in DEFAULT_VECTOR_WEIGHTS:
            raise ValidationError(f"Unknown vector type: {name}")
        if value < 0:
            raise ValidationError(f"Weight for {name} must be non-negative, got {value}")
        merged[name] = float(value)
    return merged


class VectorSearchService:
    """Multi-vector trigger search, ranking and conversation state.

    Example:
        ```python
        search = VectorSearchService(vector_store=store, state_store=InMemoryConversationStateStore())
        found = await search.search_multi_vector({VectorType.USER_MESSAGE: vector})
        candidates = search.rank_behavior_candidates(found.results)
        candidates = search.apply_behavior_priority(candidates, current_behavior_id="journaling")
        ```
    """

    def __init__(
        self,
        vector_store: VectorStoreService,
        state_store: ConversationStateStore,
        default_priority: float | None = None,
        priority_scale: float | None = None,
        persistence_bonus: float | None = None,
        persistence_min_score: float | None = None,
    ) -> None:
        """Initialize the search service.

        Args:
            vector_store: Trigger/embedding store (required).
            state_store: Conversation state store (required).
            default_priority: Priority assumed when a trigger has none (1-10).
            priority_scale: Factor applied on top of ``priority / 10``.
            persistence_bonus: Multiplier for the currently active behavior.
            persistence_min_score: Weighted score the active behavior needs to get the bonus.
        """
        self._store = vector_store
        self._state = state_store
        self._default_priority = default_priority or settings.default_behavior_priority
        self._priority_scale = priority_scale or settings.priority_scale
        self._persistence_bonus = persistence_bonus or settings.persistence_bonus
        self._persistence_min_score = (
            persistence_min_score if persistence_min_score is not None else settings.persistence_min_score
        )

    async def search_behavior_triggers(
        self,
        embedding: list[float],
        vector_type: VectorType,
        top_k: int,
        similarity_threshold: float,
    ) -> list[TriggerMatch]:
        """Search triggers with one vector and resolve hits to behaviors.

        Only triggers typed ``vector_type`` (or untyped) are searched. Hits
        below ``similarity_threshold`` and records without a ``behavior_id``
        are dropped.
        """
        results = await self._store.search_similar(embedding, top_k, vector_type=vector_type)
        return [
            TriggerMatch(
                behavior_id=result.metadata["behavior_id"],
                trigger_text=result.content,
                similarity=result.similarity,
                metadata=result.metadata,
                vector_type=vector_type,
            )
            for result in results
            if result.similarity >= similarity_threshold and result.metadata.get("behavior_id")
        ]

    async def search_multi_vector(
        self,
        vectors: Mapping[VectorType, list[float]],
        top_k: int | None = None,
        similarity_threshold: float | None = None,
    ) -> MultiVectorSearchResult:
        """Search triggers with every present vector concurrently.

        Args:
            vectors: Embeddings by vector type; missing types are skipped
            top_k: Results per vector type. Defaults to settings.search_top_k.
            similarity_threshold: Minimum similarity. Defaults to settings.

        Returns:
            Matches per vector type, in canonical order, plus search latency

        Raises:
            SearchError: If any per-type search fails
        """
        top_k = top_k or settings.search_top_k
        threshold = (
            similarity_threshold if similarity_threshold is not None else settings.search_similarity_threshold
        )

        start_time = time.perf_counter()
        vector_types = [vt for vt in VectorType if vectors.get(vt) is not None]

        try:
            searches = await asyncio.gather(
                *(
                    self.search_behavior_triggers(vectors[vt], vt, top_k, threshold)
                    for vt in vector_types
                )
            )
        except Exception as e:
            logger.error("Error searching behavior triggers: %s", e)
            raise SearchError(f"Multi-vector search failed: {e}") from e

        search_latency_ms = (time.perf_counter() - start_time) * 1000
        return MultiVectorSearchResult(
            results=dict(zip(vector_types, searches)),
            search_latency_ms=search_latency_ms,
        )

    def rank_behavior_candidates(
        self,
        results: Mapping[VectorType, list[TriggerMatch]],
        weights: Mapping[str, float] | None = None,
        normalize: bool = False,
    ) -> list[BehaviorCandidate]:
        """Aggregate per-type matches into weighted behavior candidates.

        A behavior's score is the sum over vector types of its best
        similarity for that type times the type's weight. A type that did
        not find the behavior contributes 0.

        Args:
            results: Matches per vector type
            weights: Partial overrides merged over the default weights
            normalize: Divide by the total weight of the types that found
                the behavior (a weighted average instead of a weighted sum)

        Returns:
            Candidates sorted by score descending; ties keep first-seen order
        """
        final_weights = merge_weights(DEFAULT_VECTOR_WEIGHTS, weights)

        per_behavior: dict[str, dict[str, float]] = {}
        metadata: dict[str, dict] = {}

        for vector_type in VectorType:
            for match in results.get(vector_type, []):
                scores = per_behavior.setdefault(match.behavior_id, {})
                metadata.setdefault(match.behavior_id, match.metadata)

                # Several triggers of one behavior may match; keep the best
                previous = scores.get(vector_type.value)
                if previous is None or match.similarity > previous:
                    scores[vector_type.value] = match.similarity

        searched_types = [vt.value for vt in VectorType if vt in results]
        candidates = []
        for behavior_id, scores in per_behavior.items():
            weighted_sum = 0.0
            total_weight = 0.0
            for type_name, similarity in scores.items():
                weight = final_weights.get(type_name, 0.0)
                weighted_sum += similarity * weight
                total_weight += weight

            if normalize:
                score = weighted_sum / total_weight if total_weight > 0 else 0.0
            else:
                score = weighted_sum

            vector_scores = {name: scores.get(name, 0.0) for name in searched_types}
            candidates.append(
                BehaviorCandidate(
                    behavior_id=behavior_id,
                    score=score,
                    vector_scores=vector_scores,
                    metadata=metadata[behavior_id],
                )
            )

        # sorted() is stable, so equal scores keep first-seen order
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    def apply_behavior_priority(
        self,
        candidates: list[BehaviorCandidate],
        current_behavior_id: str | None = None,
    ) -> list[BehaviorCandidate]:
        """Re-score weighted candidates by priority and continuity.

        Each score is multiplied by ``(priority / 10) * priority_scale``
        where priority comes from trigger metadata (1-10, otherwise the
        default). The currently active behavior is further multiplied by
        the persistence bonus when its weighted score exceeds
        ``persistence_min_score``.

        Returns:
            Adjusted candidates sorted by score descending. On equal scores
            the active behavior comes first, then input order.
        """
        adjusted = []
        for candidate in candidates:
            score = candidate.score

            priority = _priority(candidate.metadata, self._default_priority)
            score *= (priority / 10) * self._priority_scale

            if (
                current_behavior_id
                and candidate.behavior_id == current_behavior_id
                and candidate.score > self._persistence_min_score
            ):
                score *= self._persistence_bonus

            adjusted.append(replace(candidate, score=score))

        return sorted(
            adjusted,
            key=lambda c: (c.score, current_behavior_id is not None and c.behavior_id == current_behavior_id),
            reverse=True,
        )

    async def get_conversation_state(self, user_id: str) -> ConversationState | None:
        """Get the conversation state for a user, or None if never seen."""
        return await self._state.get(user_id)

    async def update_conversation_state(
        self,
        user_id: str,
        update: ConversationStateUpdate,
    ) -> ConversationState:
        """Create or merge the user's conversation state.

        Raises:
            StateUpdateError: If the state store write fails
        """
        try:
            return await self._state.upsert(user_id, update)
        except Exception as e:
            logger.error("Error updating conversation state: %s", e)
            raise StateUpdateError(f"Failed to update conversation state for {user_id}: {e}") from e

    async def increment_message_count(self, user_id: str) -> int:
        """Atomically add one turn to the user's active behavior counter.

        Raises:
            StateUpdateError: If the state store write fails
        """
        try:
            return await self._state.increment_message_count(user_id)
        except Exception as e:
            logger.error("Error incrementing message count: %s", e)
            raise StateUpdateError(f"Failed to increment message count for {user_id}: {e}") from e

    async def store_conversation_embeddings(self, embeddings: list[ConversationEmbedding]) -> list[str]:
        """Persist live-conversation embeddings for later history search.

        Raises:
            PersistenceError: If the store write fails
        """
        if not embeddings:
            return []

        now = time.time()
        records = []
        for emb in embeddings:
            metadata = {
                **emb.metadata,
                "user_id": emb.user_id,
                "vector_type": emb.vector_type.value,
            }
            if emb.session_id:
                metadata["session_id"] = emb.session_id
            if emb.behavior_context:
                metadata["behavior_context"] = emb.behavior_context

            records.append(
                StoredEmbeddingRecord(
                    id=uuid.uuid4().hex,
                    content=emb.source_text,
                    embedding=emb.embedding,
                    metadata=metadata,
                    created_at=now,
                )
            )

        try:
            return await self._store.store_embeddings(records)
        except Exception as e:
            raise PersistenceError(f"Failed to store {len(records)} conversation embeddings: {e}") from e

    async def search_user_history(
        self,
        user_id: str,
        embedding: list[float],
        vector_type: VectorType,
        top_k: int = 10,
        days_back: int = 90,
    ) -> list[SearchResult]:
        """Search one user's stored conversation embeddings of one vector type."""
        since = time.time() - days_back * 86400
        return await self._store.search_embeddings(
            embedding,
            top_k=top_k,
            filters={"user_id": user_id, "vector_type": vector_type.value},
            since=since,
        )

    async def state_store_healthy(self) -> bool:
        """Check if the conversation state store is reachable."""
        try:
            return await self._state.health_check()
        except Exception as e:
            logger.warning("Conversation state health check failed: %s", e)
            return False

    @property
    def vector_store(self) -> VectorStoreService:
        return self._store


def _priority(metadata: Mapping, default: float) -> float:
    """Trigger priority in 1-10; anything missing or out of range uses ``default``."""
    value = metadata.get("priority") if metadata else None
    if value is None or isinstance(value, bool):
        return default
    try:
        priority = float(value)
    except (TypeError, ValueError):
        return default
    if not 1 <= priority <= 10:
        return default
    return priority
