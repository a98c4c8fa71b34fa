"""HTTP handlers for behavior routing operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

from fastapi import HTTPException, status

from behavior_router.dto import (
    BehaviorRankingItem,
    BroadcastRequest,
    BroadcastResponse,
    CandidacyPoolResponse,
    ClearTriggersResponse,
    ConversationStateResponse,
    HealthCheckResponse,
    StatsResponse,
    StoreTriggersRequest,
    StoreTriggersResponse,
    WeightsResponse,
    WeightsUpdateRequest,
)
from behavior_router.entities import BehaviorRanking, BehaviorTrigger, BroadcastInput, ToolCall
from behavior_router.exceptions import ProviderError, ValidationError
from behavior_router.services import VectorBroadcastService, VectorStoreService


def _http_error(e: Exception, action: str) -> HTTPException:
    """Map a service exception to the HTTP status the client should see."""
    if isinstance(e, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, ProviderError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=f"Failed to {action}: {e}")


def _to_item(ranking: BehaviorRanking) -> BehaviorRankingItem:
    return BehaviorRankingItem(
        behavior_id=ranking.behavior_id,
        overall_score=ranking.overall_score,
        vector_scores=ranking.vector_scores,
        metadata=ranking.metadata,
    )


def _to_input(request: BroadcastRequest) -> BroadcastInput:
    return BroadcastInput(
        user_id=request.user_id,
        user_message=request.user_message,
        last_agent_message=request.last_agent_message,
        recent_tool_calls=[
            ToolCall(tool=call.tool, params=call.params, result=call.result)
            for call in request.recent_tool_calls
        ],
        current_behavior_id=request.current_behavior_id,
        session_id=request.session_id,
    )


class BroadcastHandler:
    """HTTP handlers for behavior routing.

    This handler delegates business logic to VectorBroadcastService and
    VectorStoreService and handles HTTP-specific concerns like:
    - Converting DTOs to entities and back
    - Mapping service errors to status codes

    Example:
        ```python
        handler = BroadcastHandler(broadcast_service=broadcaster, vector_store=store)

        @app.post("/broadcast", response_model=BroadcastResponse)
        async def broadcast(request: BroadcastRequest):
            return await handler.broadcast(request)
        ```
    """

    def __init__(
        self,
        broadcast_service: VectorBroadcastService,
        vector_store: VectorStoreService,
    ) -> None:
        """Initialize the broadcast handler.

        Args:
            broadcast_service: The broadcast orchestrator (required).
            vector_store: The trigger store, for seeding and stats (required).
        """
        self._broadcast = broadcast_service
        self._store = vector_store

    async def broadcast(self, request: BroadcastRequest) -> BroadcastResponse:
        """Handle POST /broadcast requests.

        Raises:
            HTTPException: 400 on invalid input, 502 on provider failure, 500 otherwise
        """
        try:
            result = await self._broadcast.broadcast(_to_input(request))
        except Exception as e:
            raise _http_error(e, "broadcast") from e

        return BroadcastResponse(
            rankings=[_to_item(r) for r in result.rankings],
            top_behavior_id=result.top_behavior_id,
            top_behavior_score=result.top_behavior_score,
            generated_vectors=result.generated_vectors,
            inner_thought=result.inner_thought,
            vector_latency_ms=result.vector_latency_ms,
            search_latency_ms=result.search_latency_ms,
            total_latency_ms=result.total_latency_ms,
        )

    async def candidacy_pool(self, request: BroadcastRequest, top_n: int = 20) -> CandidacyPoolResponse:
        """Handle POST /broadcast/candidates requests."""
        try:
            rankings = await self._broadcast.get_behavior_candidacy_pool(_to_input(request), top_n=top_n)
        except Exception as e:
            raise _http_error(e, "build candidacy pool") from e

        return CandidacyPoolResponse(candidates=[_to_item(r) for r in rankings])

    async def get_weights(self) -> WeightsResponse:
        """Handle GET /weights requests."""
        return WeightsResponse(weights=self._broadcast.get_vector_weights())

    async def update_weights(self, request: WeightsUpdateRequest) -> WeightsResponse:
        """Handle PUT /weights requests."""
        try:
            self._broadcast.set_vector_weights(request.weights)
        except Exception as e:
            raise _http_error(e, "update weights") from e

        return WeightsResponse(weights=self._broadcast.get_vector_weights())

    async def store_triggers(self, request: StoreTriggersRequest) -> StoreTriggersResponse:
        """Handle POST /triggers requests."""
        triggers = [
            BehaviorTrigger(
                behavior_id=item.behavior_id,
                trigger_text=item.trigger_text,
                metadata=item.metadata,
                vector_type=item.vector_type,
            )
            for item in request.triggers
        ]

        try:
            ids = await self._store.store_trigger_embeddings(triggers)
        except Exception as e:
            raise _http_error(e, "store triggers") from e

        return StoreTriggersResponse(
            success=True,
            ids=ids,
            message=f"Stored {len(ids)} trigger embeddings",
        )

    async def clear_triggers(self) -> ClearTriggersResponse:
        """Handle DELETE /triggers requests."""
        try:
            count = await self._store.clear_all()
        except Exception as e:
            raise _http_error(e, "clear store") from e

        return ClearTriggersResponse(
            success=True,
            deleted_count=count,
            message="Vector store cleared successfully",
        )

    async def get_stats(self) -> StatsResponse:
        """Handle GET /stats requests."""
        try:
            stats = await self._store.get_stats()
        except Exception as e:
            raise _http_error(e, "get stats") from e

        return StatsResponse(
            mode=stats["mode"],
            degraded=stats["degraded"],
            trigger_count=stats["count"],
            embeddings_count=stats["embeddings_count"],
            embedding_cache=self._broadcast.embedding_service.get_cache_stats(),
        )

    async def get_state(self, user_id: str) -> ConversationStateResponse:
        """Handle GET /state/{user_id} requests.

        Raises:
            HTTPException: 404 if the user has no conversation state yet
        """
        try:
            state = await self._broadcast.search_service.get_conversation_state(user_id)
        except Exception as e:
            raise _http_error(e, "get conversation state") from e

        if state is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No conversation state for user {user_id}",
            )

        return ConversationStateResponse(
            user_id=state.user_id,
            session_id=state.session_id,
            last_user_message=state.last_user_message,
            last_agent_message=state.last_agent_message,
            recent_tool_calls=state.recent_tool_calls,
            active_behavior_id=state.active_behavior_id,
            message_count_in_behavior=state.message_count_in_behavior,
            updated_at=state.updated_at,
        )

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        state_healthy = await self._broadcast.search_service.state_store_healthy()
        try:
            embedding_healthy = await self._broadcast.embedding_service.is_available()
        except Exception:
            embedding_healthy = False

        degraded = self._store.is_degraded
        healthy = state_healthy and not degraded and embedding_healthy

        return HealthCheckResponse(
            status="healthy" if healthy else "degraded",
            store_mode=self._store.backend.mode,
            store_degraded=degraded,
            state_healthy=state_healthy,
            embedding_healthy=embedding_healthy,
        )
