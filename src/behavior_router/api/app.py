from typing import Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from behavior_router.api.dependencies import HandlerDep, lifespan
from behavior_router.config import settings
from behavior_router.dto import (
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

app = FastAPI(
    title="Behavior Router API",
    description="Multi-vector behavior routing for conversational agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Behavior Router API",
        "version": "0.1.0",
        "description": "Multi-vector behavior routing for conversational agents",
        "endpoints": {
            "broadcast": "/broadcast",
            "weights": "/weights",
            "triggers": "/triggers",
            "stats": "/stats",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@app.post("/broadcast", response_model=BroadcastResponse)
async def broadcast(request: BroadcastRequest, handler: HandlerDep) -> BroadcastResponse:
    """
    Rank behaviors for one conversational turn.

    Args:
        request: The turn: user message plus optional agent reply, tool calls and active behavior.

    Returns:
        Ranked behaviors, the top behavior, generated vector flags and latencies.
    """
    return await handler.broadcast(request)


@app.post("/broadcast/candidates", response_model=CandidacyPoolResponse)
async def candidacy_pool(
    request: BroadcastRequest,
    handler: HandlerDep,
    top_n: int = Query(20, ge=1, description="Number of candidates to return"),
) -> CandidacyPoolResponse:
    """Get the top N ranked behaviors for the agent to choose from."""
    return await handler.candidacy_pool(request, top_n=top_n)


@app.get("/weights", response_model=WeightsResponse)
async def get_weights(handler: HandlerDep) -> WeightsResponse:
    """Get the current vector weights."""
    return await handler.get_weights()


@app.put("/weights", response_model=WeightsResponse)
async def update_weights(request: WeightsUpdateRequest, handler: HandlerDep) -> WeightsResponse:
    """Override the weights of some vector types."""
    return await handler.update_weights(request)


@app.post("/triggers", response_model=StoreTriggersResponse)
async def store_triggers(request: StoreTriggersRequest, handler: HandlerDep) -> StoreTriggersResponse:
    """Embed and store behavior triggers."""
    return await handler.store_triggers(request)


@app.delete("/triggers", response_model=ClearTriggersResponse)
async def clear_triggers(handler: HandlerDep) -> ClearTriggersResponse:
    """Delete every stored trigger and conversation embedding."""
    return await handler.clear_triggers()


@app.get("/stats", response_model=StatsResponse)
async def get_stats(handler: HandlerDep) -> StatsResponse:
    """Get store and embedding cache statistics."""
    return await handler.get_stats()


@app.get("/state/{user_id}", response_model=ConversationStateResponse)
async def get_state(user_id: str, handler: HandlerDep) -> ConversationStateResponse:
    """Get a user's conversation state."""
    return await handler.get_state(user_id)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "behavior_router.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
