"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from behavior_router.config import configure_logging, settings
from behavior_router.handlers import BroadcastHandler
from behavior_router.protocols import ConversationStateStore
from behavior_router.repositories import (
    InMemoryConversationStateStore,
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
    RedisConversationStateStore,
)
from behavior_router.services import (
    EmbeddingService,
    VectorBroadcastService,
    VectorSearchService,
    VectorStoreService,
)

logger = logging.getLogger(__name__)


def get_broadcast_service(request: Request) -> VectorBroadcastService:
    """Dependency injection for VectorBroadcastService from app.state.

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(request.app.state, "broadcast_service", None)
    if service is None:
        raise RuntimeError("VectorBroadcastService not initialized. Check lifespan setup.")
    return service


def get_handler(request: Request) -> BroadcastHandler:
    """Dependency injection for BroadcastHandler from app.state.

    Args:
        request: FastAPI Request object

    Returns:
        The BroadcastHandler instance from app.state

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "broadcast_handler", None)
    if handler is None:
        raise RuntimeError("BroadcastHandler not initialized. Check lifespan setup.")
    return handler


def build_state_store(backend: str | None = None) -> ConversationStateStore:
    """Select the conversation state store from CONVERSATION_STATE_BACKEND."""
    backend = backend or settings.conversation_state_backend
    if backend == "redis":
        return RedisConversationStateStore.create()
    return InMemoryConversationStateStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores in app.state:
    1. Providers (embedding + chat) and repositories - created explicitly
    2. Services (embedding, store, search, broadcast)
    3. Handler (HTTP endpoints) - stored in app.state.broadcast_handler

    Cleanup:
        Closes provider clients and removes services from app.state on shutdown
    """
    configure_logging()

    embedding_provider = OpenAIEmbeddingProvider.create()
    chat_provider = OpenAIChatProvider.create()

    embedding_service = EmbeddingService.create(embedding_provider)
    vector_store = VectorStoreService.create(embedding_service)
    await vector_store.initialize()

    state_store = build_state_store()
    search_service = VectorSearchService(vector_store=vector_store, state_store=state_store)
    broadcast_service = VectorBroadcastService(
        embedding_service=embedding_service,
        search_service=search_service,
        chat_provider=chat_provider,
    )
    broadcast_handler = BroadcastHandler(broadcast_service=broadcast_service, vector_store=vector_store)

    # Store in app.state (FastAPI pattern)
    app.state.broadcast_service = broadcast_service
    app.state.broadcast_handler = broadcast_handler

    logger.info(
        "Behavior router initialized (model=%s, store=%s, state=%s)",
        embedding_service.model_name,
        vector_store.backend.mode,
        settings.conversation_state_backend,
    )

    yield

    del app.state.broadcast_handler
    del app.state.broadcast_service

    await embedding_provider.close()
    await chat_provider.close()
    if isinstance(state_store, RedisConversationStateStore):
        await state_store.close()
    logger.info("Behavior router shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[BroadcastHandler, Depends(get_handler)]
ServiceDep = Annotated[VectorBroadcastService, Depends(get_broadcast_service)]
