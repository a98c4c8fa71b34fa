"""
Shared fixtures and in-process fakes for the behavior router tests.
"""

import asyncio
from datetime import datetime

import pytest

from behavior_router.repositories import InMemoryConversationStateStore, InMemorySimilarityBackend
from behavior_router.services import (
    EmbeddingService,
    VectorBroadcastService,
    VectorSearchService,
    VectorStoreService,
)

DIM = 8

# Texts without an explicit vector land on this axis, which no trigger uses
NOISE_AXIS = DIM - 1

THOUGHT = "User seems anxious about an upcoming event."
FIXED_NOW = datetime(2026, 10, 14, 9, 30)  # a Wednesday morning


def unit(index: int, dim: int = DIM) -> list[float]:
    """One-hot vector along ``index``."""
    vector = [0.0] * dim
    vector[index] = 1.0
    return vector


def mix(**axes: float) -> list[float]:
    """Vector from named axis weights, e.g. mix(a0=1.0, a1=0.2)."""
    vector = [0.0] * DIM
    for name, value in axes.items():
        vector[int(name[1:])] = value
    return vector


TEXT_VECTORS = {
    # triggers
    "I feel anxious and can't calm down": unit(0),
    "I want to write about my day": unit(1),
    "I can't fall asleep at night": unit(2),
    # turns
    "I feel anxious about tomorrow": mix(a0=1.0, a1=0.2),
    "Tell me about your day": unit(1),
    THOUGHT: mix(a0=0.8, a7=0.6),
}


class FakeEmbeddingProvider:
    """Deterministic embedding provider that records every call."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        dimension: int = DIM,
        fail: bool = False,
        fail_on: tuple[str, ...] = (),
        delays: dict[str, float] | None = None,
    ) -> None:
        self.vectors = dict(TEXT_VECTORS if vectors is None else vectors)
        self._dimension = dimension
        self.fail = fail
        self.fail_on = fail_on
        self.delays = delays or {}
        self.calls: list[str] = []
        self.batch_calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "fake-embedding"

    def vector_for(self, text: str) -> list[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        return unit(NOISE_AXIS, self._dimension)

    async def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        delay = self.delays.get(text)
        if delay:
            await asyncio.sleep(delay)
        if self.fail or text in self.fail_on:
            raise RuntimeError(f"embedding backend down for {text!r}")
        return self.vector_for(text)

    async def encode_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.fail:
            raise RuntimeError("embedding backend down")
        return [self.vector_for(text) for text in texts]

    async def is_available(self) -> bool:
        return not self.fail


class FakeChatProvider:
    """Chat provider returning a fixed reply, or failing on demand."""

    def __init__(self, reply: str = THOUGHT, fail: bool = False) -> None:
        self.reply = reply
        self.fail = fail
        self.prompts: list[str] = []

    @property
    def model_name(self) -> str:
        return "fake-chat"

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("chat backend down")
        return self.reply


class UnavailableBackend(InMemorySimilarityBackend):
    """Backend whose provisioning always fails."""

    @property
    def mode(self) -> str:
        return "postgresql"

    def initialize(self) -> None:
        raise ConnectionError("could not connect to server")


class FailingStateStore(InMemoryConversationStateStore):
    """State store whose writes always fail."""

    async def upsert(self, user_id, update):
        raise ConnectionError("state store unreachable")

    async def increment_message_count(self, user_id):
        raise ConnectionError("state store unreachable")

    async def health_check(self) -> bool:
        return False


@pytest.fixture
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def chat() -> FakeChatProvider:
    return FakeChatProvider()


@pytest.fixture
def embedding_service(provider) -> EmbeddingService:
    return EmbeddingService(
        provider=provider,
        cache_ttl=3600,
        check_period=600,
        max_entries=1000,
        latency_warn_ms=200,
    )


@pytest.fixture
def vector_store(embedding_service) -> VectorStoreService:
    return VectorStoreService(
        embedding_service=embedding_service,
        backend=InMemorySimilarityBackend(dimension=DIM),
    )


@pytest.fixture
def state_store() -> InMemoryConversationStateStore:
    return InMemoryConversationStateStore()


@pytest.fixture
def search_service(vector_store, state_store) -> VectorSearchService:
    return VectorSearchService(
        vector_store=vector_store,
        state_store=state_store,
        default_priority=5,
        priority_scale=1.2,
        persistence_bonus=1.5,
        persistence_min_score=0.3,
    )


@pytest.fixture
def broadcaster(embedding_service, search_service, chat) -> VectorBroadcastService:
    return VectorBroadcastService(
        embedding_service=embedding_service,
        search_service=search_service,
        chat_provider=chat,
        task_timeout=1.0,
        top_k=20,
        similarity_threshold=0.3,
        clock=lambda: FIXED_NOW,
    )
