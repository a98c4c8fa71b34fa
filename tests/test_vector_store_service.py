"""
Tests for trigger storage, similarity search and backend fallback.
"""

import asyncio

import pytest

from behavior_router.entities import BehaviorTrigger, StoredEmbeddingRecord, VectorType
from behavior_router.exceptions import DimensionMismatchError
from behavior_router.repositories import InMemorySimilarityBackend
from behavior_router.services import VectorStoreService
from conftest import DIM, UnavailableBackend, unit

TRIGGERS = [
    BehaviorTrigger("breathing_exercise", "I feel anxious and can't calm down", {"priority": 8}),
    BehaviorTrigger("journal_prompt", "I want to write about my day"),
    BehaviorTrigger("sleep_hygiene", "I can't fall asleep at night"),
]


def test_store_and_search_triggers(vector_store):
    """Stored triggers come back ranked by similarity with their behavior."""

    async def scenario():
        ids = await vector_store.store_trigger_embeddings(TRIGGERS)
        results = await vector_store.search_similar(unit(1), top_k=2)
        return ids, results

    ids, results = asyncio.run(scenario())

    assert len(ids) == 3
    assert ids[0].startswith("behavior:breathing_exercise:")
    assert len(results) == 2
    assert results[0].content == "I want to write about my day"
    assert results[0].similarity == pytest.approx(1.0)
    assert results[0].metadata["behavior_id"] == "journal_prompt"
    assert results[0].metadata["trigger_text"] == "I want to write about my day"
    assert results[0].similarity >= results[1].similarity


def test_trigger_metadata_is_kept(vector_store):
    """Caller metadata such as priority survives storage."""

    async def scenario():
        await vector_store.store_trigger_embeddings(TRIGGERS[:1])
        return await vector_store.search_similar(unit(0), top_k=1)

    [result] = asyncio.run(scenario())

    assert result.metadata["priority"] == 8
    assert result.metadata["behavior_id"] == "breathing_exercise"


def test_trigger_ids_do_not_collide_across_calls(vector_store):
    """Separate store calls for the same behavior produce distinct ids."""

    async def scenario():
        first = await vector_store.store_trigger_embeddings(TRIGGERS[:1])
        second = await vector_store.store_trigger_embeddings(TRIGGERS[:1])
        return first + second

    ids = asyncio.run(scenario())

    assert len(set(ids)) == 2


def test_top_k_similar_embeds_query(vector_store, provider):
    """Text queries are embedded and searched in one call."""

    async def scenario():
        await vector_store.store_trigger_embeddings(TRIGGERS)
        return await vector_store.top_k_similar("I feel anxious about tomorrow", top_k=1)

    [result] = asyncio.run(scenario())

    assert result.metadata["behavior_id"] == "breathing_exercise"
    assert "I feel anxious about tomorrow" in provider.calls


def test_search_on_empty_store(vector_store):
    assert asyncio.run(vector_store.search_similar(unit(0), top_k=5)) == []


def test_empty_trigger_list_is_noop(vector_store, provider):
    assert asyncio.run(vector_store.store_trigger_embeddings([])) == []
    assert provider.batch_calls == []


def test_falls_back_to_memory_when_backend_unavailable(embedding_service):
    """A backend that cannot be provisioned degrades to memory mode."""
    store = VectorStoreService(embedding_service=embedding_service, backend=UnavailableBackend(DIM))

    async def scenario():
        await store.initialize()
        await store.store_trigger_embeddings(TRIGGERS)
        return await store.get_stats()

    stats = asyncio.run(scenario())

    assert store.is_degraded
    assert isinstance(store.backend, InMemorySimilarityBackend)
    assert stats["mode"] == "memory"
    assert stats["degraded"] is True
    assert stats["count"] == 3


def test_operations_initialize_lazily(embedding_service):
    """Any operation provisions the backend on first use."""
    store = VectorStoreService(embedding_service=embedding_service, backend=UnavailableBackend(DIM))

    asyncio.run(store.search_similar(unit(0)))

    assert store.is_degraded


def test_clear_all_and_stats(vector_store):
    """clear_all removes triggers and conversation embeddings."""

    async def scenario():
        await vector_store.store_trigger_embeddings(TRIGGERS)
        await vector_store.store_embeddings([
            StoredEmbeddingRecord(
                id="",
                content="hello",
                embedding=unit(3),
                metadata={"user_id": "u1", "vector_type": "user_message"},
                created_at=0.0,
            )
        ])
        before = await vector_store.get_stats()
        deleted = await vector_store.clear_all()
        after = await vector_store.get_stats()
        return before, deleted, after

    before, deleted, after = asyncio.run(scenario())

    assert before == {"mode": "memory", "degraded": False, "count": 3, "embeddings_count": 1}
    assert deleted == 4
    assert after["count"] == 0
    assert after["embeddings_count"] == 0


def test_search_embeddings_filters_by_metadata_and_time(vector_store):
    """Conversation history search honours metadata filters and the since bound."""
    records = [
        StoredEmbeddingRecord("", "old", unit(3), {"user_id": "u1"}, created_at=100.0),
        StoredEmbeddingRecord("", "new", unit(3), {"user_id": "u1"}, created_at=200.0),
        StoredEmbeddingRecord("", "other", unit(3), {"user_id": "u2"}, created_at=200.0),
    ]

    async def scenario():
        await vector_store.store_embeddings(records)
        return await vector_store.search_embeddings(unit(3), top_k=10, filters={"user_id": "u1"}, since=150.0)

    results = asyncio.run(scenario())

    assert [r.content for r in results] == ["new"]


def test_mismatched_dimension_is_rejected():
    backend = InMemorySimilarityBackend(dimension=DIM)
    record = StoredEmbeddingRecord("", "short", [1.0, 0.0], {"behavior_id": "b"}, created_at=0.0)

    with pytest.raises(DimensionMismatchError):
        backend.add_triggers([record])

    assert backend.counts()["triggers"] == 0


def test_search_filters_triggers_by_vector_type(vector_store):
    """A typed trigger is only searchable with its own vector type."""
    triggers = [
        BehaviorTrigger("breathing_exercise", "I feel anxious and can't calm down", vector_type=VectorType.USER_MESSAGE),
        BehaviorTrigger("sleep_hygiene", "I can't fall asleep at night"),
    ]

    async def scenario():
        await vector_store.store_trigger_embeddings(triggers)
        external = await vector_store.search_similar(unit(0), top_k=5, vector_type=VectorType.EXTERNAL_CONTEXT)
        user = await vector_store.search_similar(unit(0), top_k=5, vector_type=VectorType.USER_MESSAGE)
        untyped = await vector_store.search_similar(unit(0), top_k=5)
        return external, user, untyped

    external, user, untyped = asyncio.run(scenario())

    assert [r.metadata["behavior_id"] for r in external] == ["sleep_hygiene"]
    assert [r.metadata["behavior_id"] for r in user] == ["breathing_exercise", "sleep_hygiene"]
    assert user[0].metadata["vector_type"] == "user_message"
    assert "vector_type" not in user[1].metadata
    assert len(untyped) == 2
