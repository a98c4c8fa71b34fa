"""
Tests for multi-vector search, ranking and conversation state.
"""

import asyncio

import pytest

from behavior_router.entities import (
    DEFAULT_VECTOR_WEIGHTS,
    BehaviorCandidate,
    BehaviorTrigger,
    ConversationEmbedding,
    ConversationStateUpdate,
    TriggerMatch,
    VectorType,
)
from behavior_router.exceptions import SearchError, StateUpdateError, ValidationError
from behavior_router.services import VectorSearchService, merge_weights
from conftest import FailingStateStore, mix, unit


def match(behavior_id: str, similarity: float, vector_type: VectorType, **metadata) -> TriggerMatch:
    return TriggerMatch(
        behavior_id=behavior_id,
        trigger_text=f"trigger for {behavior_id}",
        similarity=similarity,
        metadata={"behavior_id": behavior_id, **metadata},
        vector_type=vector_type,
    )


def candidate(behavior_id: str, score: float, **metadata) -> BehaviorCandidate:
    return BehaviorCandidate(behavior_id=behavior_id, score=score, vector_scores={}, metadata=metadata)


USER = VectorType.USER_MESSAGE
THOUGHT = VectorType.AGENT_THOUGHT


class TestRanking:
    def test_absent_vector_type_contributes_zero(self, search_service):
        results = {
            USER: [match("breathing", 0.9, USER)],
            THOUGHT: [match("journal", 0.8, THOUGHT)],
        }

        ranked = search_service.rank_behavior_candidates(results)

        assert [c.behavior_id for c in ranked] == ["breathing", "journal"]
        assert ranked[0].score == pytest.approx(0.9)
        assert ranked[1].score == pytest.approx(0.8 * DEFAULT_VECTOR_WEIGHTS["agent_thought"])
        assert ranked[0].vector_scores == {"user_message": 0.9, "agent_thought": 0.0}
        assert ranked[1].vector_scores == {"user_message": 0.0, "agent_thought": 0.8}

    def test_best_trigger_per_type_wins(self, search_service):
        results = {USER: [match("breathing", 0.5, USER), match("breathing", 0.9, USER)]}

        [ranked] = search_service.rank_behavior_candidates(results)

        assert ranked.score == pytest.approx(0.9)

    def test_weight_override_changes_order(self, search_service):
        results = {
            USER: [match("breathing", 0.9, USER)],
            THOUGHT: [match("journal", 0.8, THOUGHT)],
        }

        ranked = search_service.rank_behavior_candidates(results, weights={"agent_thought": 2.0})

        assert ranked[0].behavior_id == "journal"
        assert ranked[0].score == pytest.approx(1.6)

    def test_raising_a_weight_never_lowers_a_score(self, search_service):
        results = {
            USER: [match("breathing", 0.6, USER)],
            THOUGHT: [match("breathing", 0.7, THOUGHT)],
        }

        scores = [
            search_service.rank_behavior_candidates(results, weights={"agent_thought": w})[0].score
            for w in (0.0, 0.2, 0.7, 1.5)
        ]

        assert scores == sorted(scores)

    def test_normalized_score_is_weighted_average(self, search_service):
        results = {
            USER: [match("breathing", 0.9, USER)],
            THOUGHT: [match("breathing", 0.6, THOUGHT)],
        }

        [ranked] = search_service.rank_behavior_candidates(results, normalize=True)

        assert ranked.score == pytest.approx((0.9 * 1.0 + 0.6 * 0.7) / 1.7)

    def test_equal_scores_keep_first_seen_order(self, search_service):
        results = {USER: [match("first", 0.5, USER), match("second", 0.5, USER)]}

        ranked = search_service.rank_behavior_candidates(results)

        assert [c.behavior_id for c in ranked] == ["first", "second"]

    def test_empty_results_rank_nothing(self, search_service):
        assert search_service.rank_behavior_candidates({}) == []


class TestWeights:
    def test_merge_keeps_unlisted_weights(self):
        merged = merge_weights(DEFAULT_VECTOR_WEIGHTS, {"tool_call": 0.9})

        assert merged["tool_call"] == 0.9
        assert merged["user_message"] == DEFAULT_VECTOR_WEIGHTS["user_message"]

    def test_merge_accepts_enum_keys(self):
        merged = merge_weights(DEFAULT_VECTOR_WEIGHTS, {VectorType.EXTERNAL_CONTEXT: 0.1})

        assert merged["external_context"] == 0.1

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            merge_weights(DEFAULT_VECTOR_WEIGHTS, {"mood": 1.0})

    def test_negative_weight_is_rejected(self):
        with pytest.raises(ValidationError):
            merge_weights(DEFAULT_VECTOR_WEIGHTS, {"user_message": -0.1})


class TestPriority:
    def test_priority_multiplier(self, search_service):
        adjusted = search_service.apply_behavior_priority([
            candidate("routine", 0.6),
            candidate("urgent", 0.5, priority=10),
        ])

        assert [c.behavior_id for c in adjusted] == ["urgent", "routine"]
        assert adjusted[0].score == pytest.approx(0.5 * 1.2)
        assert adjusted[1].score == pytest.approx(0.6 * 0.5 * 1.2)

    def test_unparseable_priority_uses_default(self, search_service):
        [adjusted] = search_service.apply_behavior_priority([candidate("b", 1.0, priority="high")])

        assert adjusted.score == pytest.approx(0.6)

    @pytest.mark.parametrize("priority", [0, -3, 11, False])
    def test_out_of_range_priority_uses_default(self, search_service, priority):
        [adjusted] = search_service.apply_behavior_priority([candidate("b", 1.0, priority=priority)])

        assert adjusted.score == pytest.approx(0.6)

    def test_string_priority_in_range_is_used(self, search_service):
        [adjusted] = search_service.apply_behavior_priority([candidate("b", 1.0, priority="10")])

        assert adjusted.score == pytest.approx(1.2)

    def test_active_behavior_gets_continuity_bonus(self, search_service):
        adjusted = search_service.apply_behavior_priority(
            [candidate("breathing", 0.5), candidate("journal", 0.45)],
            current_behavior_id="journal",
        )

        assert adjusted[0].behavior_id == "journal"
        assert adjusted[0].score == pytest.approx(0.45 * 0.6 * 1.5)

    def test_weak_active_behavior_gets_no_bonus(self, search_service):
        adjusted = search_service.apply_behavior_priority(
            [candidate("breathing", 0.5), candidate("journal", 0.25)],
            current_behavior_id="journal",
        )

        assert [c.behavior_id for c in adjusted] == ["breathing", "journal"]
        assert adjusted[0].score == pytest.approx(0.5 * 0.6)
        assert adjusted[1].score == pytest.approx(0.25 * 0.6)

    def test_weak_active_behavior_wins_a_tie(self, search_service):
        adjusted = search_service.apply_behavior_priority(
            [candidate("other", 0.2), candidate("current", 0.2)],
            current_behavior_id="current",
        )

        assert [c.behavior_id for c in adjusted] == ["current", "other"]
        assert adjusted[0].score == adjusted[1].score == pytest.approx(0.2 * 0.6)

    def test_ties_without_active_behavior_keep_input_order(self, search_service):
        adjusted = search_service.apply_behavior_priority([candidate("first", 0.2), candidate("second", 0.2)])

        assert [c.behavior_id for c in adjusted] == ["first", "second"]


class TestMultiVectorSearch:
    def test_searches_only_present_types(self, search_service, vector_store):
        async def scenario():
            await vector_store.store_trigger_embeddings([
                BehaviorTrigger("breathing", "I feel anxious and can't calm down"),
                BehaviorTrigger("journal", "I want to write about my day"),
            ])
            return await search_service.search_multi_vector(
                {VectorType.TOOL_CALL: unit(5), USER: unit(0)},
                top_k=10,
                similarity_threshold=0.3,
            )

        found = asyncio.run(scenario())

        assert list(found.results) == [USER, VectorType.TOOL_CALL]
        assert [m.behavior_id for m in found.results[USER]] == ["breathing"]
        assert found.results[USER][0].vector_type == USER
        assert found.results[VectorType.TOOL_CALL] == []
        assert found.search_latency_ms >= 0

    def test_typed_triggers_only_answer_their_vector_type(self, search_service, vector_store):
        query = mix(a0=1.0, a1=1.0)

        async def scenario():
            await vector_store.store_trigger_embeddings([
                BehaviorTrigger("breathing", "I feel anxious and can't calm down", vector_type=USER),
                BehaviorTrigger("journal", "I want to write about my day"),
            ])
            return await search_service.search_multi_vector(
                {USER: query, VectorType.EXTERNAL_CONTEXT: query},
                top_k=10,
                similarity_threshold=0.3,
            )

        found = asyncio.run(scenario())

        assert {m.behavior_id for m in found.results[USER]} == {"breathing", "journal"}
        assert [m.behavior_id for m in found.results[VectorType.EXTERNAL_CONTEXT]] == ["journal"]
        breathing = next(m for m in found.results[USER] if m.behavior_id == "breathing")
        assert breathing.metadata["vector_type"] == "user_message"

    def test_search_failure_raises_search_error(self, search_service, vector_store):
        async def scenario():
            await vector_store.store_trigger_embeddings([
                BehaviorTrigger("breathing", "I feel anxious and can't calm down"),
            ])
            await search_service.search_multi_vector({USER: [1.0, 0.0]})

        with pytest.raises(SearchError):
            asyncio.run(scenario())


class TestConversationState:
    def test_unknown_user_has_no_state(self, search_service):
        assert asyncio.run(search_service.get_conversation_state("nobody")) is None

    def test_update_merges_fields(self, search_service):
        async def scenario():
            await search_service.update_conversation_state(
                "u1", ConversationStateUpdate(last_user_message="hi", active_behavior_id="journal")
            )
            await search_service.update_conversation_state(
                "u1", ConversationStateUpdate(last_agent_message="hello")
            )
            return await search_service.get_conversation_state("u1")

        state = asyncio.run(scenario())

        assert state.last_user_message == "hi"
        assert state.last_agent_message == "hello"
        assert state.active_behavior_id == "journal"
        assert state.updated_at > 0

    def test_behavior_change_resets_message_count(self, search_service):
        async def scenario():
            await search_service.update_conversation_state("u1", ConversationStateUpdate(active_behavior_id="journal"))
            await search_service.increment_message_count("u1")
            await search_service.increment_message_count("u1")
            await search_service.update_conversation_state("u1", ConversationStateUpdate(last_user_message="hi"))
            kept = await search_service.get_conversation_state("u1")
            await search_service.update_conversation_state("u1", ConversationStateUpdate(active_behavior_id="journal"))
            same = await search_service.get_conversation_state("u1")
            await search_service.update_conversation_state("u1", ConversationStateUpdate(active_behavior_id="sleep"))
            switched = await search_service.get_conversation_state("u1")
            return kept, same, switched

        kept, same, switched = asyncio.run(scenario())

        assert kept.message_count_in_behavior == 2
        assert same.message_count_in_behavior == 2
        assert switched.message_count_in_behavior == 0
        assert switched.active_behavior_id == "sleep"

    def test_concurrent_increments_are_not_lost(self, search_service):
        async def scenario():
            await asyncio.gather(*(search_service.increment_message_count("u1") for _ in range(50)))
            return await search_service.get_conversation_state("u1")

        state = asyncio.run(scenario())

        assert state.message_count_in_behavior == 50

    def test_store_failures_raise_state_update_error(self, vector_store):
        service = VectorSearchService(vector_store=vector_store, state_store=FailingStateStore())

        with pytest.raises(StateUpdateError):
            asyncio.run(service.update_conversation_state("u1", ConversationStateUpdate(last_user_message="hi")))
        with pytest.raises(StateUpdateError):
            asyncio.run(service.increment_message_count("u1"))


class TestUserHistory:
    def test_history_is_scoped_to_user_and_type(self, search_service):
        embeddings = [
            ConversationEmbedding("u1", USER, "mine", unit(3), session_id="s1"),
            ConversationEmbedding("u1", THOUGHT, "my thought", unit(3)),
            ConversationEmbedding("u2", USER, "theirs", unit(3)),
        ]

        async def scenario():
            ids = await search_service.store_conversation_embeddings(embeddings)
            results = await search_service.search_user_history("u1", unit(3), USER)
            return ids, results

        ids, results = asyncio.run(scenario())

        assert len(ids) == 3
        assert [r.content for r in results] == ["mine"]
        assert results[0].metadata["session_id"] == "s1"
        assert results[0].metadata["vector_type"] == "user_message"
