"""
Tests for the behavior router API.
"""

import pytest
from fastapi.testclient import TestClient

from behavior_router.api.app import app
from behavior_router.api.dependencies import get_handler
from behavior_router.handlers import BroadcastHandler
from conftest import NOISE_AXIS, unit

ANXIOUS = "I feel anxious about tomorrow"

TRIGGERS = [
    {"behavior_id": "breathing_exercise", "trigger_text": "I feel anxious and can't calm down", "metadata": {"priority": 8}},
    {"behavior_id": "journal_prompt", "trigger_text": "I want to write about my day"},
    {"behavior_id": "sleep_hygiene", "trigger_text": "I can't fall asleep at night"},
]


@pytest.fixture
def client(broadcaster, vector_store):
    """Create a test client wired to in-process services."""
    handler = BroadcastHandler(broadcast_service=broadcaster, vector_store=vector_store)
    app.dependency_overrides[get_handler] = lambda: handler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_client(client):
    response = client.post("/triggers", json={"triggers": TRIGGERS})
    assert response.status_code == 200
    return client


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Behavior Router API"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["store_mode"] == "memory"
    assert data["state_healthy"] is True


def test_health_does_not_embed_on_every_hit(client, provider):
    for _ in range(3):
        assert client.get("/health").json()["embedding_healthy"] is True

    assert len(provider.calls) == 1


def test_store_triggers(client):
    """Test trigger seeding endpoint."""
    response = client.post("/triggers", json={"triggers": TRIGGERS})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert len(data["ids"]) == 3


def test_store_typed_trigger(client, vector_store):
    """A trigger may be restricted to one vector type."""
    trigger = {"behavior_id": "weather_check", "trigger_text": "It is raining outside", "vector_type": "external_context"}
    response = client.post("/triggers", json={"triggers": [trigger]})
    assert response.status_code == 200

    [stored] = vector_store.backend.search_triggers(unit(NOISE_AXIS), top_k=1)
    assert stored.metadata["vector_type"] == "external_context"
    assert vector_store.backend.search_triggers(unit(NOISE_AXIS), top_k=1, vector_type="user_message") == []


def test_store_trigger_rejects_unknown_vector_type(client):
    trigger = {"behavior_id": "b", "trigger_text": "hello", "vector_type": "mood"}
    response = client.post("/triggers", json={"triggers": [trigger]})
    assert response.status_code == 422


def test_broadcast(seeded_client):
    """Test broadcast endpoint."""
    response = seeded_client.post("/broadcast", json={"user_id": "u1", "user_message": ANXIOUS})
    assert response.status_code == 200
    data = response.json()
    assert data["top_behavior_id"] == "breathing_exercise"
    assert data["generated_vectors"]["agent_message"] is False
    assert data["rankings"][0]["vector_scores"]["user_message"] > 0.9


def test_broadcast_with_tool_calls(seeded_client):
    response = seeded_client.post(
        "/broadcast",
        json={
            "user_id": "u1",
            "user_message": ANXIOUS,
            "last_agent_message": "Tell me about your day",
            "recent_tool_calls": [{"tool": "get_recent_journal_entries", "params": {"limit": 3}}],
            "current_behavior_id": "journal_prompt",
        },
    )
    assert response.status_code == 200
    generated = response.json()["generated_vectors"]
    assert generated["tool_call"] is True
    assert generated["combined_exchange"] is True


def test_broadcast_rejects_missing_message(client):
    """Schema validation rejects an empty message."""
    response = client.post("/broadcast", json={"user_id": "u1", "user_message": ""})
    assert response.status_code == 422


def test_broadcast_rejects_blank_message(client):
    """Whitespace-only messages are rejected by the service."""
    response = client.post("/broadcast", json={"user_id": "u1", "user_message": "   "})
    assert response.status_code == 400


def test_broadcast_provider_failure(seeded_client, provider):
    """Embedding provider failures map to 502."""
    provider.fail_on = (ANXIOUS,)
    response = seeded_client.post("/broadcast", json={"user_id": "u1", "user_message": ANXIOUS})
    assert response.status_code == 502


def test_candidacy_pool(seeded_client):
    response = seeded_client.post(
        "/broadcast/candidates?top_n=1",
        json={"user_id": "u1", "user_message": ANXIOUS},
    )
    assert response.status_code == 200
    candidates = response.json()["candidates"]
    assert [c["behavior_id"] for c in candidates] == ["breathing_exercise"]


def test_weights(client):
    """Test weight get/update endpoints."""
    response = client.get("/weights")
    assert response.status_code == 200
    assert response.json()["weights"]["user_message"] == 1.0

    response = client.put("/weights", json={"weights": {"tool_call": 0.9}})
    assert response.status_code == 200
    assert response.json()["weights"]["tool_call"] == 0.9

    response = client.put("/weights", json={"weights": {"mood": 1.0}})
    assert response.status_code == 400


def test_stats(seeded_client):
    """Test stats endpoint."""
    response = seeded_client.get("/stats")
    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "memory"
    assert data["trigger_count"] == 3
    assert data["degraded"] is False
    assert "hit_rate" in data["embedding_cache"]


def test_conversation_state(seeded_client):
    """State is 404 until the user's first broadcast."""
    assert seeded_client.get("/state/u1").status_code == 404

    seeded_client.post("/broadcast", json={"user_id": "u1", "user_message": ANXIOUS, "session_id": "s1"})

    response = seeded_client.get("/state/u1")
    assert response.status_code == 200
    data = response.json()
    assert data["last_user_message"] == ANXIOUS
    assert data["session_id"] == "s1"
    assert data["message_count_in_behavior"] == 1


def test_clear_triggers(seeded_client):
    response = seeded_client.delete("/triggers")
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 3

    assert seeded_client.get("/stats").json()["trigger_count"] == 0
