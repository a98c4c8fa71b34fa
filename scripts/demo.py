#!/usr/bin/env python3
"""
Demo script for the behavior router.

Seeds a handful of behavior triggers in memory mode and routes a few
conversational turns through the broadcast pipeline. Requires
OPENAI_API_KEY (or an OpenAI-compatible OPENAI_BASE_URL).
"""

import asyncio

from behavior_router import (
    BehaviorTrigger,
    BroadcastInput,
    EmbeddingService,
    InMemoryConversationStateStore,
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
    ToolCall,
    VectorBroadcastService,
    VectorSearchService,
    VectorStoreService,
)
from behavior_router.config import configure_logging

SAMPLE_TRIGGERS = [
    BehaviorTrigger("breathing_exercise", "I feel anxious and can't calm down", {"priority": 8}),
    BehaviorTrigger("breathing_exercise", "My heart is racing and I'm panicking", {"priority": 8}),
    BehaviorTrigger("journal_prompt", "I want to write about my day"),
    BehaviorTrigger("journal_prompt", "Something happened today I keep thinking about"),
    BehaviorTrigger("sleep_hygiene", "I can't fall asleep at night", {"priority": 6}),
    BehaviorTrigger("goal_setting", "I want to plan what to focus on this week"),
]


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_result(label: str, result) -> None:
    """Print a broadcast result."""
    print(f"\n  Turn: {label}")
    print(f"  Top behavior: {result.top_behavior_id} ({result.top_behavior_score:.3f})")
    print(f"  Inner thought: {result.inner_thought}")
    generated = [name for name, present in result.generated_vectors.items() if present]
    print(f"  Vectors: {', '.join(generated)}")
    for ranking in result.rankings[:3]:
        print(f"    - {ranking.behavior_id:<20} {ranking.overall_score:.3f}")
    print(
        f"  Latency: vectors {result.vector_latency_ms:.0f}ms, "
        f"search {result.search_latency_ms:.0f}ms, total {result.total_latency_ms:.0f}ms"
    )


async def demo_broadcast() -> None:
    """Seed triggers and route a short conversation."""
    print_section("Behavior Routing")

    embedding_provider = OpenAIEmbeddingProvider.create()
    chat_provider = OpenAIChatProvider.create()

    embeddings = EmbeddingService.create(embedding_provider)
    store = VectorStoreService.create(embeddings, mode="memory")
    await store.initialize()

    print("\n📝 Storing sample triggers...")
    ids = await store.store_trigger_embeddings(SAMPLE_TRIGGERS)
    print(f"  ✓ Stored {len(ids)} triggers")

    search = VectorSearchService(vector_store=store, state_store=InMemoryConversationStateStore())
    broadcaster = VectorBroadcastService(
        embedding_service=embeddings,
        search_service=search,
        chat_provider=chat_provider,
    )

    first = await broadcaster.broadcast(
        BroadcastInput(user_id="demo-user", user_message="I feel anxious about tomorrow")
    )
    print_result("I feel anxious about tomorrow", first)

    second = await broadcaster.broadcast(
        BroadcastInput(
            user_id="demo-user",
            user_message="It's the presentation, I keep replaying it",
            last_agent_message="That sounds stressful. What's happening tomorrow?",
            recent_tool_calls=[ToolCall("get_recent_journal_entries", {"limit": 3})],
            current_behavior_id=first.top_behavior_id,
        )
    )
    print_result("It's the presentation, I keep replaying it", second)

    state = await search.get_conversation_state("demo-user")
    print(f"\n  Messages in behavior: {state.message_count_in_behavior if state else 0}")

    print_section("Embedding Cache")
    for key, value in embeddings.get_cache_stats().items():
        print(f"  {key}: {value}")

    await embedding_provider.close()
    await chat_provider.close()


def main() -> None:
    """Run the demo."""
    configure_logging("WARNING")
    asyncio.run(demo_broadcast())


if __name__ == "__main__":
    main()
