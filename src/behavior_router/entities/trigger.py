"""Trigger and stored-embedding domain entities."""

from dataclasses import dataclass, field
from typing import Any

from .vector_type import VectorType


@dataclass(frozen=True)
class BehaviorTrigger:
    """Example phrasing administratively associated with a behavior.

    One trigger maps to exactly one behavior; a behavior may have many
    triggers.

    Attributes:
        behavior_id: Opaque id of the behavior this trigger selects
        trigger_text: The phrasing that gets embedded and searched
        metadata: Optional data; ``priority`` (1-10) boosts the behavior
        vector_type: Vector type the trigger is matched against; None matches all
    """

    behavior_id: str
    trigger_text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    vector_type: VectorType | None = None


@dataclass(frozen=True)
class StoredEmbeddingRecord:
    """A persisted embedding row, derived from a trigger or from live text.

    Attributes:
        id: Storage id (synthetic in memory mode, row id in SQL/Redis)
        content: The source text
        embedding: The embedding vector for ``content``
        metadata: Arbitrary metadata (``behavior_id`` for triggers)
        created_at: Unix timestamp of the write
    """

    id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any]
    created_at: float


@dataclass(frozen=True)
class SearchResult:
    """A single hit from a similarity search.

    Attributes:
        id: Storage id of the matched record
        content: The matched text
        similarity: Cosine similarity in [-1, 1] (1 = identical)
        metadata: Metadata stored with the record
    """

    id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TriggerMatch:
    """A search hit resolved to its behavior and tagged with the vector type that found it."""

    behavior_id: str
    trigger_text: str
    similarity: float
    metadata: dict[str, Any]
    vector_type: VectorType
