"""Search aggregation and ranking entities."""

from dataclasses import dataclass, field
from typing import Any

from .trigger import TriggerMatch
from .vector_type import VectorType


@dataclass(frozen=True)
class MultiVectorSearchResult:
    """Per-vector-type trigger matches from one multi-vector search.

    ``results`` is keyed in canonical vector type order.
    """

    results: dict[VectorType, list[TriggerMatch]]
    search_latency_ms: float


@dataclass(frozen=True)
class BehaviorCandidate:
    """A behavior scored across vector types.

    Attributes:
        behavior_id: Candidate behavior
        score: Weighted score (adjusted after the priority pass)
        vector_scores: Best similarity per vector type (0 when absent)
        metadata: Metadata of the first trigger seen for this behavior
    """

    behavior_id: str
    score: float
    vector_scores: dict[str, float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BehaviorRanking:
    """One entry of the ranked list returned to the orchestrating agent."""

    behavior_id: str
    overall_score: float
    vector_scores: dict[str, float]
    metadata: dict[str, Any] = field(default_factory=dict)
