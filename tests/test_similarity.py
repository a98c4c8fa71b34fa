"""
Tests for cosine similarity helpers and the TTL cache.
"""

import numpy as np
import pytest

from behavior_router.exceptions import DimensionMismatchError
from behavior_router.utils import TTLCache, cosine_similarity, cosine_similarity_matrix


def test_identical_vectors():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_opposite_and_orthogonal_vectors():
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_result_stays_within_bounds():
    rng = np.random.default_rng(7)
    for _ in range(50):
        a = rng.normal(size=16).tolist()
        b = rng.normal(size=16).tolist()
        assert -1.0 <= cosine_similarity(a, b) <= 1.0


def test_zero_vector_scores_zero():
    """A zero-norm vector never divides by zero."""
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_length_mismatch_raises():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_matrix_matches_pairwise():
    query = [1.0, 1.0, 0.0]
    rows = [[1.0, 0.0, 0.0], [0.0, 0.0, 0.0], [-1.0, -1.0, 0.0]]

    scores = cosine_similarity_matrix(query, np.asarray(rows))

    assert scores.tolist() == pytest.approx([cosine_similarity(query, row) for row in rows])
    assert scores[1] == 0.0


def test_matrix_dimension_mismatch_raises():
    with pytest.raises(DimensionMismatchError):
        cosine_similarity_matrix([1.0, 0.0], np.zeros((2, 3)))


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_entries():
    timer = FakeTimer()
    cache: TTLCache[str] = TTLCache(ttl=10, max_entries=5, timer=timer)

    cache.set("a", "value")
    timer.now = 9.9
    assert cache.get("a") == "value"

    timer.now = 10.0
    assert cache.get("a") is None
    assert len(cache) == 0


def test_ttl_cache_evicts_least_recently_used():
    cache: TTLCache[int] = TTLCache(ttl=60, max_entries=2)

    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_ttl_cache_periodic_sweep():
    timer = FakeTimer()
    cache: TTLCache[int] = TTLCache(ttl=5, max_entries=10, check_period=20, timer=timer)

    cache.set("a", 1)
    cache.set("b", 2)
    timer.now = 6
    assert len(cache) == 2  # expired but not yet swept

    timer.now = 21
    cache.set("c", 3)
    assert len(cache) == 1


def test_ttl_cache_explicit_sweep_and_clear():
    timer = FakeTimer()
    cache: TTLCache[int] = TTLCache(ttl=5, max_entries=10, timer=timer)

    cache.set("a", 1)
    timer.now = 3
    cache.set("b", 2)
    timer.now = 6

    assert cache.sweep() == 1
    assert cache.get("b") == 2

    cache.clear()
    assert len(cache) == 0


def test_ttl_cache_rejects_bad_limits():
    with pytest.raises(ValueError):
        TTLCache(ttl=0, max_entries=1)
    with pytest.raises(ValueError):
        TTLCache(ttl=1, max_entries=0)
