"""Vector similarity helpers."""

from collections.abc import Sequence

import numpy as np

from behavior_router.exceptions import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    # Rounding can push identical vectors just past 1.0
    return max(-1.0, min(1.0, similarity))


def cosine_similarity_matrix(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query against every row of ``matrix``.

    Rows (or a query) with zero norm score 0.0.
    """
    q = np.asarray(query, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != q.shape[0]:
        actual = matrix.shape[1] if matrix.ndim == 2 else 0
        raise DimensionMismatchError(q.shape[0], actual)

    q_norm = np.linalg.norm(q)
    row_norms = np.linalg.norm(matrix, axis=1)
    denominators = row_norms * q_norm
    dots = matrix @ q

    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denominators > 0
    scores[nonzero] = dots[nonzero] / denominators[nonzero]
    return np.clip(scores, -1.0, 1.0)
