"""Utility modules for the behavior router."""

from .similarity import cosine_similarity, cosine_similarity_matrix
from .ttl_cache import TTLCache

__all__ = [
    "TTLCache",
    "cosine_similarity",
    "cosine_similarity_matrix",
]
