"""Embedding service with a content-addressed cache.

Wraps an EmbeddingProvider so repeated texts never hit the network
twice within the cache TTL.
"""

import hashlib
import logging
import threading
import time

from behavior_router.config import settings
from behavior_router.exceptions import DimensionMismatchError, ProviderError, ValidationError
from behavior_router.protocols import EmbeddingProvider
from behavior_router.utils import TTLCache

logger = logging.getLogger(__name__)

# Embedded by health checks; cached like any other text
HEALTH_CHECK_TEXT = "health check"


class EmbeddingService:
    """Cache-aware embedding generation.

    Cache entries hold direct references to the provider's vectors, so
    callers must treat returned embeddings as read-only.

    Example:
        ```python
        from behavior_router.repositories import OpenAIEmbeddingProvider
        from behavior_router.services import EmbeddingService

        embeddings = EmbeddingService.create(OpenAIEmbeddingProvider.create())
        vector = await embeddings.generate_embedding("I feel anxious about tomorrow")
        ```
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache_ttl: int | None = None,
        check_period: int | None = None,
        max_entries: int | None = None,
        latency_warn_ms: float | None = None,
        expected_dimension: int | None = None,
    ) -> None:
        """Initialize the embedding service.

        Args:
            provider: Embedding provider (required).
            cache_ttl: Seconds an entry stays valid. Defaults to settings.
            check_period: Seconds between expiry sweeps. Defaults to settings.
            max_entries: Capacity before LRU eviction. Defaults to settings.
            latency_warn_ms: Per-text latency target. Defaults to settings.
            expected_dimension: Required vector length. Defaults to provider.dimension.
        """
        self._provider = provider
        self._cache: TTLCache[list[float]] = TTLCache(
            ttl=cache_ttl or settings.embedding_cache_ttl,
            max_entries=max_entries or settings.embedding_cache_max_entries,
            check_period=check_period or settings.embedding_cache_check_period,
        )
        self._latency_warn_ms = latency_warn_ms or settings.embedding_latency_warn_ms
        self._expected_dimension = expected_dimension or provider.dimension
        self._hits = 0
        self._misses = 0
        self._stats_lock = threading.Lock()

    @classmethod
    def create(cls, provider: EmbeddingProvider, cache_ttl: int | None = None) -> "EmbeddingService":
        """Factory method to create EmbeddingService with settings defaults."""
        return cls(provider=provider, cache_ttl=cache_ttl)

    @property
    def model_name(self) -> str:
        return self._provider.model_name

    @property
    def dimension(self) -> int:
        return self._expected_dimension

    @property
    def provider(self) -> EmbeddingProvider:
        """Get the underlying embedding provider (for testing)."""
        return self._provider

    def _cache_key(self, text: str) -> str:
        return hashlib.sha256(f"{self._provider.model_name}:{text}".encode()).hexdigest()

    def _lookup(self, key: str) -> list[float] | None:
        cached = self._cache.get(key)
        with self._stats_lock:
            if cached is not None:
                self._hits += 1
            else:
                self._misses += 1
        return cached

    def _check_dimension(self, embedding: list[float]) -> None:
        if len(embedding) != self._expected_dimension:
            raise DimensionMismatchError(self._expected_dimension, len(embedding))

    async def generate_embedding(self, text: str) -> list[float]:
        """Generate the embedding for one text.

        Args:
            text: Input text to embed

        Returns:
            The embedding vector (shared with the cache; do not mutate)

        Raises:
            ValidationError: If text is empty or whitespace-only
            ProviderError: If the provider call fails
        """
        if not text or not text.strip():
            raise ValidationError("Text input cannot be empty")

        key = self._cache_key(text)
        cached = self._lookup(key)
        if cached is not None:
            return cached

        start_time = time.perf_counter()
        try:
            embedding = await self._provider.encode(text)
        except Exception as e:
            logger.error("Error generating embedding: %s", e)
            raise ProviderError(f"Failed to generate embedding: {e}") from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        if latency_ms > self._latency_warn_ms:
            logger.warning(
                "Embedding generation took %.0fms (target: <%.0fms)",
                latency_ms,
                self._latency_warn_ms,
            )

        self._check_dimension(embedding)
        self._cache.set(key, embedding)
        return embedding

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for several texts, preserving input order.

        Cached texts are served from the cache; the rest go to the provider
        in a single request and are merged back at their original positions.

        Raises:
            ValidationError: If any text is empty or whitespace-only
            ProviderError: If the provider call fails
        """
        if not texts:
            return []

        for index, text in enumerate(texts):
            if not text or not text.strip():
                raise ValidationError(f"Text input at position {index} cannot be empty")

        results: list[list[float] | None] = [None] * len(texts)
        uncached_indices: list[int] = []
        uncached_texts: list[str] = []

        for index, text in enumerate(texts):
            cached = self._lookup(self._cache_key(text))
            if cached is not None:
                results[index] = cached
            else:
                uncached_indices.append(index)
                uncached_texts.append(text)

        if not uncached_texts:
            return results  # type: ignore[return-value]

        start_time = time.perf_counter()
        try:
            embeddings = await self._provider.encode_batch(uncached_texts)
        except Exception as e:
            logger.error("Error generating batch embeddings: %s", e)
            raise ProviderError(f"Failed to generate batch embeddings: {e}") from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        if latency_ms > self._latency_warn_ms * len(uncached_texts):
            logger.warning(
                "Batch embedding generation took %.0fms for %d texts (average: %.0fms per text)",
                latency_ms,
                len(uncached_texts),
                latency_ms / len(uncached_texts),
            )

        if len(embeddings) != len(uncached_texts):
            raise ProviderError(
                f"Provider returned {len(embeddings)} embeddings for {len(uncached_texts)} texts"
            )

        for index, text, embedding in zip(uncached_indices, uncached_texts, embeddings):
            self._check_dimension(embedding)
            results[index] = embedding
            self._cache.set(self._cache_key(text), embedding)

        return results  # type: ignore[return-value]

    def clear_cache(self) -> None:
        """Clear all cached embeddings."""
        self._cache.clear()

    def get_cache_stats(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with keys, hits, misses and hit_rate
        """
        with self._stats_lock:
            hits, misses = self._hits, self._misses

        return {
            "keys": len(self._cache),
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / ((hits + misses) or 1),
            "max_entries": self._cache.max_entries,
            "ttl_seconds": self._cache.ttl,
            "model": self._provider.model_name,
        }

    async def is_available(self) -> bool:
        """Check that embeddings can be generated.

        Goes through the cache, so repeated checks within the TTL do not
        call the provider again.
        """
        try:
            await self.generate_embedding(HEALTH_CHECK_TEXT)
        except ProviderError as e:
            logger.warning("Embedding health check failed: %s", e)
            return False
        return True
