"""Embedding provider protocol.

Defines the interface for any embedding generation service that can
convert text to vector embeddings.

Implementations can include:
- OpenAI embeddings (API, default)
- Any OpenAI-compatible embeddings endpoint (Azure, vLLM, LiteLLM proxy)
- In-process fakes for tests
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation services.

    Any type that implements these methods satisfies the protocol,
    no explicit inheritance needed.

    Example:
        ```python
        from behavior_router.protocols import EmbeddingProvider

        provider: EmbeddingProvider = OpenAIEmbeddingProvider.create()
        ```
    """

    @property
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors.

        Returns:
            The vector dimension (e.g., 1536 for text-embedding-ada-002)
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model.

        Returns:
            Model name or identifier
        """
        ...

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: The text to encode

        Returns:
            The embedding vector as a list of floats
        """
        ...

    async def encode_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Args:
            texts: List of texts to encode

        Returns:
            List of embedding vectors, in input order
        """
        ...

    async def is_available(self) -> bool:
        """Check if the embedding provider is available.

        Returns:
            True if available, False otherwise
        """
        ...
