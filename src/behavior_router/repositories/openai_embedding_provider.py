"""OpenAI-compatible embedding provider.

Uses the ``/embeddings`` endpoint of the OpenAI API (or any service that
speaks the same protocol) to generate embeddings.

Requirements:
    - OPENAI_API_KEY set in the environment
    - OPENAI_BASE_URL pointing at a compatible endpoint (defaults to OpenAI)

Models available:
- text-embedding-ada-002 (1536 dims, default)
- text-embedding-3-small (1536 dims)
- text-embedding-3-large (3072 dims)
"""

import httpx

from behavior_router.config import settings
from behavior_router.exceptions import ProviderError


class OpenAIEmbeddingProvider:
    """OpenAI implementation of EmbeddingProvider protocol.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        provider = OpenAIEmbeddingProvider.create()

        embedding = await provider.encode("I feel anxious about tomorrow")
        print(len(embedding))  # 1536
        ```
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the OpenAI embedding provider.

        Args:
            model_name: Embedding model. Defaults to settings.embedding_model.
            api_key: Bearer credential. Defaults to settings.openai_api_key.
            base_url: API base URL. Defaults to settings.openai_base_url.
            timeout: Request timeout in seconds.
            client: Pre-built async client (mainly for tests).
        """
        self._model_name = model_name or settings.embedding_model
        self._api_key = api_key or settings.openai_api_key
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._timeout = timeout or settings.provider_timeout
        self._dimension: int | None = None
        self._client = client

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
    ) -> "OpenAIEmbeddingProvider":
        """Factory method to create OpenAIEmbeddingProvider with defaults.

        Args:
            model_name: Model name. If None, uses settings.
            base_url: API URL. If None, uses settings.

        Returns:
            Configured OpenAIEmbeddingProvider
        """
        return cls(model_name=model_name, base_url=base_url)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=headers,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension.

        Note:
            Unknown models fall back to settings.embedding_dimension.
        """
        if self._dimension is None:
            self._dimension = self.MODEL_DIMENSIONS.get(self._model_name, settings.embedding_dimension)
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            ProviderError: If the API request fails or the response is malformed
        """
        embeddings = await self._request(text)
        return embeddings[0]

    async def encode_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request.

        Raises:
            ProviderError: If the API request fails or the response is malformed
        """
        if not texts:
            return []
        embeddings = await self._request(texts)
        if len(embeddings) != len(texts):
            raise ProviderError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}",
                provider="openai",
            )
        return embeddings

    async def _request(self, payload_input: str | list[str]) -> list[list[float]]:
        url = f"{self._base_url}/embeddings"
        payload = {
            "model": self._model_name,
            "input": payload_input,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Embedding API error: {e.response.status_code} {e.response.text[:200]}",
                provider="openai",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Embedding API error: {e}", provider="openai") from e

        items = data.get("data") if isinstance(data, dict) else None
        if not items:
            raise ProviderError(f"Unexpected response format: {str(data)[:200]}", provider="openai")

        # The API may return items out of order; "index" is authoritative
        items = sorted(items, key=lambda item: item.get("index", 0))
        return [item["embedding"] for item in items]

    async def is_available(self) -> bool:
        """Check if the embedding provider is available."""
        try:
            _ = await self.encode("test")
            return True
        except ProviderError:
            return False

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
