"""OpenAI-compatible chat completion provider.

Only used for the short "inner thought" synthesis, so it exposes a
single-prompt ``complete`` call over ``/chat/completions``.
"""

import httpx

from behavior_router.config import settings
from behavior_router.exceptions import ProviderError


class OpenAIChatProvider:
    """OpenAI implementation of the ChatProvider protocol."""

    def __init__(
        self,
        model_name: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model_name = model_name or settings.thought_model
        self._api_key = api_key or settings.openai_api_key
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._timeout = timeout or settings.provider_timeout
        self._client = client

    @classmethod
    def create(cls, model_name: str | None = None) -> "OpenAIChatProvider":
        """Factory method to create OpenAIChatProvider with defaults."""
        return cls(model_name=model_name)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=headers)
        return self._client

    @property
    def model_name(self) -> str:
        return self._model_name

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Send one user message and return the first choice's content.

        Raises:
            ProviderError: If the API request fails or returns no content
        """
        url = f"{self._base_url}/chat/completions"
        payload = {
            "model": self._model_name,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Chat API error: {e.response.status_code} {e.response.text[:200]}",
                provider="openai",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Chat API error: {e}", provider="openai") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected response format: {str(data)[:200]}", provider="openai") from e

        return (content or "").strip()

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
