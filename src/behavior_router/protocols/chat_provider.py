"""Short-form language model protocol.

Used only to synthesize the agent's one-to-two sentence "inner thought"
about the current turn.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for single-prompt chat completion services."""

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def complete(self, prompt: str, max_tokens: int, temperature: float) -> str:
        """Send one user message and return the first choice's content.

        Args:
            prompt: The user message content
            max_tokens: Upper bound on generated tokens
            temperature: Sampling temperature

        Returns:
            The generated text, stripped of surrounding whitespace
        """
        ...
