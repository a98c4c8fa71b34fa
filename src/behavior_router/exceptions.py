"""
Exceptions raised by the behavior router.
"""


class BehaviorRouterError(Exception):
    """Base exception for all behavior router errors."""
    pass


class ValidationError(BehaviorRouterError):
    """
    Input rejected before any external call.

    Raised when:
    - Text to embed is empty or whitespace-only
    - Vector weights name an unknown vector type or are negative
    """
    pass


class ProviderError(BehaviorRouterError):
    """
    Error communicating with an embedding or chat provider.

    Raised when:
    - Provider is unreachable or times out
    - Provider returns an error response
    - Response does not have the expected shape
    """

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class DimensionMismatchError(ProviderError):
    """Two vectors (or a vector and its store) disagree on dimensionality."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class StoreUnavailableError(BehaviorRouterError):
    """The indexed vector backend could not be provisioned."""
    pass


class SearchError(BehaviorRouterError):
    """A similarity search against the trigger store failed."""
    pass


class PersistenceError(BehaviorRouterError):
    """Writing generated embeddings back to the store failed."""
    pass


class StateUpdateError(BehaviorRouterError):
    """Reading or writing conversation state failed."""
    pass
