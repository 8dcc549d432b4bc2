"""Abstract base for all AI model providers."""

from abc import ABC, abstractmethod
from enum import Enum

from council.models import ModelResponse


class BackendErrorKind(str, Enum):
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"


class BackendError(Exception):
    """Raised when a provider call fails."""

    def __init__(
        self,
        provider_name: str,
        message: str,
        kind: BackendErrorKind = BackendErrorKind.UNAVAILABLE,
    ) -> None:
        self.provider_name = provider_name
        self.kind = kind
        self.message = message
        super().__init__(f"[{provider_name}] {kind.value}: {message}")


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, stage: int) -> ModelResponse:
        """Generate a response for the given prompt.

        Args:
            prompt: The full prompt text to send.
            stage: The council stage issuing the call (1 answer, 2 review, 3 synthesis).

        Returns:
            ModelResponse dataclass with content and metadata.

        Raises:
            BackendError: On API failure, timeout, rate limiting or empty output.
        """
        ...
