"""Backend gateway: one deadline-bound call to a named member."""

import asyncio
import logging

from council.models import ModelResponse
from council.providers.base import AIProvider, BackendError, BackendErrorKind

logger = logging.getLogger(__name__)


class BackendGateway:
    """Routes prompts to providers by member id.

    Every call is bounded by its own deadline. On expiry the in-flight
    provider coroutine is cancelled, not just ignored.
    """

    def __init__(self, providers: dict[str, AIProvider]) -> None:
        self._providers = dict(providers)

    async def invoke(self, member_id: str, prompt: str, deadline: float, stage: int) -> ModelResponse:
        """Send ``prompt`` to ``member_id`` and return its response.

        Raises:
            BackendError: For unknown members, deadline expiry, or any provider failure.
        """
        provider = self._providers.get(member_id)
        if provider is None:
            raise BackendError(member_id, "No provider configured for member")

        try:
            response = await asyncio.wait_for(provider.generate(prompt, stage), timeout=deadline)
        except TimeoutError as exc:
            raise BackendError(
                member_id, f"Deadline of {deadline:g}s exceeded", BackendErrorKind.TIMEOUT
            ) from exc
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError(member_id, f"Unexpected error: {exc}") from exc

        if not response.content or not response.content.strip():
            raise BackendError(member_id, "Empty response content", BackendErrorKind.MALFORMED)
        return response
