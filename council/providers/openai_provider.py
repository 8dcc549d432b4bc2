"""OpenAI provider using openai SDK with native async."""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from council.models import ModelResponse
from council.providers.base import AIProvider, BackendError, BackendErrorKind

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK.

    Also serves OpenAI-compatible APIs when ``base_url`` is set in the model config.
    """

    label = "OpenAI"
    requires_base_url = False

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise BackendError(config.name, f"Missing API key: {config.api_key_env}")
        if self.requires_base_url and not config.base_url:
            raise BackendError(config.name, f"base_url is required for {self.label} provider")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, prompt: str, stage: int) -> ModelResponse:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except (TimeoutError, openai.APITimeoutError) as exc:
            raise BackendError(
                self._config.name,
                f"Request timed out after {self._config.timeout_sec}s",
                BackendErrorKind.TIMEOUT,
            ) from exc
        except openai.RateLimitError as exc:
            raise BackendError(self._config.name, f"Rate limited: {exc}", BackendErrorKind.RATE_LIMITED) from exc
        except openai.OpenAIError as exc:
            raise BackendError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise BackendError(self._config.name, "Empty response content", BackendErrorKind.MALFORMED)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("%s stage %d: %.2fs, %s tokens", self.label, stage, latency, token_count)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            stage=stage,
            content=choice.message.content,
            latency_sec=latency,
            token_count=token_count,
        )
