"""Shared pytest fixtures."""

import asyncio
from collections import defaultdict
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from council.models import Member, ModelResponse, Question
from council.providers.base import AIProvider


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        initial="{persona}Answer this question: {question}",
        review="Question: {question}\n\n{responses_anonymized}\n\nLabels: {labels}\nRank them:",
        synthesis=(
            "Question: {question}\n\nResponses:\n{responses}\n\nRankings:\n{rankings}\n\n"
            "Aggregate:\n{aggregate}\n\nMissing:\n{missing}\n\nSynthesize:"
        ),
        personas={"mock": "Be a mock architect. "},
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        timeout_sec=30.0,
        output_dir=tmp_path / "output",
        aggregator="claude",
        default_panel=["claude", "gemini", "deepseek"],
        full_panel=["claude", "gemini", "deepseek", "openai", "grok"],
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        available_providers={"claude"},
    )


@pytest.fixture
def sample_question() -> Question:
    return Question(text="Should we use YAML or JSON for config?", source="cli")


@pytest.fixture
def sample_response() -> ModelResponse:
    return ModelResponse(
        provider="claude",
        model="claude-sonnet-4-20250514",
        stage=1,
        content="Use YAML for human-editable config, JSON for machine interchange.",
        latency_sec=1.5,
        token_count=42,
    )


def make_response(provider: str, content: str, stage: int = 1) -> ModelResponse:
    return ModelResponse(provider, "mock-model", stage, content, 0.1, 10)


class MockProvider(AIProvider):
    """Test double AIProvider."""

    def __init__(self, provider_name: str = "mock", response_content: str = "Mock response") -> None:
        self._name = provider_name
        self._response_content = response_content
        # Shadow the class method with an AsyncMock at the instance level.
        # ABC check passes because generate is defined in the class body below.
        self.generate = AsyncMock(  # type: ignore[assignment]
            return_value=make_response(provider_name, response_content)
        )

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate(self, prompt: str, stage: int) -> ModelResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return make_response(self._name, self._response_content, stage)


class ScriptedProvider(AIProvider):
    """Replies per stage and records every prompt it receives.

    A reply that is an exception instance is raised instead of returned.
    """

    def __init__(
        self,
        provider_name: str,
        answer: str | BaseException | None = None,
        review: str | BaseException = "RANKING: [A]",
        synthesis: str | BaseException = "## Final\nThe council agrees.",
    ) -> None:
        self._name = provider_name
        self.replies: dict[int, str | BaseException] = {
            0: "OK",
            1: answer if answer is not None else f"Answer from {provider_name}",
            2: review,
            3: synthesis,
        }
        self.prompts: dict[int, list[str]] = defaultdict(list)

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return f"{self._name}-model"

    async def generate(self, prompt: str, stage: int) -> ModelResponse:
        self.prompts[stage].append(prompt)
        reply = self.replies[stage]
        if isinstance(reply, BaseException):
            raise reply
        return ModelResponse(self._name, self.model_string(), stage, reply, 0.1, 10)


def members(*names: str) -> list[Member]:
    return [Member(n) for n in names]


@pytest.fixture
def three_scripted_providers() -> dict[str, ScriptedProvider]:
    return {n: ScriptedProvider(n) for n in ("m1", "m2", "m3")}


class HangingProvider(ScriptedProvider):
    """Never answers; records whether its call was cancelled."""

    def __init__(self, provider_name: str) -> None:
        super().__init__(provider_name)
        self.cancelled = False

    async def generate(self, prompt: str, stage: int) -> ModelResponse:
        self.prompts[stage].append(prompt)
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")
