"""Tests for provider construction and error mapping, with SDK clients mocked out."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ModelConfig
from council.providers.anthropic import AnthropicProvider
from council.providers.base import BackendError, BackendErrorKind
from council.providers.deepseek import DeepSeekProvider
from council.providers.gemini import GeminiProvider
from council.providers.openai_provider import OpenAIProvider
from council.providers.xai import XAIProvider


def _config(name: str = "openai", base_url: str | None = None, timeout_sec: float = 5) -> ModelConfig:
    return ModelConfig(
        name=name,
        sdk="test",
        model=f"{name}-model",
        api_key_env="COUNCIL_TEST_KEY",
        timeout_sec=timeout_sec,
        max_tokens=256,
        base_url=base_url,
    )


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("COUNCIL_TEST_KEY", "sk-test")


def _chat_completion(content: str | None, total_tokens: int = 12):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


@pytest.mark.parametrize("cls", [OpenAIProvider, AnthropicProvider, GeminiProvider])
def test_missing_api_key_raises(monkeypatch, cls):
    monkeypatch.delenv("COUNCIL_TEST_KEY", raising=False)
    with pytest.raises(BackendError, match="Missing API key: COUNCIL_TEST_KEY"):
        cls(_config())


@pytest.mark.parametrize("cls", [XAIProvider, DeepSeekProvider])
def test_compatible_providers_require_base_url(api_key, cls):
    with pytest.raises(BackendError, match="base_url is required"):
        cls(_config("grok"))


def test_compatible_provider_accepts_base_url(api_key):
    provider = XAIProvider(_config("grok", base_url="https://api.x.ai/v1"))
    assert provider.name() == "grok"
    assert provider.model_string() == "grok-model"


async def test_openai_generate_success(api_key):
    provider = OpenAIProvider(_config())
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=_chat_completion("Hi"))))
    )

    response = await provider.generate("Hello?", stage=2)

    assert response.content == "Hi"
    assert response.stage == 2
    assert response.provider == "openai"
    assert response.model == "openai-model"
    assert response.token_count == 12
    provider._client.chat.completions.create.assert_awaited_once()


async def test_openai_empty_choices_is_malformed(api_key):
    provider = OpenAIProvider(_config())
    empty = SimpleNamespace(choices=[], usage=None)
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=empty)))
    )

    with pytest.raises(BackendError) as exc_info:
        await provider.generate("Hello?", stage=1)

    assert exc_info.value.kind is BackendErrorKind.MALFORMED


async def test_openai_blank_content_is_malformed(api_key):
    provider = OpenAIProvider(_config())
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=_chat_completion(None))))
    )

    with pytest.raises(BackendError) as exc_info:
        await provider.generate("Hello?", stage=1)

    assert exc_info.value.kind is BackendErrorKind.MALFORMED


async def test_openai_slow_call_times_out(api_key):
    async def slow_create(**kwargs):
        await asyncio.sleep(3600)

    provider = OpenAIProvider(_config(timeout_sec=0.05))
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=slow_create)))

    with pytest.raises(BackendError) as exc_info:
        await provider.generate("Hello?", stage=1)

    assert exc_info.value.kind is BackendErrorKind.TIMEOUT
    assert exc_info.value.provider_name == "openai"


async def test_anthropic_joins_text_blocks(api_key):
    provider = AnthropicProvider(_config("claude"))
    reply = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Part one."),
            SimpleNamespace(type="tool_use", text=""),
            SimpleNamespace(type="text", text="Part two."),
        ],
        usage=SimpleNamespace(input_tokens=5, output_tokens=7),
    )
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=reply)))

    response = await provider.generate("Hello?", stage=3)

    assert response.content == "Part one.\nPart two."
    assert response.token_count == 12
    assert response.stage == 3


async def test_anthropic_without_text_is_malformed(api_key):
    provider = AnthropicProvider(_config("claude"))
    reply = SimpleNamespace(content=[], usage=None)
    provider._client = SimpleNamespace(messages=SimpleNamespace(create=AsyncMock(return_value=reply)))

    with pytest.raises(BackendError) as exc_info:
        await provider.generate("Hello?", stage=1)

    assert exc_info.value.kind is BackendErrorKind.MALFORMED


async def test_gemini_success_and_empty(api_key):
    provider = GeminiProvider(_config("gemini"))
    ok = SimpleNamespace(text="Gemini says hi", usage_metadata=SimpleNamespace(total_token_count=9))
    empty = SimpleNamespace(text="", usage_metadata=None)
    generate_content = AsyncMock(side_effect=[ok, empty])
    provider._client = SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))

    response = await provider.generate("Hello?", stage=1)
    assert response.content == "Gemini says hi"
    assert response.token_count == 9

    with pytest.raises(BackendError) as exc_info:
        await provider.generate("Hello?", stage=1)
    assert exc_info.value.kind is BackendErrorKind.MALFORMED


def test_backend_error_str_carries_kind():
    err = BackendError("grok", "slow", BackendErrorKind.TIMEOUT)
    assert str(err) == "[grok] timeout: slow"
    assert err.message == "slow"
