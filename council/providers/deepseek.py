"""DeepSeek provider using openai SDK (OpenAI-compatible API)."""

from council.providers.openai_provider import OpenAIProvider


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek provider via OpenAI-compatible API."""

    label = "DeepSeek"
    requires_base_url = True
