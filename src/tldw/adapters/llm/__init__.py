"""LLM provider adapters."""

from tldw.adapters.llm.anthropic import AnthropicProvider
from tldw.adapters.llm.base import LLMMessage, LLMProvider, LLMResponse
from tldw.adapters.llm.openai import OpenAIProvider
from tldw.adapters.llm.stub import StubLLMProvider
from tldw.config import settings
from tldw.domain.enums import AIProvider


def get_llm_provider(provider: AIProvider | str, model: str | None = None) -> LLMProvider:
    """Get the LLM provider for a requested AI provider.

    In ``llm_mode=stub`` every provider is served by the stub adapter.
    """
    provider = AIProvider(provider)

    if settings.llm_mode == "stub":
        return StubLLMProvider(label=str(provider))

    if provider == AIProvider.OPENAI:
        return OpenAIProvider(model=model)
    if provider == AIProvider.ANTHROPIC:
        return AnthropicProvider(model=model)

    from tldw.adapters.llm.gemini import GeminiProvider

    return GeminiProvider(model=model)


__all__ = [
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "AnthropicProvider",
    "OpenAIProvider",
    "StubLLMProvider",
    "get_llm_provider",
]
