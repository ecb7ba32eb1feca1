"""LLM provider implementations."""

from nudge.core.llm.providers.anthropic import AnthropicProvider
from nudge.core.llm.providers.mock import MockProvider
from nudge.core.llm.providers.openai import OpenAIProvider

__all__ = ["AnthropicProvider", "MockProvider", "OpenAIProvider"]
