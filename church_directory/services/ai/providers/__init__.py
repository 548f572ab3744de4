"""AI provider implementations."""

from church_directory.services.ai.providers.anthropic import AnthropicClient
from church_directory.services.ai.providers.openai import OpenAIClient

__all__ = ["AnthropicClient", "OpenAIClient"]
