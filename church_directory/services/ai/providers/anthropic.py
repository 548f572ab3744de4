"""Anthropic (Claude) AI provider implementation."""

import logging

from church_directory.services.ai.client import AIClient, AIClientError, AIProvider
from church_directory.services.ai.prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-haiku-20240307"


class AnthropicClient(AIClient):
    """Anthropic Claude AI client."""

    provider = AIProvider.ANTHROPIC

    def __init__(self, api_key: str, model: str | None = None):
        """
        Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key.
            model: Model name (defaults to claude-3-haiku-20240307).
        """
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package is required. Install with: pip install anthropic"
            )

        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model or DEFAULT_MODEL

    def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            raise AIClientError(f"Anthropic API error: {e}") from e

        if not response.content:
            return ""
        text = response.content[0].text
        logger.debug(f"Anthropic response ({len(text)} chars)")
        return text
