"""AI client interface and provider abstraction."""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from church_directory.config import Settings
from church_directory.core.schema import ChurchContext, CombinedEnrichment, ExtractedInfo
from church_directory.services.ai.prompts import (
    build_combined_prompt,
    build_description_prompt,
    build_extraction_prompt,
    build_what_to_expect_prompt,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class AIProvider(str, Enum):
    """Supported AI providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class AIClientError(Exception):
    """Raised when an AI provider call fails."""


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    text = raw.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def extract_json_object(raw: str) -> dict[str, Any] | None:
    """
    Pull the first JSON object out of an AI response.

    Tolerates markdown fences and prose around the object. camelCase keys
    are converted to snake_case.

    Returns:
        The parsed object, or None if no valid object was found.
    """
    text = strip_code_fences(raw)
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return {_snake_case(k): v for k, v in data.items()}


def validate_lenient(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """
    Validate data against a model, dropping fields that fail validation.

    Falls back to the model's defaults if the remainder still fails.
    """
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.debug(f"Dropping invalid AI fields for {model_cls.__name__}: {sorted(map(str, bad_fields))}")

    cleaned = {k: v for k, v in data.items() if k not in bad_fields}
    try:
        return model_cls.model_validate(cleaned)
    except ValidationError:
        return model_cls()


def parse_model(raw: str, model_cls: type[ModelT]) -> ModelT:
    """Parse an AI response into a model; any failure yields the model's defaults."""
    data = extract_json_object(raw)
    if data is None:
        logger.warning(f"AI response contained no JSON object for {model_cls.__name__}")
        return model_cls()
    return validate_lenient(model_cls, data)


class AIClient(ABC):
    """
    Abstract base class for AI providers.

    Subclasses only implement `complete`; the enrichment operations are
    built on top of it.
    """

    provider: AIProvider
    model: str

    @abstractmethod
    def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        """
        Send a single-turn prompt and return the text response.

        Raises:
            AIClientError: If the provider call fails.
        """
        pass

    def generate_description(self, church: ChurchContext) -> str:
        """Generate a short directory description."""
        return self.complete(build_description_prompt(church)).strip()

    def generate_what_to_expect(self, church: ChurchContext) -> str:
        """Generate a first-time visitor guide."""
        return self.complete(build_what_to_expect_prompt(church)).strip()

    def generate_combined_enrichment(self, church: ChurchContext) -> CombinedEnrichment:
        """Generate description and visitor guide in one call."""
        return parse_model(self.complete(build_combined_prompt(church)), CombinedEnrichment)

    def extract_church_info(self, church: ChurchContext, website_content: str) -> ExtractedInfo:
        """
        Extract structured facts from cleaned website text.

        Malformed responses give an empty ExtractedInfo rather than an error.
        """
        response = self.complete(build_extraction_prompt(church, website_content))
        return parse_model(response, ExtractedInfo)


def get_ai_client(
    provider: AIProvider | str,
    api_key: str,
    model: str | None = None,
) -> AIClient:
    """
    Factory function to get an AI client for the specified provider.

    Args:
        provider: The AI provider to use.
        api_key: The API key for the provider.
        model: Optional model name override.

    Returns:
        An AIClient instance for the specified provider.

    Raises:
        ValueError: If the provider is not supported.
    """
    if isinstance(provider, str):
        provider = AIProvider(provider.lower())

    if provider == AIProvider.ANTHROPIC:
        from church_directory.services.ai.providers.anthropic import AnthropicClient

        return AnthropicClient(api_key=api_key, model=model)
    elif provider == AIProvider.OPENAI:
        from church_directory.services.ai.providers.openai import OpenAIClient

        return OpenAIClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")


# (provider, api key, model) read from settings, in order of preference
CandidateReader = Callable[[Settings], tuple[AIProvider, str, str | None]]

AI_CANDIDATES: list[CandidateReader] = [
    lambda s: (AIProvider.ANTHROPIC, s.anthropic_api_key, s.anthropic_model),
    lambda s: (AIProvider.OPENAI, s.openai_api_key, s.openai_model),
]


def select_ai_client(
    settings: Settings,
    candidates: list[CandidateReader] | None = None,
) -> AIClient | None:
    """
    Build the first AI client whose API key is configured.

    Args:
        settings: Application settings.
        candidates: Ordered candidate readers (defaults to Anthropic, then OpenAI).

    Returns:
        An AIClient, or None when no provider is configured.
    """
    for read in candidates or AI_CANDIDATES:
        provider, api_key, model = read(settings)
        if api_key:
            logger.info(f"Using {provider.value} for enrichment")
            return get_ai_client(provider, api_key, model)

    logger.warning("No AI provider configured for enrichment")
    return None
