"""AI enrichment clients for Church Directory."""

from church_directory.services.ai.client import (
    AIClient,
    AIClientError,
    AIProvider,
    get_ai_client,
    select_ai_client,
)

__all__ = [
    "AIClient",
    "AIClientError",
    "AIProvider",
    "get_ai_client",
    "select_ai_client",
]
