"""Application services for Church Directory."""

from church_directory.services.ai import AIClient, AIProvider, select_ai_client
from church_directory.services.enrichment import ChurchEnrichmentService, EnrichmentConfig
from church_directory.services.website import WebsiteFetcher, html_to_text

__all__ = [
    "AIClient",
    "AIProvider",
    "ChurchEnrichmentService",
    "EnrichmentConfig",
    "WebsiteFetcher",
    "html_to_text",
    "select_ai_client",
]
