"""Application configuration loaded from the environment."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_OSM_USER_AGENT = "ChurchDirectory/1.0"
DEFAULT_CONTACT_EMAIL = "support@example.com"


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration.

    Built once at the process boundary; services receive the pieces they
    need as explicit config objects rather than reading the environment.
    """

    database_url: str = ""
    admin_api_key: str = ""
    default_provider: str = "google_places"
    google_places_api_key: str = ""
    default_radius_miles: float = 25.0
    osm_user_agent: str = DEFAULT_OSM_USER_AGENT
    anthropic_api_key: str = ""
    anthropic_model: str | None = None
    openai_api_key: str = ""
    openai_model: str | None = None
    contact_email: str = DEFAULT_CONTACT_EMAIL
    page_delay_seconds: float = 2.0
    location_delay_seconds: float = 1.0
    enrichment_delay_seconds: float = 0.5
    website_timeout_seconds: float = 10.0
    combined_generation: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ).

        Returns:
            A Settings instance.
        """
        env = os.environ if environ is None else environ

        def _float(name: str, default: float) -> float:
            raw = env.get(name)
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {name}={raw!r}; using {default}")
                return default

        return cls(
            database_url=env.get("DATABASE_URL", ""),
            admin_api_key=env.get("ADMIN_API_KEY", ""),
            default_provider=env.get("DEFAULT_CHURCH_PROVIDER", "google_places"),
            google_places_api_key=env.get("GOOGLE_PLACES_API_KEY", ""),
            default_radius_miles=_float("DEFAULT_SEARCH_RADIUS_MILES", 25.0),
            osm_user_agent=env.get("OSM_USER_AGENT") or DEFAULT_OSM_USER_AGENT,
            anthropic_api_key=env.get("ANTHROPIC_API_KEY", ""),
            anthropic_model=env.get("ANTHROPIC_MODEL") or None,
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            openai_model=env.get("OPENAI_MODEL") or None,
            contact_email=env.get("CONTACT_EMAIL") or DEFAULT_CONTACT_EMAIL,
            page_delay_seconds=_float("PAGE_DELAY_SECONDS", 2.0),
            location_delay_seconds=_float("LOCATION_DELAY_SECONDS", 1.0),
            enrichment_delay_seconds=_float("ENRICHMENT_DELAY_SECONDS", 0.5),
            website_timeout_seconds=_float("WEBSITE_TIMEOUT_SECONDS", 10.0),
            combined_generation=env.get("COMBINED_GENERATION", "false").lower()
            in {"1", "true", "yes"},
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from .env and the environment (cached)."""
    load_dotenv()
    settings = Settings.from_env()

    if not settings.admin_api_key:
        logger.warning("ADMIN_API_KEY is not set; admin routes are disabled.")
    if not settings.google_places_api_key:
        logger.info("GOOGLE_PLACES_API_KEY is not set; Google Places provider disabled.")
    if not settings.anthropic_api_key and not settings.openai_api_key:
        logger.warning("No AI provider key configured; enrichment is disabled.")

    return settings
