"""FastAPI dependencies for admin authentication and service construction.

Route tests replace these through `app.dependency_overrides`.
"""

import hmac
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from church_directory.config import Settings, get_settings
from church_directory.providers.manager import ProviderManager
from church_directory.services.ai.client import AIClient, select_ai_client
from church_directory.services.website import WebsiteFetcher


def get_app_settings() -> Settings:
    """Dependency returning the process settings."""
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_app_settings)]


def require_admin(
    settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Dependency enforcing `Authorization: Bearer <ADMIN_API_KEY>`.

    With no admin key configured every request is rejected.

    Raises:
        HTTPException: 401 when the token is missing or wrong.
    """
    expected = settings.admin_api_key
    if not expected or not authorization:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(authorization, f"Bearer {expected}"):
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_provider_manager(settings: SettingsDep) -> Generator[ProviderManager, None, None]:
    """Dependency building a provider manager from settings, closed after the request."""
    manager = ProviderManager.from_settings(settings)
    try:
        yield manager
    finally:
        manager.close()


def get_enrichment_ai_client(settings: SettingsDep) -> AIClient | None:
    """Dependency returning the preferred configured AI client, if any."""
    return select_ai_client(settings)


def get_website_fetcher(settings: SettingsDep) -> Generator[WebsiteFetcher, None, None]:
    """Dependency building the website fetcher used during enrichment."""
    fetcher = WebsiteFetcher(
        contact_email=settings.contact_email,
        timeout=settings.website_timeout_seconds,
    )
    try:
        yield fetcher
    finally:
        fetcher.close()


# Type aliases for dependency injection
ProviderManagerDep = Annotated[ProviderManager, Depends(get_provider_manager)]
AIClientDep = Annotated[AIClient | None, Depends(get_enrichment_ai_client)]
WebsiteFetcherDep = Annotated[WebsiteFetcher, Depends(get_website_fetcher)]
