"""
Provider Manager
================

Holds the configured providers and routes searches to one of them (or to
all of them). Only providers whose configuration is present get registered,
so callers never need to know which sources exist.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from church_directory.config import Settings
from church_directory.core.schema import (
    ProviderSearchResult,
    RawChurch,
    SearchParams,
    SearchResult,
)
from church_directory.providers.base import BaseProvider, ProviderNotConfiguredError
from church_directory.providers.google_places import GooglePlacesConfig, GooglePlacesProvider
from church_directory.providers.openstreetmap import OpenStreetMapConfig, OpenStreetMapProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderManagerConfig:
    """Configuration for building a ProviderManager."""

    default_provider: str = GooglePlacesProvider.PROVIDER_NAME
    google_places: GooglePlacesConfig | None = None
    openstreetmap: OpenStreetMapConfig | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderManagerConfig:
        """Derive provider configuration from application settings."""
        google = None
        if settings.google_places_api_key:
            google = GooglePlacesConfig(
                api_key=settings.google_places_api_key,
                default_radius_miles=settings.default_radius_miles,
            )

        # OSM needs no key, only a user agent (which has a default)
        osm = None
        if settings.osm_user_agent:
            osm = OpenStreetMapConfig(user_agent=settings.osm_user_agent)

        return cls(
            default_provider=settings.default_provider,
            google_places=google,
            openstreetmap=osm,
        )


class ProviderManager:
    """Registry of configured providers with default-provider routing."""

    def __init__(
        self,
        config: ProviderManagerConfig | None = None,
        providers: Iterable[BaseProvider] | None = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            config: Provider configuration; each provider whose config is
                    present and complete is registered.
            providers: Extra, already-built providers to register (used for
                       custom sources and tests).
        """
        config = config or ProviderManagerConfig()
        self._providers: dict[str, BaseProvider] = {}
        self._default_provider = config.default_provider

        if config.google_places and config.google_places.api_key:
            self.register(GooglePlacesProvider(config.google_places))

        if config.openstreetmap and config.openstreetmap.user_agent:
            self.register(OpenStreetMapProvider(config.openstreetmap))

        for provider in providers or []:
            self.register(provider)

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderManager:
        """Build a manager from application settings."""
        return cls(ProviderManagerConfig.from_settings(settings))

    def register(self, provider: BaseProvider) -> None:
        """
        Register a provider under its name.

        Providers that report themselves unconfigured are skipped.
        """
        if not provider.is_configured():
            logger.info(f"Skipping unconfigured provider '{provider.name}'")
            return
        self._providers[provider.name] = provider

    @property
    def default_provider(self) -> str:
        """Name of the default provider."""
        return self._default_provider

    def list_available(self) -> list[str]:
        """List registered provider names."""
        return list(self._providers.keys())

    def is_available(self, name: str) -> bool:
        """Check whether a provider is registered."""
        return name in self._providers

    def get_provider(self, name: str | None = None) -> BaseProvider:
        """
        Get a provider by name, or the default provider.

        Raises:
            ProviderNotConfiguredError: If the provider is not registered.
        """
        key = name or self._default_provider
        provider = self._providers.get(key)
        if provider is None:
            raise ProviderNotConfiguredError(
                f"Provider {key} is not configured "
                f"(available: {', '.join(self.list_available()) or 'none'})"
            )
        return provider

    def set_default(self, name: str) -> None:
        """Change the default provider."""
        if name not in self._providers:
            raise ProviderNotConfiguredError(f"Provider {name} is not configured")
        self._default_provider = name

    def search(self, params: SearchParams, provider: str | None = None) -> SearchResult:
        """Search with the named provider, or the default."""
        return self.get_provider(provider).search(params)

    def get_by_id(self, source_id: str, provider: str | None = None) -> RawChurch | None:
        """Look up one church with the named provider, or the default."""
        return self.get_provider(provider).get_by_id(source_id)

    def search_all(self, params: SearchParams) -> list[ProviderSearchResult]:
        """
        Search every registered provider in turn.

        A failing provider is logged and skipped so the others still return.

        Returns:
            One ProviderSearchResult per provider that succeeded.
        """
        results: list[ProviderSearchResult] = []
        for name, provider in self._providers.items():
            try:
                result = provider.search(params)
            except Exception as e:
                logger.error(f"Error searching {name}: {e}")
                continue
            results.append(ProviderSearchResult(provider=name, result=result))
        return results

    def close(self) -> None:
        """Close all provider HTTP clients."""
        for provider in self._providers.values():
            provider.close()
