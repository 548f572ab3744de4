"""
Provider Base Module
====================

Defines the abstract base class for external church data providers.
Providers are responsible for:
1. Searching an external source for churches around a location
2. Mapping the source's response shape into RawChurch records
3. Optionally resolving a single record by its provider-scoped id
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from church_directory.core.schema import RawChurch, SearchParams, SearchResult

METERS_PER_MILE = 1609.34


class ProviderError(Exception):
    """Base class for provider failures."""


class ProviderHTTPError(ProviderError):
    """Raised when a provider returns a non-2xx response."""

    def __init__(self, provider: str, status_code: int, body: str):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} API error: {status_code} - {body}")


class ProviderNotConfiguredError(ProviderError):
    """Raised when a requested provider is not registered or lacks credentials."""


class SearchValidationError(ProviderError, ValueError):
    """Raised when search parameters carry no usable location."""


class UnsupportedOperationError(ProviderError):
    """Raised when a provider does not implement an optional operation."""


class BaseProvider(ABC):
    """
    Abstract base class for church data providers.

    Subclasses must implement:
    - search: Return one page of results and an optional continuation token
    - is_configured: Report whether required credentials are present

    Subclasses may override get_by_id when the source supports lookups.
    """

    # Provider identification (override in subclasses)
    PROVIDER_NAME: str = "base"

    def __init__(self, http_client: httpx.Client | None = None, timeout: float = 30.0) -> None:
        """
        Initialize the provider.

        Args:
            http_client: Optional preconfigured httpx client (tests inject a
                         MockTransport-backed client here).
            timeout: Request timeout in seconds for the default client.
        """
        self._http = http_client or httpx.Client(timeout=timeout)

    @property
    def name(self) -> str:
        """Provider name used as the `source` tag on records."""
        return self.PROVIDER_NAME

    @abstractmethod
    def is_configured(self) -> bool:
        """Check whether the provider has the configuration it needs."""
        pass

    @abstractmethod
    def search(self, params: SearchParams) -> SearchResult:
        """
        Search for churches around a location.

        Args:
            params: City/state or lat/lng search parameters, plus an optional
                    page token from a previous call.

        Returns:
            SearchResult with one page of churches and an optional next token.
        """
        pass

    def get_by_id(self, source_id: str) -> RawChurch | None:
        """
        Look up a single church by provider-scoped id.

        Args:
            source_id: The provider's identifier for the place.

        Returns:
            RawChurch if found, None otherwise.
        """
        raise UnsupportedOperationError(
            f"Provider {self.name} does not support lookups by id"
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, raising ProviderError on transport failures."""
        try:
            return self._http.request(method, url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ProviderError(f"{self.name} request failed: {e}") from e

    def _check_response(self, response: httpx.Response) -> None:
        """Raise ProviderHTTPError for non-2xx responses."""
        if not response.is_success:
            raise ProviderHTTPError(self.name, response.status_code, response.text)

    def _parse_json(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body, raising ProviderError on malformed payloads."""
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned malformed JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ProviderError(f"{self.name} returned unexpected payload type")
        return payload

    def get_info(self) -> dict[str, Any]:
        """Get provider information."""
        return {
            "name": self.name,
            "class": self.__class__.__name__,
            "configured": self.is_configured(),
            "supports_lookup": type(self).get_by_id is not BaseProvider.get_by_id,
        }
