"""
Church Data Providers
=====================

External place-search sources normalized into RawChurch records.

To add a new provider:
1. Subclass BaseProvider and implement search (and get_by_id if supported)
2. Register it with ProviderManager, either via configuration or by
   passing an instance in `providers=`
"""

from church_directory.providers.base import (
    BaseProvider,
    ProviderError,
    ProviderHTTPError,
    ProviderNotConfiguredError,
    SearchValidationError,
    UnsupportedOperationError,
)
from church_directory.providers.google_places import GooglePlacesConfig, GooglePlacesProvider
from church_directory.providers.manager import ProviderManager, ProviderManagerConfig
from church_directory.providers.openstreetmap import OpenStreetMapConfig, OpenStreetMapProvider

__all__ = [
    # Base classes and errors
    "BaseProvider",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderNotConfiguredError",
    "SearchValidationError",
    "UnsupportedOperationError",
    # Concrete providers
    "GooglePlacesConfig",
    "GooglePlacesProvider",
    "OpenStreetMapConfig",
    "OpenStreetMapProvider",
    # Manager
    "ProviderManager",
    "ProviderManagerConfig",
]
