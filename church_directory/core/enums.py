"""Enums for church directory fields."""

from enum import Enum


class ProviderName(str, Enum):
    """Registered external data providers."""

    GOOGLE_PLACES = "google_places"
    OPENSTREETMAP = "openstreetmap"


class EnrichmentStatus(str, Enum):
    """Status of an enrichment queue entry."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
