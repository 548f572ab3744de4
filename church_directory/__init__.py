"""Church Directory - listing ingestion and AI enrichment."""

__version__ = "0.1.0"
