"""
Church Ingestion
================

Fetches church records from providers, collapses duplicates and writes them
to the listing store.
"""

from church_directory.ingestion.dedupe import dedupe_batch, dedupe_key, slugify, unique_slug
from church_directory.ingestion.service import (
    MAX_BATCH_LOCATIONS,
    MAX_IMPORT_RECORDS,
    ChurchIngestionService,
    IngestionConfig,
)

__all__ = [
    "ChurchIngestionService",
    "IngestionConfig",
    "MAX_BATCH_LOCATIONS",
    "MAX_IMPORT_RECORDS",
    "dedupe_batch",
    "dedupe_key",
    "slugify",
    "unique_slug",
]
