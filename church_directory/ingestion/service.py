"""
Church Ingestion Service
========================

Pulls church records from a provider (or a caller-supplied list), collapses
duplicates, checks which records are already stored, and writes the rest.
New listings are queued for AI enrichment.

Each record is committed on its own so one bad record never aborts a batch.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from church_directory.config import Settings
from church_directory.core.schema import (
    BatchImportResult,
    BatchLocation,
    BatchLocationResult,
    ImportedChurch,
    IngestionOptions,
    IngestionResult,
    RawChurch,
    SearchParams,
    SingleImportResult,
)
from church_directory.db.repositories import ChurchRepository, EnrichmentQueueRepository
from church_directory.ingestion.dedupe import dedupe_batch, unique_slug
from church_directory.providers.base import ProviderNotConfiguredError, SearchValidationError
from church_directory.providers.manager import ProviderManager

logger = logging.getLogger(__name__)

MAX_IMPORT_RECORDS = 500
MAX_BATCH_LOCATIONS = 50
DRY_RUN_ID = "dry-run"


@dataclass
class IngestionConfig:
    """Tunables for an ingestion run."""

    max_records: int = MAX_IMPORT_RECORDS
    page_delay_seconds: float = 2.0
    location_delay_seconds: float = 1.0
    max_batch_locations: int = MAX_BATCH_LOCATIONS

    @classmethod
    def from_settings(cls, settings: Settings) -> IngestionConfig:
        return cls(
            page_delay_seconds=settings.page_delay_seconds,
            location_delay_seconds=settings.location_delay_seconds,
        )


class ChurchIngestionService:
    """Imports provider records into the listing store."""

    def __init__(
        self,
        session: Session,
        providers: ProviderManager,
        config: IngestionConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the service.

        Args:
            session: Database session; the service commits per record.
            providers: Provider manager used for fetching.
            config: Ingestion tunables.
            sleep: Delay function between pages and locations.
        """
        self.session = session
        self.providers = providers
        self.config = config or IngestionConfig()
        self._sleep = sleep
        self.churches = ChurchRepository(session)
        self.queue = EnrichmentQueueRepository(session)

    def fetch_all(self, params: SearchParams, provider: str | None = None) -> list[RawChurch]:
        """
        Fetch every page of results for a search, up to the record cap.

        The cap is `max_records`, or `params.limit` when that is smaller.
        Pages are requested one at a time with a delay between them.
        """
        cap = self.config.max_records
        if params.limit:
            cap = min(cap, params.limit)

        page = self.providers.search(params, provider)
        records = list(page.churches)
        token = page.next_page_token
        pages = 1

        while token and len(records) < cap:
            if self.config.page_delay_seconds > 0:
                self._sleep(self.config.page_delay_seconds)
            page = self.providers.search(params.model_copy(update={"page_token": token}), provider)
            records.extend(page.churches)
            token = page.next_page_token
            pages += 1

        logger.info(
            f"Fetched {len(records)} records in {pages} page(s) for {params.describe()}"
        )
        return records[:cap]

    def import_from_provider(
        self,
        params: SearchParams,
        provider: str | None = None,
        options: IngestionOptions | None = None,
    ) -> IngestionResult:
        """
        Import churches near a location from a provider.

        Args:
            params: Location to search (city/state or lat/lng).
            provider: Provider name, or None for the default.
            options: Duplicate handling, enrichment queueing and dry-run flags.

        Returns:
            IngestionResult with counts and per-record details.

        Raises:
            SearchValidationError: If no location was given.
            ProviderNotConfiguredError: If the provider is not registered.
            ProviderError: If the provider request fails.
        """
        if not params.has_city_state and not params.has_coordinates:
            raise SearchValidationError("Must provide either city/state or lat/lng coordinates")
        # Fail on an unknown provider before any network activity
        self.providers.get_provider(provider)

        records = self.fetch_all(params, provider)
        return self._ingest(records, options or IngestionOptions())

    def import_raw_data(
        self,
        records: Iterable[RawChurch],
        options: IngestionOptions | None = None,
    ) -> IngestionResult:
        """Import caller-supplied records with the same rules as a provider import."""
        return self._ingest(list(records), options or IngestionOptions())

    def import_single_church(
        self,
        source_id: str,
        provider: str | None = None,
        options: IngestionOptions | None = None,
    ) -> SingleImportResult:
        """
        Fetch one church by provider id and insert or update it.

        The listing is queued for enrichment unless `queue_enrichment` is off.

        Raises:
            ProviderNotConfiguredError: If the provider is not registered.
        """
        options = options or IngestionOptions()
        self.providers.get_provider(provider)

        try:
            raw = self.providers.get_by_id(source_id, provider)
            if raw is None:
                return SingleImportResult(success=False, error="Church not found")

            existing = self.churches.get_by_source(raw.source, raw.source_id)

            if options.dry_run:
                slug = existing.slug if existing else self._new_slug(raw, set())
                return SingleImportResult(
                    success=True,
                    church=ImportedChurch(id=DRY_RUN_ID, name=raw.name, slug=slug),
                )

            if existing:
                church = self.churches.update_from_raw(existing.id, raw)
            else:
                church = self.churches.create(raw, self._new_slug(raw, set()))

            if options.queue_enrichment:
                self.queue.enqueue(church.id)
            self.session.commit()
        except ProviderNotConfiguredError:
            raise
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Failed to import {source_id}")
            return SingleImportResult(success=False, error=str(e))

        return SingleImportResult(
            success=True,
            church=ImportedChurch(id=church.id, name=church.name, slug=church.slug),
        )

    def import_batch(
        self,
        locations: list[BatchLocation],
        provider: str | None = None,
        limit_per_location: int | None = 50,
        options: IngestionOptions | None = None,
        delay_seconds: float | None = None,
    ) -> BatchImportResult:
        """
        Import several city/state locations in sequence.

        A failing location is recorded and the rest still run.

        Raises:
            ValueError: If no locations, or too many, are given.
            ProviderNotConfiguredError: If the provider is not registered.
        """
        if not locations:
            raise ValueError("Must provide locations array with city/state objects")
        if len(locations) > self.config.max_batch_locations:
            raise ValueError(
                f"Maximum {self.config.max_batch_locations} locations per batch request"
            )
        self.providers.get_provider(provider)

        delay = self.config.location_delay_seconds if delay_seconds is None else delay_seconds
        batch = BatchImportResult(locations_processed=len(locations))

        for i, loc in enumerate(locations):
            label = f"{loc.city}, {loc.state}"
            params = SearchParams(
                city=loc.city,
                state=loc.state,
                radius_miles=loc.radius_miles,
                limit=limit_per_location,
            )
            try:
                result = self.import_from_provider(params, provider, options)
            except Exception as e:
                logger.error(f"Batch import failed for {label}: {e}")
                batch.results.append(BatchLocationResult(location=label, success=False, error=str(e)))
                batch.total_errors += 1
            else:
                batch.results.append(BatchLocationResult(location=label, success=True, result=result))
                batch.total_imported += result.imported
                batch.total_skipped += result.skipped
                batch.total_errors += result.errors

            if i < len(locations) - 1 and delay > 0:
                self._sleep(delay)

        return batch

    def get_stats(self) -> dict[str, object]:
        """Return listing totals, counts per source and pending enrichment."""
        return {
            "total_churches": self.churches.count(),
            "by_source": self.churches.counts_by_source(),
            "pending_enrichment": self.queue.stats().pending,
        }

    def _ingest(self, records: list[RawChurch], options: IngestionOptions) -> IngestionResult:
        result = IngestionResult()
        batch = dedupe_batch(records)
        if len(batch) < len(records):
            logger.info(f"Collapsed {len(records) - len(batch)} in-batch duplicates")

        existing: dict[tuple[str, str], str] = {}
        if options.skip_duplicates or options.update_existing:
            existing = self._existing_ids(batch)

        batch_slugs: set[str] = set()

        for raw in batch:
            existing_id = existing.get((raw.source, raw.source_id))

            if existing_id and not options.update_existing:
                result.skipped += 1
                continue

            try:
                if options.dry_run:
                    if existing_id:
                        slug = self.churches.get_by_id(existing_id).slug
                        result.updated += 1
                    else:
                        slug = self._new_slug(raw, batch_slugs)
                    result.imported += 1
                    result.churches.append(ImportedChurch(id=DRY_RUN_ID, name=raw.name, slug=slug))
                    continue

                if existing_id:
                    church = self.churches.update_from_raw(existing_id, raw)
                    result.updated += 1
                else:
                    church = self.churches.create(raw, self._new_slug(raw, batch_slugs))
                    if options.queue_enrichment:
                        self.queue.enqueue(church.id)
                self.session.commit()
            except Exception as e:
                self.session.rollback()
                logger.exception(f"Failed to import {raw.name} ({raw.source}:{raw.source_id})")
                result.record_error(raw.name, str(e))
                continue

            result.imported += 1
            result.churches.append(ImportedChurch(id=church.id, name=church.name, slug=church.slug))

        logger.info(
            f"Import finished: {result.imported} imported ({result.updated} updated), "
            f"{result.skipped} skipped, {result.errors} errors"
        )
        return result

    def _existing_ids(self, records: list[RawChurch]) -> dict[tuple[str, str], str]:
        """Look up stored listings for the batch, one query per source."""
        by_source: dict[str, list[str]] = defaultdict(list)
        for raw in records:
            by_source[raw.source].append(raw.source_id)

        existing: dict[tuple[str, str], str] = {}
        for source, source_ids in by_source.items():
            for source_id, church_id in self.churches.find_existing(source, source_ids).items():
                existing[(source, source_id)] = church_id
        return existing

    def _new_slug(self, raw: RawChurch, batch_slugs: set[str]) -> str:
        slug = unique_slug(
            raw.name,
            raw.city,
            lambda s: s in batch_slugs or self.churches.slug_exists(s),
        )
        batch_slugs.add(slug)
        return slug
