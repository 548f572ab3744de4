"""
Church Enrichment Service
=========================

Works through the enrichment queue: fetches each church's website, asks the
AI to extract structured facts and write visitor-facing copy, and merges the
results into the listing without overwriting values that are already set.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from church_directory.config import Settings
from church_directory.core.schema import (
    Church,
    ChurchContext,
    EnrichmentResult,
    ExtractedInfo,
    QueueStats,
)
from church_directory.db.repositories import ChurchRepository, EnrichmentQueueRepository
from church_directory.services.ai.client import AIClient
from church_directory.services.website import WebsiteFetcher, WebsiteFetchError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50

# Extracted fields that are only written when the listing has no value yet
_FILL_IF_EMPTY = (
    "denomination",
    "worship_style",
    "service_times",
    "has_kids_ministry",
    "has_youth_group",
    "has_small_groups",
    "pastor_name",
    "year_founded",
)


@dataclass
class EnrichmentConfig:
    """Tunables for the enrichment worker."""

    delay_seconds: float = 0.5
    combined_generation: bool = False
    max_batch_size: int = MAX_BATCH_SIZE

    @classmethod
    def from_settings(cls, settings: Settings) -> EnrichmentConfig:
        return cls(
            delay_seconds=settings.enrichment_delay_seconds,
            combined_generation=settings.combined_generation,
        )


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def merge_enrichment(
    church: Church,
    extracted: ExtractedInfo,
    description: str | None,
    what_to_expect: str | None,
) -> tuple[dict[str, Any], list[str]]:
    """
    Decide which fields to write for an enrichment run.

    Extracted facts only fill fields the listing does not have yet. The
    generated description and visitor guide replace previous ones, and
    `ai_generated_at` is refreshed whenever either was generated.

    Returns:
        (fields to write, names of the fields written)
    """
    updates: dict[str, Any] = {}

    for field in _FILL_IF_EMPTY:
        new_value = getattr(extracted, field)
        if _is_empty(new_value):
            continue
        if _is_empty(getattr(church, field)):
            updates[field] = new_value

    if description:
        updates["ai_description"] = description
    if what_to_expect:
        updates["ai_what_to_expect"] = what_to_expect
    if description or what_to_expect:
        updates["ai_generated_at"] = datetime.now(UTC)

    return updates, [k for k in updates if k != "ai_generated_at"]


class ChurchEnrichmentService:
    """Enriches church listings with website facts and AI-written copy."""

    def __init__(
        self,
        session: Session,
        ai_client: AIClient,
        fetcher: WebsiteFetcher | None = None,
        config: EnrichmentConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the enrichment service.

        Args:
            session: SQLAlchemy database session.
            ai_client: AI client used for extraction and generation.
            fetcher: Website fetcher; without one, websites are not read.
            config: Worker tunables.
            sleep: Delay function between queue items.
        """
        self.session = session
        self.ai_client = ai_client
        self.fetcher = fetcher
        self.config = config or EnrichmentConfig()
        self._sleep = sleep
        self.churches = ChurchRepository(session)
        self.queue = EnrichmentQueueRepository(session)

    def enrich_church(self, church_id: str) -> EnrichmentResult:
        """
        Enrich one church and record the outcome on its queue row.

        Website, extraction and generation failures degrade gracefully; only
        a missing listing or a failed write marks the row failed.

        Args:
            church_id: The listing ID.

        Returns:
            EnrichmentResult listing the fields that were written.
        """
        try:
            church = self.churches.get_by_id(church_id)
            if church is None:
                self._mark_failed(church_id, "Church not found")
                return EnrichmentResult(success=False, church_id=church_id, error="Church not found")

            website_content = self._fetch_website(church)
            context = ChurchContext(
                name=church.name,
                city=church.city,
                state=church.state,
                denomination=church.denomination,
                website=church.website,
                website_content=website_content,
            )

            extracted = self._extract(context, website_content)
            description, what_to_expect = self._generate(context)
            updates, enriched_fields = merge_enrichment(church, extracted, description, what_to_expect)

            self.churches.update_fields(church.id, updates)
            self.queue.mark_completed(church.id)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.exception(f"Enrichment failed for church {church_id}")
            self._mark_failed(church_id, str(e))
            return EnrichmentResult(success=False, church_id=church_id, error=str(e))

        logger.info(f"Enriched {church.name}: {', '.join(enriched_fields) or 'no new fields'}")
        return EnrichmentResult(success=True, church_id=church_id, enriched_fields=enriched_fields)

    def process_queue(self, batch_size: int = 10) -> list[EnrichmentResult]:
        """
        Enrich the oldest pending churches.

        Rows are claimed one at a time with a conditional update; rows another
        worker claimed first are skipped. Claimed rows are processed in order
        with a delay between them.

        Args:
            batch_size: Maximum rows to take (capped at max_batch_size).

        Returns:
            One EnrichmentResult per claimed row.
        """
        batch_size = max(1, min(batch_size, self.config.max_batch_size))
        pending = self.queue.list_pending(batch_size)
        if not pending:
            return []

        claimed = [entry.church_id for entry in pending if self.queue.claim(entry.church_id)]
        self.session.commit()
        if len(claimed) < len(pending):
            logger.info(f"Skipped {len(pending) - len(claimed)} rows claimed by another worker")

        results: list[EnrichmentResult] = []
        for i, church_id in enumerate(claimed):
            if i > 0 and self.config.delay_seconds > 0:
                self._sleep(self.config.delay_seconds)
            results.append(self.enrich_church(church_id))
        return results

    def retry_failed(self, limit: int = 100) -> int:
        """Move up to `limit` failed rows back to pending. Returns the count."""
        count = self.queue.retry_failed(limit)
        self.session.commit()
        logger.info(f"Reset {count} failed enrichment rows to pending")
        return count

    def get_queue_stats(self) -> QueueStats:
        return self.queue.stats()

    def _fetch_website(self, church: Church) -> str | None:
        if not church.website or self.fetcher is None:
            return None
        try:
            return self.fetcher.fetch_text(church.website) or None
        except WebsiteFetchError as e:
            logger.warning(f"Failed to fetch website for {church.name}: {e}")
            return None

    def _extract(self, context: ChurchContext, website_content: str | None) -> ExtractedInfo:
        if not website_content:
            return ExtractedInfo()
        try:
            return self.ai_client.extract_church_info(context, website_content)
        except Exception as e:
            logger.warning(f"Failed to extract info for {context.name}: {e}")
            return ExtractedInfo()

    def _generate(self, context: ChurchContext) -> tuple[str | None, str | None]:
        if self.config.combined_generation:
            try:
                combined = self.ai_client.generate_combined_enrichment(context)
            except Exception as e:
                logger.warning(f"Failed to generate content for {context.name}: {e}")
                return None, None
            return combined.description or None, combined.what_to_expect or None

        description = None
        try:
            description = self.ai_client.generate_description(context) or None
        except Exception as e:
            logger.warning(f"Failed to generate description for {context.name}: {e}")

        what_to_expect = None
        try:
            what_to_expect = self.ai_client.generate_what_to_expect(context) or None
        except Exception as e:
            logger.warning(f"Failed to generate what to expect for {context.name}: {e}")

        return description, what_to_expect

    def _mark_failed(self, church_id: str, error: str) -> None:
        try:
            self.queue.mark_failed(church_id, error)
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"Could not mark church {church_id} failed: {e}")
