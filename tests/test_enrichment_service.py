"""Tests for the church enrichment service and queue processing."""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from church_directory.core.enums import EnrichmentStatus
from church_directory.core.schema import (
    Church,
    ExtractedInfo,
    RawChurch,
    SearchParams,
    SearchResult,
    ServiceTime,
)
from church_directory.db.models import Base
from church_directory.db.repositories import ChurchRepository, EnrichmentQueueRepository
from church_directory.ingestion.service import ChurchIngestionService, IngestionConfig
from church_directory.providers.base import BaseProvider
from church_directory.providers.manager import ProviderManager, ProviderManagerConfig
from church_directory.services.ai.client import AIClient, AIClientError, AIProvider
from church_directory.services.enrichment import (
    ChurchEnrichmentService,
    EnrichmentConfig,
    merge_enrichment,
)
from church_directory.services.website import WebsiteFetcher, WebsiteFetchError


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def engine(temp_db_path):
    """Create a test database engine."""
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, echo=False)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


SAMPLE_EXTRACTION = {
    "denomination": "Methodist",
    "worshipStyle": ["Contemporary"],
    "service_times": [{"day": "Sunday", "time": "10:00 AM"}],
    "has_kids_ministry": True,
    "pastor_name": "Rev. Jane Doe",
    "year_founded": 1952,
}


class StubAIClient(AIClient):
    """AI client answering each prompt kind with a canned response."""

    provider = AIProvider.ANTHROPIC
    model = "stub-model"

    def __init__(
        self,
        extraction: str = json.dumps(SAMPLE_EXTRACTION),
        description: str = "A welcoming congregation.",
        what_to_expect: str = "Casual dress, about an hour.",
        combined: str = '{"description": "Combined description.", "what_to_expect": "Combined guide."}',
        fail_on: tuple[str, ...] = (),
    ) -> None:
        self.responses = {
            "extraction": extraction,
            "description": description,
            "what_to_expect": what_to_expect,
            "combined": combined,
        }
        self.fail_on = fail_on
        self.calls: list[str] = []

    def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        if prompt.startswith("Extract structured information"):
            kind = "extraction"
        elif prompt.startswith("Generate content"):
            kind = "combined"
        elif "What to Expect" in prompt:
            kind = "what_to_expect"
        else:
            kind = "description"
        self.calls.append(kind)
        if kind in self.fail_on:
            raise AIClientError(f"{kind} failed")
        return self.responses[kind]


class StubFetcher:
    """Website fetcher returning fixed text, or failing."""

    def __init__(self, text: str = "Welcome to Grace Chapel. Sunday service at 10am.", fail: bool = False) -> None:
        self.text = text
        self.fail = fail
        self.urls: list[str] = []

    def fetch_text(self, url: str) -> str:
        self.urls.append(url)
        if self.fail:
            raise WebsiteFetchError("Timeout after 10.0s")
        return self.text


def add_church(
    session: Session,
    source_id: str = "g1",
    name: str = "Grace Chapel",
    website: str | None = "https://grace.example.org",
    denomination: str | None = None,
    queue: bool = True,
) -> str:
    """Insert a listing (optionally queued) and return its id."""
    raw = RawChurch(
        name=name,
        city="Springfield",
        state="Illinois",
        state_abbr="IL",
        lat=39.78,
        lng=-89.65,
        website=website,
        denomination=denomination,
        source="google_places",
        source_id=source_id,
    )
    church = ChurchRepository(session).create(raw, source_id)
    if queue:
        EnrichmentQueueRepository(session).enqueue(church.id)
    session.commit()
    return church.id


def make_service(session: Session, ai_client: AIClient | None = None, fetcher=None, sleeps=None, **config):
    recorder = sleeps if sleeps is not None else []
    return ChurchEnrichmentService(
        session,
        ai_client or StubAIClient(),
        fetcher=fetcher if fetcher is not None else StubFetcher(),
        config=EnrichmentConfig(**config),
        sleep=recorder.append,
    )


class TestMergeEnrichment:
    """Tests for merge_enrichment."""

    def _church(self, **kwargs) -> Church:
        return Church(id="c1", slug="c1", name="Grace Chapel", lat=0.0, lng=0.0, **kwargs)

    def test_existing_values_are_kept(self) -> None:
        """Test that extraction never overwrites a stored value."""
        church = self._church(denomination="Baptist")
        extracted = ExtractedInfo(denomination="Methodist", pastor_name="Rev. Jane Doe")

        updates, fields = merge_enrichment(church, extracted, None, None)

        assert "denomination" not in updates
        assert updates == {"pastor_name": "Rev. Jane Doe"}
        assert fields == ["pastor_name"]

    def test_empty_values_are_filled(self) -> None:
        church = self._church(worship_style=[])
        extracted = ExtractedInfo(denomination="Methodist", worship_style=["Traditional"])

        updates, _ = merge_enrichment(church, extracted, None, None)

        assert updates["denomination"] == "Methodist"
        assert updates["worship_style"] == ["Traditional"]

    def test_false_booleans_fill_unknown_only(self) -> None:
        """Test that False is a real value but does not replace a stored True."""
        extracted = ExtractedInfo(has_kids_ministry=False, has_youth_group=False)
        church = self._church(has_youth_group=True)

        updates, _ = merge_enrichment(church, extracted, None, None)

        assert updates == {"has_kids_ministry": False}

    def test_generated_text_always_written(self) -> None:
        church = self._church(ai_description="Old text.")

        updates, fields = merge_enrichment(church, ExtractedInfo(), "New text.", "Guide.")

        assert updates["ai_description"] == "New text."
        assert updates["ai_what_to_expect"] == "Guide."
        assert updates["ai_generated_at"] is not None
        assert fields == ["ai_description", "ai_what_to_expect"]

    def test_nothing_to_write(self) -> None:
        updates, fields = merge_enrichment(self._church(), ExtractedInfo(), None, None)
        assert updates == {}
        assert fields == []


class TestEnrichChurch:
    """Tests for ChurchEnrichmentService.enrich_church."""

    def test_full_enrichment(self, session: Session) -> None:
        """Test that website facts and generated text are written."""
        church_id = add_church(session)
        fetcher = StubFetcher()
        service = make_service(session, fetcher=fetcher)

        result = service.enrich_church(church_id)

        assert result.success is True
        assert fetcher.urls == ["https://grace.example.org"]
        church = ChurchRepository(session).get_by_id(church_id)
        assert church.denomination == "Methodist"
        assert church.worship_style == ["Contemporary"]
        assert church.service_times == [ServiceTime(day="Sunday", time="10:00 AM")]
        assert church.has_kids_ministry is True
        assert church.has_youth_group is None
        assert church.pastor_name == "Rev. Jane Doe"
        assert church.year_founded == 1952
        assert church.ai_description == "A welcoming congregation."
        assert church.ai_what_to_expect == "Casual dress, about an hour."
        assert church.ai_generated_at is not None
        assert "denomination" in result.enriched_fields
        assert EnrichmentQueueRepository(session).get(church_id).status == EnrichmentStatus.COMPLETED

    def test_existing_denomination_is_preserved(self, session: Session) -> None:
        """Test that a stored denomination survives a conflicting extraction."""
        church_id = add_church(session, denomination="Baptist")
        service = make_service(session)

        result = service.enrich_church(church_id)

        church = ChurchRepository(session).get_by_id(church_id)
        assert church.denomination == "Baptist"
        assert church.pastor_name == "Rev. Jane Doe"
        assert "denomination" not in result.enriched_fields

    def test_malformed_ai_output_degrades_gracefully(self, session: Session) -> None:
        """Test that unparseable extraction gives an empty result, not a failure."""
        church_id = add_church(session)
        ai = StubAIClient(extraction="not json at all")
        service = make_service(session, ai_client=ai)

        result = service.enrich_church(church_id)

        assert result.success is True
        church = ChurchRepository(session).get_by_id(church_id)
        assert church.denomination is None
        assert church.ai_description == "A welcoming congregation."
        assert EnrichmentQueueRepository(session).get(church_id).status == EnrichmentStatus.COMPLETED

    def test_website_failure_skips_extraction(self, session: Session) -> None:
        """Test that an unreachable website still allows generation."""
        church_id = add_church(session)
        ai = StubAIClient()
        service = make_service(session, ai_client=ai, fetcher=StubFetcher(fail=True))

        result = service.enrich_church(church_id)

        assert result.success is True
        assert "extraction" not in ai.calls
        assert ai.calls == ["description", "what_to_expect"]
        assert ChurchRepository(session).get_by_id(church_id).ai_description is not None

    def test_malformed_website_url_is_skipped(self, session: Session) -> None:
        """Test that an unusable website URL degrades like any other fetch failure."""
        church_id = add_church(session, website="http://exa mple.org/\x00")

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        fetcher = WebsiteFetcher(
            contact_email="admin@example.org",
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        ai = StubAIClient()
        service = make_service(session, ai_client=ai, fetcher=fetcher)

        result = service.enrich_church(church_id)

        assert result.success is True
        assert "extraction" not in ai.calls
        assert EnrichmentQueueRepository(session).get(church_id).status == EnrichmentStatus.COMPLETED

    def test_no_website_skips_fetch(self, session: Session) -> None:
        church_id = add_church(session, website=None)
        fetcher = StubFetcher()
        service = make_service(session, fetcher=fetcher)

        result = service.enrich_church(church_id)

        assert result.success is True
        assert fetcher.urls == []

    def test_generation_failures_are_isolated(self, session: Session) -> None:
        """Test that a failed description does not block the visitor guide."""
        church_id = add_church(session)
        ai = StubAIClient(fail_on=("description",))
        service = make_service(session, ai_client=ai)

        result = service.enrich_church(church_id)

        assert result.success is True
        church = ChurchRepository(session).get_by_id(church_id)
        assert church.ai_description is None
        assert church.ai_what_to_expect == "Casual dress, about an hour."

    def test_combined_generation(self, session: Session) -> None:
        church_id = add_church(session)
        ai = StubAIClient()
        service = make_service(session, ai_client=ai, combined_generation=True)

        service.enrich_church(church_id)

        church = ChurchRepository(session).get_by_id(church_id)
        assert church.ai_description == "Combined description."
        assert church.ai_what_to_expect == "Combined guide."
        assert ai.calls == ["extraction", "combined"]

    def test_missing_church_marks_failed(self, session: Session) -> None:
        """Test that a queued id with no listing ends up failed."""
        queue = EnrichmentQueueRepository(session)
        queue.enqueue("ghost")
        session.commit()
        service = make_service(session)

        result = service.enrich_church("ghost")

        assert result.success is False
        assert result.error == "Church not found"
        entry = queue.get("ghost")
        assert entry.status == EnrichmentStatus.FAILED
        assert entry.error == "Church not found"

    def test_write_failure_marks_failed(self, session: Session) -> None:
        """Test that a failed listing update is recorded on the queue row."""
        church_id = add_church(session)
        service = make_service(session)

        with patch.object(ChurchRepository, "update_fields", side_effect=RuntimeError("disk full")):
            result = service.enrich_church(church_id)

        assert result.success is False
        assert result.error == "disk full"
        entry = EnrichmentQueueRepository(session).get(church_id)
        assert entry.status == EnrichmentStatus.FAILED
        assert entry.error == "disk full"


class TestProcessQueue:
    """Tests for ChurchEnrichmentService.process_queue."""

    def test_processes_pending_rows(self, session: Session) -> None:
        """Test that a batch moves rows from pending to completed."""
        ids = [add_church(session, source_id=f"g{i}", name=f"Church {i}") for i in range(3)]
        sleeps: list[float] = []
        service = make_service(session, sleeps=sleeps, delay_seconds=0.5)

        results = service.process_queue(batch_size=2)

        assert len(results) == 2
        assert all(r.success for r in results)
        assert {r.church_id for r in results} <= set(ids)
        assert sleeps == [0.5]
        stats = service.get_queue_stats()
        assert (stats.pending, stats.processing, stats.completed, stats.failed) == (1, 0, 2, 0)

    def test_empty_queue(self, session: Session) -> None:
        assert make_service(session).process_queue() == []

    def test_rows_claimed_elsewhere_are_skipped(self, session: Session) -> None:
        """Test that a row another worker claimed first is not processed."""
        first = add_church(session, source_id="g1", name="Church 1")
        second = add_church(session, source_id="g2", name="Church 2")
        queue = EnrichmentQueueRepository(session)
        stale = queue.list_pending(10)
        assert queue.claim(first) is True
        session.commit()
        service = make_service(session)

        with patch.object(EnrichmentQueueRepository, "list_pending", return_value=stale):
            results = service.process_queue(10)

        assert [r.church_id for r in results] == [second]
        assert queue.get(first).status == EnrichmentStatus.PROCESSING

    def test_failures_recorded_and_retried(self, session: Session) -> None:
        """Test the failed to pending retry path."""
        church_id = add_church(session)
        service = make_service(session)

        with patch.object(ChurchRepository, "update_fields", side_effect=RuntimeError("disk full")):
            results = service.process_queue()

        assert results[0].success is False
        assert service.get_queue_stats().failed == 1

        assert service.retry_failed() == 1
        entry = EnrichmentQueueRepository(session).get(church_id)
        assert entry.status == EnrichmentStatus.PENDING
        assert entry.error is None

        results = service.process_queue()
        assert results[0].success is True
        assert service.get_queue_stats().completed == 1

    def test_batch_size_is_capped(self, session: Session) -> None:
        service = make_service(session, max_batch_size=2)
        for i in range(3):
            add_church(session, source_id=f"g{i}", name=f"Church {i}")

        assert len(service.process_queue(batch_size=100)) == 2


class StubProvider(BaseProvider):
    """Provider serving one fixed record."""

    PROVIDER_NAME = "stub"

    def is_configured(self) -> bool:
        return True

    def search(self, params: SearchParams) -> SearchResult:
        church = RawChurch(
            name="Grace Chapel",
            city="Springfield",
            state="Illinois",
            state_abbr="IL",
            lat=40.0,
            lng=-75.0,
            website="https://grace.example.org",
            source="stub",
            source_id="g1",
        )
        return SearchResult(churches=[church])


class TestImportThenEnrich:
    """End-to-end import followed by queue processing."""

    def test_import_then_enrich(self, session: Session) -> None:
        manager = ProviderManager(ProviderManagerConfig(default_provider="stub"), providers=[StubProvider()])
        ingestion = ChurchIngestionService(session, manager, IngestionConfig(), sleep=lambda s: None)

        imported = ingestion.import_from_provider(SearchParams(city="Springfield", state="IL"))

        assert imported.imported == 1
        church = ChurchRepository(session).get_by_source("stub", "g1")
        assert church.slug == "grace-chapel"
        queue = EnrichmentQueueRepository(session)
        assert queue.get(church.id).status == EnrichmentStatus.PENDING

        ai = StubAIClient(
            combined='{"description": "Grace Chapel is a friendly church.", "what_to_expect": "Coffee at 9."}'
        )
        enrichment = make_service(session, ai_client=ai, combined_generation=True)
        results = enrichment.process_queue(1)

        assert [r.success for r in results] == [True]
        assert queue.get(church.id).status == EnrichmentStatus.COMPLETED
        enriched = ChurchRepository(session).get_by_id(church.id)
        assert enriched.ai_description == "Grace Chapel is a friendly church."
        assert enriched.ai_what_to_expect == "Coffee at 9."
