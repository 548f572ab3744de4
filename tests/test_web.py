"""Tests for the admin API routes."""

import json
import tempfile
from contextlib import contextmanager
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from church_directory.config import Settings
from church_directory.core.enums import EnrichmentStatus
from church_directory.core.schema import RawChurch, SearchParams, SearchResult
from church_directory.db.models import Base
from church_directory.db.repositories import ChurchRepository, EnrichmentQueueRepository
from church_directory.providers.base import BaseProvider, ProviderHTTPError
from church_directory.providers.manager import ProviderManager, ProviderManagerConfig
from church_directory.providers.openstreetmap import OpenStreetMapConfig, OpenStreetMapProvider
from church_directory.services.ai.client import AIClient, AIProvider

AUTH = {"Authorization": "Bearer secret"}

TEST_SETTINGS = Settings(
    admin_api_key="secret",
    default_provider="stub",
    page_delay_seconds=0,
    location_delay_seconds=0,
    enrichment_delay_seconds=0,
    combined_generation=True,
)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def test_engine(temp_db_path):
    """Create a test database engine."""
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, echo=False, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session(test_engine):
    """Create a database session for testing."""
    SessionLocal = sessionmaker(bind=test_engine)
    session = SessionLocal()
    yield session
    session.close()


class StubProvider(BaseProvider):
    """Provider returning two churches per city, failing for "Nowhere"."""

    PROVIDER_NAME = "stub"

    def is_configured(self) -> bool:
        return True

    def search(self, params: SearchParams) -> SearchResult:
        if params.city == "Nowhere":
            raise ProviderHTTPError(self.name, 500, "upstream down")
        city = params.city or "Springfield"
        return SearchResult(
            churches=[
                RawChurch(name=f"Grace Chapel {city}", city=city, lat=40.0, lng=-75.0, source="stub", source_id=f"{city}-1"),
                RawChurch(name=f"First Baptist {city}", city=city, lat=40.1, lng=-75.1, source="stub", source_id=f"{city}-2"),
            ]
        )


class StubAIClient(AIClient):
    """AI client returning fixed combined JSON for every prompt."""

    provider = AIProvider.ANTHROPIC
    model = "stub-model"

    def complete(self, prompt: str, max_tokens: int = 1000) -> str:
        return json.dumps({"description": "A friendly church.", "what_to_expect": "Come as you are."})


class StubFetcher:
    def fetch_text(self, url: str) -> str:
        return ""


def build_client(test_engine, monkeypatch, ai_client=None) -> TestClient:
    """Create a test client over the test database with stubbed services."""
    TestSessionLocal = sessionmaker(bind=test_engine)

    @contextmanager
    def mock_get_session():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr("church_directory.web.routes.admin.get_session", mock_get_session)
    monkeypatch.setattr("church_directory.web.app.init_db", lambda: None)

    from church_directory.web.app import create_app
    from church_directory.web.dependencies import (
        get_app_settings,
        get_enrichment_ai_client,
        get_provider_manager,
        get_website_fetcher,
    )

    app = create_app()
    app.dependency_overrides[get_app_settings] = lambda: TEST_SETTINGS
    app.dependency_overrides[get_provider_manager] = lambda: ProviderManager(
        ProviderManagerConfig(default_provider="stub"), providers=[StubProvider()]
    )
    app.dependency_overrides[get_enrichment_ai_client] = lambda: ai_client
    app.dependency_overrides[get_website_fetcher] = lambda: StubFetcher()
    return TestClient(app)


@pytest.fixture
def client(test_engine, monkeypatch):
    """Create a test client with an AI provider configured."""
    return build_client(test_engine, monkeypatch, ai_client=StubAIClient())


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAdminAuth:
    """Tests for bearer token enforcement."""

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/api/admin/import")
        assert response.status_code == 401

    def test_wrong_token(self, client: TestClient) -> None:
        response = client.get("/api/admin/enrich", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_no_admin_key_configured(self, client: TestClient) -> None:
        """Test that an unset admin key rejects every request."""
        from church_directory.web.dependencies import get_app_settings

        client.app.dependency_overrides[get_app_settings] = lambda: Settings(admin_api_key="")

        response = client.post("/api/admin/import", json={"city": "Austin", "state": "TX"}, headers=AUTH)
        assert response.status_code == 401


class TestImportRoutes:
    """Tests for /api/admin/import."""

    def test_import(self, client: TestClient, test_session) -> None:
        response = client.post(
            "/api/admin/import",
            json={"city": "Springfield", "state": "IL"},
            headers=AUTH,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["dry_run"] is False
        assert data["location"] == "Springfield, IL"
        assert data["result"]["imported"] == 2
        assert ChurchRepository(test_session).count() == 2
        assert EnrichmentQueueRepository(test_session).stats().pending == 2

    def test_import_twice_skips(self, client: TestClient) -> None:
        body = {"city": "Springfield", "state": "IL"}
        client.post("/api/admin/import", json=body, headers=AUTH)

        data = client.post("/api/admin/import", json=body, headers=AUTH).json()

        assert data["result"]["imported"] == 0
        assert data["result"]["skipped"] == 2

    def test_import_missing_location(self, client: TestClient) -> None:
        response = client.post("/api/admin/import", json={"city": "Springfield"}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Must provide either city/state or lat/lng coordinates"

    def test_import_without_body(self, client: TestClient) -> None:
        response = client.post("/api/admin/import", headers=AUTH)
        assert response.status_code == 400

    def test_import_unknown_provider(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/import",
            json={"city": "Springfield", "state": "IL", "provider": "google_places"},
            headers=AUTH,
        )

        assert response.status_code == 400
        assert response.json()["available_providers"] == ["stub"]

    def test_import_provider_failure(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/import",
            json={"city": "Nowhere", "state": "IL"},
            headers=AUTH,
        )

        assert response.status_code == 502
        assert "upstream down" in response.json()["details"]

    def test_import_provider_unreachable(self, client: TestClient) -> None:
        """Test that a transport failure inside a provider is a 502, not a 500."""
        from church_directory.web.dependencies import get_provider_manager

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        osm = OpenStreetMapProvider(
            OpenStreetMapConfig(user_agent="ChurchDirectoryTest/1.0"),
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        )
        client.app.dependency_overrides[get_provider_manager] = lambda: ProviderManager(
            ProviderManagerConfig(default_provider="openstreetmap"), providers=[osm]
        )

        response = client.post(
            "/api/admin/import",
            json={"city": "Springfield", "state": "IL"},
            headers=AUTH,
        )

        assert response.status_code == 502
        assert "connection refused" in response.json()["details"]

    def test_import_dry_run(self, client: TestClient, test_session) -> None:
        data = client.post(
            "/api/admin/import",
            json={"lat": 40.0, "lng": -75.0, "dry_run": True},
            headers=AUTH,
        ).json()

        assert data["dry_run"] is True
        assert data["result"]["imported"] == 2
        assert ChurchRepository(test_session).count() == 0

    def test_import_stats(self, client: TestClient) -> None:
        client.post("/api/admin/import", json={"city": "Springfield", "state": "IL"}, headers=AUTH)

        data = client.get("/api/admin/import", headers=AUTH).json()

        assert data["available_providers"] == ["stub"]
        assert data["stats"]["total_churches"] == 2
        assert data["stats"]["by_source"] == {"stub": 2}
        assert data["stats"]["pending_enrichment"] == 2


class TestBatchImportRoute:
    """Tests for /api/admin/import/batch."""

    def test_batch(self, client: TestClient) -> None:
        response = client.post(
            "/api/admin/import/batch",
            json={
                "locations": [
                    {"city": "Springfield", "state": "IL"},
                    {"city": "Nowhere", "state": "IL"},
                    {"city": "Peoria", "state": "IL"},
                ],
                "delay_between_seconds": 0,
            },
            headers=AUTH,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["summary"] == {
            "locations_processed": 3,
            "total_imported": 4,
            "total_skipped": 0,
            "total_errors": 1,
        }
        assert [r["success"] for r in data["results"]] == [True, False, True]

    def test_batch_empty(self, client: TestClient) -> None:
        response = client.post("/api/admin/import/batch", json={"locations": []}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Must provide locations array with city/state objects"

    def test_batch_too_many(self, client: TestClient) -> None:
        locations = [{"city": f"City {i}", "state": "IL"} for i in range(51)]

        response = client.post("/api/admin/import/batch", json={"locations": locations}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "Maximum 50 locations per batch request"


class TestEnrichRoutes:
    """Tests for /api/admin/enrich."""

    def _import(self, client: TestClient) -> None:
        client.post("/api/admin/import", json={"city": "Springfield", "state": "IL"}, headers=AUTH)

    def test_process_queue(self, client: TestClient) -> None:
        self._import(client)

        response = client.post("/api/admin/enrich", json={"batch_size": 5}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 2
        assert data["successful"] == 2
        assert data["failed"] == 0

    def test_enrich_single_church(self, client: TestClient, test_session) -> None:
        self._import(client)
        church = ChurchRepository(test_session).get_by_source("stub", "Springfield-1")

        data = client.post("/api/admin/enrich", json={"church_id": church.id}, headers=AUTH).json()

        assert data["success"] is True
        assert data["result"]["church_id"] == church.id
        test_session.expire_all()
        assert EnrichmentQueueRepository(test_session).get(church.id).status == EnrichmentStatus.COMPLETED
        assert ChurchRepository(test_session).get_by_id(church.id).ai_description == "A friendly church."

    def test_enrich_stats(self, client: TestClient) -> None:
        self._import(client)

        data = client.get("/api/admin/enrich", headers=AUTH).json()

        assert data["ai_provider"] == "anthropic"
        assert data["queue"] == {"pending": 2, "processing": 0, "completed": 0, "failed": 0}

    def test_retry_failed(self, client: TestClient, test_session) -> None:
        self._import(client)
        queue = EnrichmentQueueRepository(test_session)
        for church_id in ChurchRepository(test_session).find_existing("stub", ["Springfield-1", "Springfield-2"]).values():
            queue.mark_failed(church_id, "boom")
        test_session.commit()

        data = client.put("/api/admin/enrich", json={"limit": 1}, headers=AUTH).json()

        assert data == {"success": True, "retried_count": 1}

    def test_no_ai_provider(self, test_engine, monkeypatch) -> None:
        """Test that enrichment without an AI key is a server error."""
        client = build_client(test_engine, monkeypatch, ai_client=None)

        response = client.post("/api/admin/enrich", json={}, headers=AUTH)

        assert response.status_code == 500
        assert client.get("/api/admin/enrich", headers=AUTH).json()["ai_provider"] == "none"
