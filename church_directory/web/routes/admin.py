"""Admin API routes for church import and AI enrichment.

Every route requires `Authorization: Bearer <ADMIN_API_KEY>`.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from church_directory.config import Settings
from church_directory.core.schema import (
    BatchImportRequest,
    EnrichRequest,
    ImportRequest,
    IngestionOptions,
    RetryRequest,
)
from church_directory.db.engine import get_session
from church_directory.ingestion.service import (
    MAX_BATCH_LOCATIONS,
    ChurchIngestionService,
    IngestionConfig,
)
from church_directory.providers.base import (
    ProviderError,
    ProviderNotConfiguredError,
    SearchValidationError,
)
from church_directory.services.ai.client import AIClient
from church_directory.services.enrichment import (
    MAX_BATCH_SIZE,
    ChurchEnrichmentService,
    EnrichmentConfig,
)
from church_directory.services.website import WebsiteFetcher
from church_directory.web.dependencies import (
    AIClientDep,
    ProviderManagerDep,
    SettingsDep,
    WebsiteFetcherDep,
    require_admin,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def _validation_message(e: ValidationError) -> str:
    """First validation error as a plain message."""
    first = e.errors()[0]
    message = first.get("msg", str(e))
    # model_validator errors are prefixed by pydantic
    return message.removeprefix("Value error, ")


def _unconfigured_provider(name: str | None, available: list[str]) -> JSONResponse:
    return _error(
        f"Provider {name or 'default'} not configured",
        400,
        available_providers=available,
    )


# ============================================================================
# Import
# ============================================================================


@router.post("/import")
def import_churches(
    settings: SettingsDep,
    providers: ProviderManagerDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> JSONResponse:
    """Import churches near a city/state or coordinates from a provider."""
    try:
        req = ImportRequest.model_validate(payload or {})
    except ValidationError as e:
        return _error(_validation_message(e), 400)

    if req.provider and not providers.is_available(req.provider):
        return _unconfigured_provider(req.provider, providers.list_available())

    params = req.to_search_params()
    with get_session() as session:
        service = ChurchIngestionService(
            session, providers, IngestionConfig.from_settings(settings)
        )
        try:
            result = service.import_from_provider(params, req.provider, req.to_options())
        except ProviderNotConfiguredError:
            return _unconfigured_provider(req.provider, providers.list_available())
        except SearchValidationError as e:
            return _error(str(e), 400)
        except ProviderError as e:
            logger.error(f"Import failed: {e}")
            return _error("Import failed", 502, details=str(e))

    return JSONResponse({
        "success": True,
        "dry_run": req.dry_run,
        "provider": req.provider or "default",
        "location": params.describe(),
        "result": result.model_dump(mode="json"),
    })


@router.get("/import")
def import_stats(providers: ProviderManagerDep) -> JSONResponse:
    """Available providers and listing counts."""
    with get_session() as session:
        stats = ChurchIngestionService(session, providers).get_stats()

    return JSONResponse({
        "available_providers": providers.list_available(),
        "stats": stats,
    })


@router.post("/import/batch")
def import_batch(
    settings: SettingsDep,
    providers: ProviderManagerDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> JSONResponse:
    """Import several city/state locations in one request."""
    try:
        req = BatchImportRequest.model_validate(payload or {})
    except ValidationError as e:
        return _error(_validation_message(e), 400)

    if not req.locations:
        return _error("Must provide locations array with city/state objects", 400)
    if len(req.locations) > MAX_BATCH_LOCATIONS:
        return _error(f"Maximum {MAX_BATCH_LOCATIONS} locations per batch request", 400)
    if req.provider and not providers.is_available(req.provider):
        return _unconfigured_provider(req.provider, providers.list_available())

    options = IngestionOptions(
        skip_duplicates=req.skip_duplicates,
        queue_enrichment=req.queue_enrichment,
        dry_run=req.dry_run,
    )

    with get_session() as session:
        service = ChurchIngestionService(
            session, providers, IngestionConfig.from_settings(settings)
        )
        try:
            batch = service.import_batch(
                req.locations,
                provider=req.provider,
                limit_per_location=req.limit_per_location,
                options=options,
                delay_seconds=req.delay_between_seconds,
            )
        except ProviderNotConfiguredError:
            return _unconfigured_provider(req.provider, providers.list_available())

    return JSONResponse({
        "success": True,
        "dry_run": req.dry_run,
        "provider": req.provider or "default",
        "summary": {
            "locations_processed": batch.locations_processed,
            "total_imported": batch.total_imported,
            "total_skipped": batch.total_skipped,
            "total_errors": batch.total_errors,
        },
        "results": [r.model_dump(mode="json") for r in batch.results],
    })


# ============================================================================
# Enrichment
# ============================================================================


def _enrichment_service(
    session: Session,
    ai_client: AIClient,
    fetcher: WebsiteFetcher,
    settings: Settings,
) -> ChurchEnrichmentService:
    return ChurchEnrichmentService(
        session,
        ai_client,
        fetcher=fetcher,
        config=EnrichmentConfig.from_settings(settings),
    )


@router.post("/enrich")
def enrich(
    settings: SettingsDep,
    ai_client: AIClientDep,
    fetcher: WebsiteFetcherDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> JSONResponse:
    """Enrich one church, or process a batch of the queue."""
    try:
        req = EnrichRequest.model_validate(payload or {})
    except ValidationError as e:
        return _error(_validation_message(e), 400)

    if ai_client is None:
        return _error("Enrichment service not configured (no AI provider key)", 500)

    with get_session() as session:
        service = _enrichment_service(session, ai_client, fetcher, settings)

        if req.church_id:
            result = service.enrich_church(req.church_id)
            return JSONResponse({
                "success": result.success,
                "result": result.model_dump(mode="json"),
            })

        results = service.process_queue(min(req.batch_size, MAX_BATCH_SIZE))

    successful = sum(1 for r in results if r.success)
    return JSONResponse({
        "success": True,
        "processed": len(results),
        "successful": successful,
        "failed": len(results) - successful,
        "results": [r.model_dump(mode="json") for r in results],
    })


@router.get("/enrich")
def enrichment_stats(ai_client: AIClientDep) -> JSONResponse:
    """Enrichment queue counts and the active AI provider."""
    with get_session() as session:
        # Stats only read the queue; no AI calls are made
        stats = ChurchEnrichmentService(session, ai_client).get_queue_stats()

    return JSONResponse({
        "queue": stats.model_dump(),
        "ai_provider": ai_client.provider.value if ai_client else "none",
    })


@router.put("/enrich")
def retry_failed(
    ai_client: AIClientDep,
    payload: dict[str, Any] | None = Body(default=None),
) -> JSONResponse:
    """Move failed enrichment rows back to pending."""
    try:
        req = RetryRequest.model_validate(payload or {})
    except ValidationError as e:
        return _error(_validation_message(e), 400)

    with get_session() as session:
        count = ChurchEnrichmentService(session, ai_client).retry_failed(req.limit)

    return JSONResponse({"success": True, "retried_count": count})
