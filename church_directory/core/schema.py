"""Pydantic v2 models for Church Directory ingestion and enrichment."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from church_directory.core.enums import EnrichmentStatus


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


class OperatingHours(BaseModel):
    """Opening period reported by a provider."""

    day: str
    open_time: str
    close_time: str


class RawChurch(BaseModel):
    """
    A church record as returned by a provider, already mapped to our shape.

    Name and coordinates are required; providers drop elements lacking them.
    """

    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    state_abbr: str = ""
    zip: str = ""
    lat: float
    lng: float

    phone: str | None = None
    email: str | None = None
    website: str | None = None
    denomination: str | None = None
    hours: list[OperatingHours] | None = None
    rating: float | None = None
    review_count: int | None = None
    photo_urls: list[str] | None = None

    source_id: str
    source: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Reject empty names."""
        if not v or not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()


class SearchParams(BaseModel):
    """Location parameters for a provider search."""

    city: str | None = None
    state: str | None = None
    lat: float | None = None
    lng: float | None = None
    radius_miles: float | None = None
    limit: int | None = None
    page_token: str | None = None

    @property
    def has_coordinates(self) -> bool:
        """True when a lat/lng pair is present."""
        return self.lat is not None and self.lng is not None

    @property
    def has_city_state(self) -> bool:
        """True when both city and state are present."""
        return bool(self.city and self.state)

    def describe(self) -> str:
        """Human-readable location label."""
        if self.has_city_state:
            return f"{self.city}, {self.state}"
        if self.has_coordinates:
            return f"{self.lat}, {self.lng}"
        return "unknown location"


class SearchResult(BaseModel):
    """One page of provider results."""

    churches: list[RawChurch] = Field(default_factory=list)
    next_page_token: str | None = None
    total_estimate: int | None = None


class ProviderSearchResult(BaseModel):
    """A search result tagged with the provider that produced it."""

    provider: str
    result: SearchResult


class ServiceTime(BaseModel):
    """A worship service time."""

    day: str
    time: str
    name: str | None = None


class ExtractedInfo(BaseModel):
    """Structured facts extracted from a church website by the AI."""

    denomination: str | None = None
    worship_style: list[str] | None = None
    service_times: list[ServiceTime] | None = None
    has_kids_ministry: bool | None = None
    has_youth_group: bool | None = None
    has_small_groups: bool | None = None
    pastor_name: str | None = None
    year_founded: int | None = None

    @field_validator("denomination", "pastor_name")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat blank strings as missing."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("worship_style")
    @classmethod
    def drop_blank_styles(cls, v: list[str] | None) -> list[str] | None:
        """Remove blank entries from the style list."""
        if v is None:
            return None
        return [s.strip() for s in v if s and s.strip()]

    def is_empty(self) -> bool:
        """True when nothing was extracted."""
        return not self.model_dump(exclude_none=True)


class ChurchContext(BaseModel):
    """Listing context passed to the AI for generation."""

    name: str
    city: str = ""
    state: str = ""
    denomination: str | None = None
    website: str | None = None
    website_content: str | None = None


class CombinedEnrichment(BaseModel):
    """Description and visitor guide generated in one AI call."""

    description: str = ""
    what_to_expect: str = ""


class IngestionOptions(BaseModel):
    """Options controlling an import run."""

    skip_duplicates: bool = True
    update_existing: bool = False
    queue_enrichment: bool = True
    dry_run: bool = False


class ImportedChurch(BaseModel):
    """Identity of a listing written (or that would be written) by an import."""

    id: str
    name: str
    slug: str


class ImportFailure(BaseModel):
    """A record that failed to import."""

    name: str
    error: str


class IngestionResult(BaseModel):
    """Outcome of an import run."""

    imported: int = 0
    skipped: int = 0
    errors: int = 0
    updated: int = 0
    churches: list[ImportedChurch] = Field(default_factory=list)
    error_details: list[ImportFailure] = Field(default_factory=list)

    def record_error(self, name: str, error: str) -> None:
        """Count a failed record and keep its details."""
        self.errors += 1
        self.error_details.append(ImportFailure(name=name, error=error))


class SingleImportResult(BaseModel):
    """Outcome of importing a single church by source id."""

    success: bool
    church: ImportedChurch | None = None
    error: str | None = None


class BatchLocation(BaseModel):
    """A city/state pair in a batch import."""

    city: str
    state: str
    radius_miles: float | None = None


class BatchLocationResult(BaseModel):
    """Outcome of importing one location in a batch."""

    location: str
    success: bool
    result: IngestionResult | None = None
    error: str | None = None


class BatchImportResult(BaseModel):
    """Outcome of a multi-location import."""

    locations_processed: int = 0
    total_imported: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    results: list[BatchLocationResult] = Field(default_factory=list)


class EnrichmentResult(BaseModel):
    """Outcome of enriching one church."""

    success: bool
    church_id: str
    enriched_fields: list[str] = Field(default_factory=list)
    error: str | None = None


class QueueStats(BaseModel):
    """Enrichment queue counts per status."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class Church(BaseModel):
    """A persisted church listing."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    state_abbr: str = ""
    zip: str = ""
    lat: float
    lng: float
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    denomination: str | None = None
    rating: float | None = None
    review_count: int | None = None

    worship_style: list[str] | None = None
    service_times: list[ServiceTime] | None = None
    has_kids_ministry: bool | None = None
    has_youth_group: bool | None = None
    has_small_groups: bool | None = None
    pastor_name: str | None = None
    year_founded: int | None = None
    ai_description: str | None = None
    ai_what_to_expect: str | None = None
    ai_generated_at: datetime | None = None

    source: str | None = None
    source_id: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class QueueEntry(BaseModel):
    """An enrichment queue row."""

    model_config = ConfigDict(from_attributes=True)

    church_id: str
    status: EnrichmentStatus = EnrichmentStatus.PENDING
    error: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ImportRequest(BaseModel):
    """Admin import request body."""

    city: str | None = None
    state: str | None = None
    lat: float | None = None
    lng: float | None = None
    radius_miles: float | None = None
    provider: str | None = None
    limit: int | None = None
    skip_duplicates: bool = True
    update_existing: bool = False
    queue_enrichment: bool = True
    dry_run: bool = False

    @model_validator(mode="after")
    def require_location(self) -> "ImportRequest":
        """Either city/state or lat/lng must be present."""
        has_city_state = bool(self.city and self.state)
        has_coords = self.lat is not None and self.lng is not None
        if not has_city_state and not has_coords:
            raise ValueError("Must provide either city/state or lat/lng coordinates")
        return self

    def to_search_params(self) -> SearchParams:
        """Build provider search parameters from the request."""
        return SearchParams(
            city=self.city,
            state=self.state,
            lat=self.lat,
            lng=self.lng,
            radius_miles=self.radius_miles,
            limit=self.limit,
        )

    def to_options(self) -> IngestionOptions:
        """Build ingestion options from the request."""
        return IngestionOptions(
            skip_duplicates=self.skip_duplicates,
            update_existing=self.update_existing,
            queue_enrichment=self.queue_enrichment,
            dry_run=self.dry_run,
        )


class BatchImportRequest(BaseModel):
    """Admin batch import request body."""

    locations: list[BatchLocation] = Field(default_factory=list)
    provider: str | None = None
    limit_per_location: int = 50
    skip_duplicates: bool = True
    queue_enrichment: bool = True
    dry_run: bool = False
    delay_between_seconds: float = 1.0


class EnrichRequest(BaseModel):
    """Admin enrichment request body."""

    batch_size: int = 10
    church_id: str | None = None


class RetryRequest(BaseModel):
    """Admin retry-failed request body."""

    limit: int = 100
