"""Repository classes for database operations."""

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from church_directory.core.enums import EnrichmentStatus
from church_directory.core.schema import (
    Church,
    QueueEntry,
    QueueStats,
    RawChurch,
    ServiceTime,
)
from church_directory.db.models import ChurchDB, EnrichmentQueueDB


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _dump_list(values: list[Any] | None) -> str | None:
    """Serialize a list of plain values or pydantic models to JSON text."""
    if values is None:
        return None
    return json.dumps(
        [v.model_dump() if hasattr(v, "model_dump") else v for v in values]
    )


def _load_list(raw: str | None) -> list[Any] | None:
    if not raw:
        return None
    return json.loads(raw)


# Columns copied from a provider record on insert and on update
_RAW_FIELDS = (
    "name",
    "address",
    "city",
    "state",
    "state_abbr",
    "zip",
    "lat",
    "lng",
    "phone",
    "email",
    "website",
    "denomination",
    "rating",
    "review_count",
)

# Provider columns that enrichment may also fill; a refresh without a value keeps them
_ENRICHABLE_RAW_FIELDS = frozenset({"denomination"})

# Enrichment fields accepted by update_fields; list-valued ones are stored as JSON
_JSON_FIELDS = {"worship_style": "worship_style_json", "service_times": "service_times_json"}
_SCALAR_FIELDS = {
    "denomination",
    "has_kids_ministry",
    "has_youth_group",
    "has_small_groups",
    "pastor_name",
    "year_founded",
    "ai_description",
    "ai_what_to_expect",
    "ai_generated_at",
}


class ChurchRepository:
    """Repository for church listing operations (the listing store)."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, raw: RawChurch, slug: str) -> Church:
        """
        Insert a new listing from a provider record.

        Args:
            raw: The normalized provider record.
            slug: The unique URL slug for the listing.

        Returns:
            The created Church.
        """
        db_church = ChurchDB(slug=slug, source=raw.source, source_id=raw.source_id)
        self._apply_raw(db_church, raw)
        self.session.add(db_church)
        self.session.flush()
        return self._to_domain(db_church)

    def get_by_id(self, church_id: str) -> Church | None:
        """Get a listing by ID."""
        db_church = self._get_db(church_id)
        return self._to_domain(db_church) if db_church else None

    def get_by_slug(self, slug: str) -> Church | None:
        """Get a listing by slug."""
        stmt = select(ChurchDB).where(ChurchDB.slug == slug)
        db_church = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_church) if db_church else None

    def get_by_source(self, source: str, source_id: str) -> Church | None:
        """Get a listing by its provider identity."""
        stmt = select(ChurchDB).where(
            ChurchDB.source == source,
            ChurchDB.source_id == source_id,
        )
        db_church = self.session.execute(stmt).scalar_one_or_none()
        return self._to_domain(db_church) if db_church else None

    def find_existing(self, source: str, source_ids: Iterable[str]) -> dict[str, str]:
        """
        Find which of the given source ids are already stored.

        Args:
            source: Provider name.
            source_ids: Provider ids to look up.

        Returns:
            Mapping of source_id to listing id for ids already present.
        """
        ids = list(set(source_ids))
        if not ids:
            return {}
        stmt = select(ChurchDB.source_id, ChurchDB.id).where(
            ChurchDB.source == source,
            ChurchDB.source_id.in_(ids),
        )
        return {source_id: church_id for source_id, church_id in self.session.execute(stmt)}

    def update_from_raw(self, church_id: str, raw: RawChurch) -> Church:
        """
        Replace a listing's provider fields with a fresh record.

        The slug and any enrichment fields are left untouched, and a
        denomination the fresh record lacks keeps its stored value.

        Raises:
            ValueError: If the listing does not exist.
        """
        db_church = self._get_db(church_id)
        if db_church is None:
            raise ValueError(f"Church with id {church_id} not found")

        self._apply_raw(db_church, raw, refresh=True)
        db_church.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_church)

    def update_fields(self, church_id: str, fields: dict[str, Any]) -> Church:
        """
        Write enrichment fields to a listing in one update.

        Args:
            church_id: The listing ID.
            fields: Field name to value; `worship_style` and `service_times`
                    may be lists of strings / ServiceTime.

        Raises:
            ValueError: If the listing does not exist or a field is unknown.
        """
        db_church = self._get_db(church_id)
        if db_church is None:
            raise ValueError(f"Church with id {church_id} not found")

        for key, value in fields.items():
            if key in _JSON_FIELDS:
                setattr(db_church, _JSON_FIELDS[key], _dump_list(value))
            elif key in _SCALAR_FIELDS:
                setattr(db_church, key, value)
            else:
                raise ValueError(f"Unknown church field: {key}")

        db_church.updated_at = _utc_now()
        self.session.flush()
        return self._to_domain(db_church)

    def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is already taken."""
        stmt = select(ChurchDB.id).where(ChurchDB.slug == slug)
        return self.session.execute(stmt).first() is not None

    def list_all(self, limit: int | None = None) -> list[Church]:
        """List listings, newest first."""
        stmt = select(ChurchDB).order_by(ChurchDB.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [self._to_domain(c) for c in self.session.execute(stmt).scalars().all()]

    def count(self) -> int:
        """Count all listings."""
        stmt = select(func.count()).select_from(ChurchDB)
        return self.session.execute(stmt).scalar_one()

    def counts_by_source(self) -> dict[str, int]:
        """Count listings per provider."""
        stmt = select(ChurchDB.source, func.count()).group_by(ChurchDB.source)
        return {source or "unknown": n for source, n in self.session.execute(stmt)}

    def _get_db(self, church_id: str) -> ChurchDB | None:
        stmt = select(ChurchDB).where(ChurchDB.id == str(church_id))
        return self.session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _apply_raw(db_church: ChurchDB, raw: RawChurch, refresh: bool = False) -> None:
        for field in _RAW_FIELDS:
            value = getattr(raw, field)
            if refresh and value is None and field in _ENRICHABLE_RAW_FIELDS:
                continue
            setattr(db_church, field, value)
        db_church.hours_json = _dump_list(raw.hours)
        db_church.photo_urls_json = _dump_list(raw.photo_urls)

    def _to_domain(self, db_church: ChurchDB) -> Church:
        """Convert database model to domain model."""
        service_times = _load_list(db_church.service_times_json)
        return Church(
            id=db_church.id,
            slug=db_church.slug,
            name=db_church.name,
            address=db_church.address or "",
            city=db_church.city or "",
            state=db_church.state or "",
            state_abbr=db_church.state_abbr or "",
            zip=db_church.zip or "",
            lat=db_church.lat,
            lng=db_church.lng,
            phone=db_church.phone,
            email=db_church.email,
            website=db_church.website,
            denomination=db_church.denomination,
            rating=db_church.rating,
            review_count=db_church.review_count,
            worship_style=_load_list(db_church.worship_style_json),
            service_times=(
                [ServiceTime(**st) for st in service_times] if service_times is not None else None
            ),
            has_kids_ministry=db_church.has_kids_ministry,
            has_youth_group=db_church.has_youth_group,
            has_small_groups=db_church.has_small_groups,
            pastor_name=db_church.pastor_name,
            year_founded=db_church.year_founded,
            ai_description=db_church.ai_description,
            ai_what_to_expect=db_church.ai_what_to_expect,
            ai_generated_at=db_church.ai_generated_at,
            source=db_church.source,
            source_id=db_church.source_id,
            created_at=db_church.created_at,
            updated_at=db_church.updated_at,
        )


class EnrichmentQueueRepository:
    """Repository for the enrichment queue (the queue store)."""

    def __init__(self, session: Session):
        self.session = session

    def enqueue(self, church_id: str) -> QueueEntry:
        """
        Add a listing to the queue, or reset its existing row to pending.

        There is never more than one row per listing.
        """
        db_entry = self._get_db(church_id)
        if db_entry is None:
            db_entry = EnrichmentQueueDB(church_id=church_id)
            self.session.add(db_entry)
        else:
            db_entry.created_at = _utc_now()

        db_entry.status = EnrichmentStatus.PENDING.value
        db_entry.error = None
        db_entry.started_at = None
        db_entry.completed_at = None
        self.session.flush()
        return self._to_domain(db_entry)

    def get(self, church_id: str) -> QueueEntry | None:
        """Get the queue row for a listing."""
        db_entry = self._get_db(church_id)
        return self._to_domain(db_entry) if db_entry else None

    def list_pending(self, limit: int) -> list[QueueEntry]:
        """List up to `limit` pending rows, oldest first."""
        stmt = (
            select(EnrichmentQueueDB)
            .where(EnrichmentQueueDB.status == EnrichmentStatus.PENDING.value)
            .order_by(EnrichmentQueueDB.created_at.asc())
            .limit(limit)
        )
        return [self._to_domain(e) for e in self.session.execute(stmt).scalars().all()]

    def claim(self, church_id: str) -> bool:
        """
        Move a pending row to processing.

        The update only matches while the row is still pending, so when two
        workers race for the same row exactly one of them gets True.
        """
        stmt = (
            update(EnrichmentQueueDB)
            .where(
                EnrichmentQueueDB.church_id == church_id,
                EnrichmentQueueDB.status == EnrichmentStatus.PENDING.value,
            )
            .values(status=EnrichmentStatus.PROCESSING.value, started_at=_utc_now())
            .execution_options(synchronize_session="evaluate")
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def mark_completed(self, church_id: str) -> bool:
        """Mark a row completed. Returns False if there is no row."""
        return self._set_status(church_id, EnrichmentStatus.COMPLETED, None)

    def mark_failed(self, church_id: str, error: str) -> bool:
        """Mark a row failed with an error message. Returns False if there is no row."""
        return self._set_status(church_id, EnrichmentStatus.FAILED, error)

    def retry_failed(self, limit: int = 100) -> int:
        """
        Reset up to `limit` failed rows to pending and clear their errors.

        Returns:
            Number of rows reset.
        """
        stmt = (
            select(EnrichmentQueueDB)
            .where(EnrichmentQueueDB.status == EnrichmentStatus.FAILED.value)
            .order_by(EnrichmentQueueDB.created_at.asc())
            .limit(limit)
        )
        entries = self.session.execute(stmt).scalars().all()
        for db_entry in entries:
            db_entry.status = EnrichmentStatus.PENDING.value
            db_entry.error = None
            db_entry.started_at = None
            db_entry.completed_at = None
        self.session.flush()
        return len(entries)

    def stats(self) -> QueueStats:
        """Count rows per status."""
        stmt = select(EnrichmentQueueDB.status, func.count()).group_by(EnrichmentQueueDB.status)
        counts = {status: n for status, n in self.session.execute(stmt)}
        return QueueStats(
            pending=counts.get(EnrichmentStatus.PENDING.value, 0),
            processing=counts.get(EnrichmentStatus.PROCESSING.value, 0),
            completed=counts.get(EnrichmentStatus.COMPLETED.value, 0),
            failed=counts.get(EnrichmentStatus.FAILED.value, 0),
        )

    def _set_status(self, church_id: str, status: EnrichmentStatus, error: str | None) -> bool:
        db_entry = self._get_db(church_id)
        if db_entry is None:
            return False
        db_entry.status = status.value
        db_entry.error = error
        db_entry.completed_at = _utc_now()
        self.session.flush()
        return True

    def _get_db(self, church_id: str) -> EnrichmentQueueDB | None:
        stmt = select(EnrichmentQueueDB).where(EnrichmentQueueDB.church_id == str(church_id))
        return self.session.execute(stmt).scalar_one_or_none()

    def _to_domain(self, db_entry: EnrichmentQueueDB) -> QueueEntry:
        """Convert database model to domain model."""
        return QueueEntry(
            church_id=db_entry.church_id,
            status=EnrichmentStatus(db_entry.status),
            error=db_entry.error,
            created_at=db_entry.created_at,
            started_at=db_entry.started_at,
            completed_at=db_entry.completed_at,
        )
