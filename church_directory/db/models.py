"""SQLAlchemy ORM models for Church Directory database."""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def _generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ChurchDB(Base):
    """
    Database model for church listings.

    Provider fields are stored as columns; list-valued enrichment fields are
    stored as JSON text. `(source, source_id)` is the natural external key.
    """

    __tablename__ = "churches"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_churches_source_source_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Identity and location
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), default="")
    city: Mapped[str] = mapped_column(String(100), default="", index=True)
    state: Mapped[str] = mapped_column(String(100), default="")
    state_abbr: Mapped[str] = mapped_column(String(10), default="", index=True)
    zip: Mapped[str] = mapped_column(String(20), default="")
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Contact
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)
    denomination: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)

    # Provider extras
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hours_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array
    photo_urls_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array

    # Enrichment (NULL = unknown)
    worship_style_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array
    service_times_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON array
    has_kids_ministry: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    has_youth_group: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    has_small_groups: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    pastor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year_founded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_what_to_expect: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_generated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Provenance
    source: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    source_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)

    def __repr__(self) -> str:
        return f"<ChurchDB(id={self.id}, slug='{self.slug}', source='{self.source}')>"


class EnrichmentQueueDB(Base):
    """
    Database model for the enrichment work queue.

    Exactly one row per church; status moves
    pending -> processing -> completed/failed.
    """

    __tablename__ = "enrichment_queue"
    __table_args__ = (Index("idx_enrichment_queue_status", "status", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_generate_uuid)
    church_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("churches.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<EnrichmentQueueDB(church_id={self.church_id}, status='{self.status}')>"
