"""SQLAlchemy 2.0 ORM table definitions for the BoothOS state store.

Every scoped table carries ``owner_id`` and ``event_id`` and is indexed on
the pair; repositories filter on both for every statement.  Event columns
that older releases did not write are nullable and backfilled by
:func:`booth_core.models.event.with_event_defaults` at load time.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# JSONB on PostgreSQL, JSON stored as TEXT on SQLite.
_JsonType = JSONB().with_variant(JSON(), "sqlite")


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp that SQLite also hands back as UTC-aware."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    """Shared declarative base for all BoothOS tables."""


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EventTable(Base):
    """One event owned by one account."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), nullable=False)
    mode: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    plan: Mapped[str | None] = mapped_column(String(64), nullable=True)
    photo_cap: Mapped[int | None] = mapped_column(Integer, nullable=True)
    photo_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_credits: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    allow_background_removal: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    allow_ai_backgrounds: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    allow_ai_filters: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    delivery_email: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    delivery_sms: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    watermark_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    gallery_public: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    gallery_zip_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    overlay_theme: Mapped[str | None] = mapped_column(String(64), nullable=True)
    allowed_selections: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    collaborators: Mapped[Any | None] = mapped_column(_JsonType, nullable=True)
    event_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    event_time: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=_utcnow, onupdate=_utcnow, nullable=False
    )
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("owner_id", "slug", name="uq_events_owner_slug"),
        Index("ix_events_owner", "owner_id"),
    )


# ---------------------------------------------------------------------------
# Production sets
# ---------------------------------------------------------------------------


class ProductionSetTable(Base):
    """A delivered set of photos and the token guarding its download link."""

    __tablename__ = "production_sets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    download_token: Mapped[str] = mapped_column(String(128), nullable=False)
    token_expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    attachments: Mapped[Any] = mapped_column(_JsonType, nullable=False, default=list)
    bundle_key: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    bundle_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    bundle_filename: Mapped[str | None] = mapped_column(String(256), nullable=True)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_downloaded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    download_events: Mapped[Any] = mapped_column(_JsonType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_production_sets_scope", "owner_id", "event_id"),
        Index("ix_production_sets_expiry", "token_expires_at"),
    )


# ---------------------------------------------------------------------------
# Selection tokens
# ---------------------------------------------------------------------------


class SelectionTokenTable(Base):
    """Guest links that gate photo selection."""

    __tablename__ = "selection_tokens"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (Index("ix_selection_tokens_scope", "owner_id", "event_id"),)


# ---------------------------------------------------------------------------
# Checkins and notifications
# ---------------------------------------------------------------------------


class CheckinTable(Base):
    __tablename__ = "checkins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("owner_id", "event_id", "email", name="uq_checkins_scope_email"),
        Index("ix_checkins_scope", "owner_id", "event_id"),
    )


class NotificationTable(Base):
    """Pending-upload pings, drained by the owner's dashboard."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[Any | None] = mapped_column(_JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_notifications_scope", "owner_id", "event_id"),)


# ---------------------------------------------------------------------------
# Photos and backgrounds
# ---------------------------------------------------------------------------


class PhotoTable(Base):
    """Booth captures awaiting a guest's selection."""

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    original_name: Mapped[str] = mapped_column(String(256), nullable=False)
    content_type: Mapped[str] = mapped_column(String(128), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    background_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_photos_scope", "owner_id", "event_id"),
        Index("ix_photos_scope_email", "owner_id", "event_id", "email"),
    )


class BackgroundTable(Base):
    __tablename__ = "backgrounds"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    content_type: Mapped[str] = mapped_column(String(128), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_backgrounds_scope", "owner_id", "event_id"),)
