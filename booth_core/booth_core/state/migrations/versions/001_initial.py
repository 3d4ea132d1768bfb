"""Initial schema for the BoothOS state store.

Creates events and the per-event tables: production_sets,
selection_tokens, checkins and notifications.  Every per-event table
carries ``owner_id`` and ``event_id`` with a composite index on the pair.

Revision ID: 001
Revises: None
Create Date: 2026-03-02 00:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_json = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.func.now(),
    )


def _scope_columns() -> list[sa.Column]:
    return [
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column(
            "event_id",
            sa.String(64),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # ------------------------------------------------------------------
    # events
    # ------------------------------------------------------------------
    op.create_table(
        "events",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("owner_id", sa.String(128), nullable=False),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("slug", sa.String(128), nullable=False),
        sa.Column("mode", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("plan", sa.String(64), nullable=True),
        sa.Column("photo_cap", sa.Integer(), nullable=True),
        sa.Column("photo_used", sa.Integer(), nullable=True),
        sa.Column("ai_credits", sa.Integer(), nullable=True),
        sa.Column("ai_used", sa.Integer(), nullable=True),
        sa.Column("allow_background_removal", sa.Boolean(), nullable=True),
        sa.Column("allow_ai_backgrounds", sa.Boolean(), nullable=True),
        sa.Column("allow_ai_filters", sa.Boolean(), nullable=True),
        sa.Column("delivery_email", sa.Boolean(), nullable=True),
        sa.Column("delivery_sms", sa.Boolean(), nullable=True),
        sa.Column("watermark_enabled", sa.Boolean(), nullable=True),
        sa.Column("gallery_public", sa.Boolean(), nullable=True),
        sa.Column("gallery_zip_enabled", sa.Boolean(), nullable=True),
        sa.Column("overlay_theme", sa.String(64), nullable=True),
        sa.Column("allowed_selections", sa.Integer(), nullable=True),
        sa.Column("payment_status", sa.String(32), nullable=True),
        sa.Column("collaborators", _json, nullable=True),
        sa.Column("event_date", sa.Date(), nullable=True),
        sa.Column("event_time", sa.String(16), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("owner_id", "slug", name="uq_events_owner_slug"),
    )
    op.create_index("ix_events_owner", "events", ["owner_id"])

    # ------------------------------------------------------------------
    # production_sets
    # ------------------------------------------------------------------
    op.create_table(
        "production_sets",
        sa.Column("id", sa.String(64), primary_key=True),
        *_scope_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("download_token", sa.String(128), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attachments", _json, nullable=False),
        sa.Column("bundle_key", sa.String(1024), nullable=True),
        sa.Column("bundle_url", sa.String(2048), nullable=True),
        sa.Column("bundle_filename", sa.String(256), nullable=True),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("last_downloaded_at", nullable=True),
        sa.Column("download_events", _json, nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_production_sets_scope", "production_sets", ["owner_id", "event_id"])
    op.create_index("ix_production_sets_expiry", "production_sets", ["token_expires_at"])

    # ------------------------------------------------------------------
    # selection_tokens
    # ------------------------------------------------------------------
    op.create_table(
        "selection_tokens",
        sa.Column("token", sa.String(128), primary_key=True),
        *_scope_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        _timestamp("created_at"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _timestamp("used_at", nullable=True),
    )
    op.create_index("ix_selection_tokens_scope", "selection_tokens", ["owner_id", "event_id"])

    # ------------------------------------------------------------------
    # checkins / notifications
    # ------------------------------------------------------------------
    op.create_table(
        "checkins",
        sa.Column("id", sa.String(64), primary_key=True),
        *_scope_columns(),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("owner_id", "event_id", "email", name="uq_checkins_scope_email"),
    )
    op.create_index("ix_checkins_scope", "checkins", ["owner_id", "event_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(64), primary_key=True),
        *_scope_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payload", _json, nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_notifications_scope", "notifications", ["owner_id", "event_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_scope", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_checkins_scope", table_name="checkins")
    op.drop_table("checkins")
    op.drop_index("ix_selection_tokens_scope", table_name="selection_tokens")
    op.drop_table("selection_tokens")
    op.drop_index("ix_production_sets_expiry", table_name="production_sets")
    op.drop_index("ix_production_sets_scope", table_name="production_sets")
    op.drop_table("production_sets")
    op.drop_index("ix_events_owner", table_name="events")
    op.drop_table("events")
