"""Add photos and backgrounds.

Booth captures are filed per guest email so a selection link can list
them; backgrounds are per event.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


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
    op.create_table(
        "photos",
        sa.Column("id", sa.String(64), primary_key=True),
        *_scope_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("original_name", sa.String(256), nullable=False),
        sa.Column("content_type", sa.String(128), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False),
        sa.Column("url", sa.String(2048), nullable=True),
        sa.Column("background_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_photos_scope", "photos", ["owner_id", "event_id"])
    op.create_index("ix_photos_scope_email", "photos", ["owner_id", "event_id", "email"])

    op.create_table(
        "backgrounds",
        sa.Column("id", sa.String(64), primary_key=True),
        *_scope_columns(),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.String(1024), nullable=False, server_default=""),
        sa.Column("content_type", sa.String(128), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False),
        sa.Column("url", sa.String(2048), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_backgrounds_scope", "backgrounds", ["owner_id", "event_id"])


def downgrade() -> None:
    op.drop_index("ix_backgrounds_scope", table_name="backgrounds")
    op.drop_table("backgrounds")
    op.drop_index("ix_photos_scope_email", table_name="photos")
    op.drop_index("ix_photos_scope", table_name="photos")
    op.drop_table("photos")
