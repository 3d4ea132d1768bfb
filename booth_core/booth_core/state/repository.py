"""Shared plumbing for the scoped repositories.

Each store takes an ``AsyncSession`` at construction time and operates
within the caller's transaction boundary.  All writes call
``session.flush()``; the caller commits, usually through the API's
request-scoped session dependency.  Scoped stores also take a
:class:`TenantScope` and filter every statement on its
``(owner_id, event_id)`` pair.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.models.event import EventRecord, with_event_defaults
from booth_core.models.scope import TenantScope

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def row_to_dict(row: Any) -> dict[str, Any]:
    """Column values of an ORM row, keyed by attribute name."""
    return {column.key: getattr(row, column.key) for column in row.__table__.columns}


async def _dialect_upsert(
    session: AsyncSession,
    table: Any,
    values: dict[str, Any],
    index_elements: list[str],
    update_columns: list[str],
) -> Any:
    """Dialect-aware upsert: PostgreSQL ``ON CONFLICT DO UPDATE`` or SQLite equivalent.

    Parameters
    ----------
    session:
        The active async session.
    table:
        The SQLAlchemy table class to upsert into.
    values:
        Column-value mapping for the row to insert.
    index_elements:
        Column names forming the unique constraint for conflict detection.
    update_columns:
        Column names to update when a conflict occurs.
    """
    bind = session.get_bind()
    dialect_name = getattr(getattr(bind, "dialect", None), "name", "")

    stmt: Any
    if "postgresql" in str(dialect_name):
        from sqlalchemy.dialects.postgresql import insert as _pg_insert

        stmt = _pg_insert(table).values(**values)
    else:
        from sqlalchemy.dialects.sqlite import insert as _sqlite_insert

        stmt = _sqlite_insert(table).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_={col: getattr(stmt.excluded, col) for col in update_columns},
    )
    return await session.execute(stmt)


class ScopedRepository:
    """Base for stores whose rows live under one tenant scope."""

    def __init__(
        self,
        session: AsyncSession,
        scope: TenantScope,
        *,
        now: Clock | None = None,
    ) -> None:
        self._session = session
        self._scope = scope
        self._now = now or utcnow

    @property
    def scope(self) -> TenantScope:
        return self._scope

    def _in_scope(self, table: Any) -> tuple[Any, Any]:
        """WHERE clauses pinning *table* to this scope."""
        return (
            table.owner_id == self._scope.owner_id,
            table.event_id == self._scope.event_id,
        )


def event_from_row(row: Any) -> EventRecord:
    """Load an ``events`` row through the schema upcast."""
    return with_event_defaults(row_to_dict(row))
