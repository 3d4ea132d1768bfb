"""Atomic photo and AI-credit counters.

The ledger records what already happened; it never refuses an increment.
Cap checks run before the costly operation via
:func:`booth_core.plans.check_photo_quota` and friends, and the ledger is
updated only once that operation succeeded.  A counter can therefore
overshoot its cap under concurrency, and the snapshot clamps the
remaining balance at zero.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.errors import NotFound
from booth_core.models.event import EventRecord
from booth_core.models.scope import TenantScope
from booth_core.plans import UsageSnapshot, usage_snapshot
from booth_core.state.repository import event_from_row
from booth_core.state.tables import EventTable

logger = logging.getLogger(__name__)


def _clamped_add(column: Any, delta: int) -> Any:
    current = func.coalesce(column, 0)
    return case((current + delta < 0, 0), else_=current + delta)


class UsageLedger:
    """Per-event usage counters, updated with a single UPDATE statement."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def increment(
        self,
        scope: TenantScope,
        photos: int = 0,
        ai_credits: int = 0,
    ) -> tuple[EventRecord, UsageSnapshot]:
        """Add the deltas to the scope's counters, clamping each at zero.

        Raises
        ------
        NotFound
            If the scope's event no longer exists.
        """
        stmt = (
            update(EventTable)
            .where(
                EventTable.id == scope.event_id,
                EventTable.owner_id == scope.owner_id,
            )
            .values(
                photo_used=_clamped_add(EventTable.photo_used, photos),
                ai_used=_clamped_add(EventTable.ai_used, ai_credits),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise NotFound(f"Event '{scope.event_slug}' not found")
        await self._session.flush()

        row = (
            await self._session.execute(
                select(EventTable)
                .where(EventTable.id == scope.event_id, EventTable.owner_id == scope.owner_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        event = event_from_row(row)
        logger.info(
            "Usage incremented for event %s: photos=%+d ai=%+d -> used=%d/%s ai=%d/%d",
            scope.event_id,
            photos,
            ai_credits,
            event.photo_used,
            event.photo_cap,
            event.ai_used,
            event.ai_credits,
        )
        return event, usage_snapshot(event)

    async def snapshot(self, scope: TenantScope) -> UsageSnapshot:
        row = (
            await self._session.execute(
                select(EventTable).where(
                    EventTable.id == scope.event_id,
                    EventTable.owner_id == scope.owner_id,
                )
            )
        ).scalar_one_or_none()
        if row is None:
            raise NotFound(f"Event '{scope.event_slug}' not found")
        return usage_snapshot(event_from_row(row))
