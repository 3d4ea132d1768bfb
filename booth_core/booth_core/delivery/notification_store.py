"""Pending-upload pings for the event owner."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import delete, select

from booth_core.models.checkin import Notification, normalize_email
from booth_core.state.repository import ScopedRepository, row_to_dict
from booth_core.state.tables import NotificationTable

logger = logging.getLogger(__name__)


class NotificationStore(ScopedRepository):
    async def add(
        self,
        email: str,
        count: int,
        payload: dict[str, Any] | None = None,
    ) -> Notification:
        row = NotificationTable(
            id=uuid.uuid4().hex,
            owner_id=self._scope.owner_id,
            event_id=self._scope.event_id,
            email=normalize_email(email or ""),
            count=max(0, count),
            payload=payload,
            created_at=self._now(),
        )
        self._session.add(row)
        await self._session.flush()
        return Notification.model_validate(row_to_dict(row))

    async def pop(self) -> list[Notification]:
        """Return every pending ping, oldest first, and clear them."""
        stmt = (
            select(NotificationTable)
            .where(*self._in_scope(NotificationTable))
            .order_by(NotificationTable.created_at.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        items = [Notification.model_validate(row_to_dict(r)) for r in rows]
        if items:
            await self._session.execute(
                delete(NotificationTable).where(
                    *self._in_scope(NotificationTable),
                    NotificationTable.id.in_([n.id for n in items]),
                )
            )
            await self._session.flush()
            logger.debug("Drained %d notification(s) for event %s", len(items), self._scope.event_id)
        return items

    async def delete_all(self) -> int:
        result = await self._session.execute(
            delete(NotificationTable).where(*self._in_scope(NotificationTable))
        )
        return result.rowcount or 0
