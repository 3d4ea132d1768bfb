"""Guest checkins, one per normalized email within a scope."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, select

from booth_core.errors import MissingParameter
from booth_core.models.checkin import Checkin, normalize_email
from booth_core.state.repository import ScopedRepository, _dialect_upsert, row_to_dict
from booth_core.state.tables import CheckinTable

logger = logging.getLogger(__name__)


class CheckinStore(ScopedRepository):
    async def list(self) -> list[Checkin]:
        """All checkins of the scope, newest first."""
        stmt = (
            select(CheckinTable)
            .where(*self._in_scope(CheckinTable))
            .order_by(CheckinTable.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [Checkin.model_validate(row_to_dict(r)) for r in rows]

    async def add(self, name: str, email: str) -> Checkin:
        """Insert a checkin, or refresh name and timestamp if the email exists."""
        normalized = normalize_email(email or "")
        if not normalized:
            raise MissingParameter("Email is required.")
        await _dialect_upsert(
            self._session,
            CheckinTable,
            {
                "id": uuid.uuid4().hex,
                "owner_id": self._scope.owner_id,
                "event_id": self._scope.event_id,
                "name": (name or "").strip(),
                "email": normalized,
                "created_at": self._now(),
            },
            index_elements=["owner_id", "event_id", "email"],
            update_columns=["name", "created_at"],
        )
        await self._session.flush()
        stmt = (
            select(CheckinTable)
            .where(*self._in_scope(CheckinTable), CheckinTable.email == normalized)
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one()
        return Checkin.model_validate(row_to_dict(row))

    async def remove_by_email(self, email: str) -> list[Checkin]:
        """Delete the checkin for *email* and return the remaining ones."""
        normalized = normalize_email(email or "")
        if not normalized:
            raise MissingParameter("Email is required.")
        await self._session.execute(
            delete(CheckinTable).where(
                *self._in_scope(CheckinTable),
                CheckinTable.email == normalized,
            )
        )
        await self._session.flush()
        return await self.list()

    async def delete_all(self) -> int:
        result = await self._session.execute(
            delete(CheckinTable).where(*self._in_scope(CheckinTable))
        )
        return result.rowcount or 0
