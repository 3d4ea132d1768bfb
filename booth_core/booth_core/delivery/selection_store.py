"""Selection tokens: guest links that gate photo selection."""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.delivery.purge import is_token_live
from booth_core.errors import MissingParameter
from booth_core.models.checkin import normalize_email
from booth_core.models.scope import TenantScope
from booth_core.models.selection import SelectionToken
from booth_core.state.repository import Clock, ScopedRepository, row_to_dict
from booth_core.state.tables import SelectionTokenTable

logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 72


class SelectionStore(ScopedRepository):
    """Selection tokens of one tenant scope.

    A token resolves until it expires, whether or not it was used.
    ``mark_used`` only stamps ``used_at``.
    """

    def __init__(
        self,
        session: AsyncSession,
        scope: TenantScope,
        *,
        ttl_hours: int = DEFAULT_TTL_HOURS,
        now: Clock | None = None,
    ) -> None:
        super().__init__(session, scope, now=now)
        self._ttl_hours = ttl_hours

    async def _get_row(self, token: str) -> SelectionTokenTable | None:
        stmt = select(SelectionTokenTable).where(
            SelectionTokenTable.token == token,
            *self._in_scope(SelectionTokenTable),
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(self, email: str, ttl_hours: int | None = None) -> SelectionToken:
        normalized = normalize_email(email or "")
        if not normalized:
            raise MissingParameter("Email is required.")
        hours = self._ttl_hours if ttl_hours is None else ttl_hours
        if hours <= 0:
            raise MissingParameter("Link lifetime must be positive")
        await self.purge_expired()

        now = self._now()
        row = SelectionTokenTable(
            token=secrets.token_urlsafe(24),
            owner_id=self._scope.owner_id,
            event_id=self._scope.event_id,
            email=normalized,
            created_at=now,
            expires_at=now + timedelta(hours=hours),
        )
        self._session.add(row)
        await self._session.flush()
        logger.info("Created selection token for event %s", self._scope.event_id)
        return SelectionToken.model_validate(row_to_dict(row))

    async def find(self, token: str) -> SelectionToken | None:
        """Return the token while it is live, else ``None``."""
        if not token:
            return None
        row = await self._get_row(token)
        if row is None or not is_token_live(row.expires_at, self._now()):
            return None
        return SelectionToken.model_validate(row_to_dict(row))

    async def mark_used(self, token: str) -> SelectionToken | None:
        row = await self._get_row(token)
        if row is None:
            return None
        row.used_at = self._now()
        await self._session.flush()
        return SelectionToken.model_validate(row_to_dict(row))

    async def purge_expired(self) -> int:
        result = await self._session.execute(
            delete(SelectionTokenTable).where(
                *self._in_scope(SelectionTokenTable),
                SelectionTokenTable.expires_at <= self._now(),
            )
        )
        if result.rowcount:
            logger.info(
                "Purged %d expired selection token(s) for event %s",
                result.rowcount,
                self._scope.event_id,
            )
        return result.rowcount or 0

    async def delete_all(self) -> int:
        result = await self._session.execute(
            delete(SelectionTokenTable).where(*self._in_scope(SelectionTokenTable))
        )
        return result.rowcount or 0
