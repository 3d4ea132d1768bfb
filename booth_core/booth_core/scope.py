"""Resolve a caller and an event identifier into a :class:`TenantScope`.

Every lookup is parameterized by the caller's own id, so a caller can only
ever resolve events they own (or, when explicitly allowed, events that
list them as a collaborator).  Guest links carry the owner id in the URL
and go through :meth:`ScopeResolver.resolve_public` instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.errors import MissingParameter, NotFound, Unauthorized
from booth_core.events.event_store import DEFAULT_RETENTION_DAYS, EventStore, scope_for
from booth_core.models.event import EventRecord, EventStatus
from booth_core.models.scope import TenantScope
from booth_core.state.repository import Clock, event_from_row
from booth_core.state.tables import EventTable
from booth_core.storage import ObjectStore

logger = logging.getLogger(__name__)


class ScopeResolver:
    def __init__(
        self,
        session: AsyncSession,
        objects: ObjectStore,
        *,
        key_prefix: str,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Clock | None = None,
    ) -> None:
        self._session = session
        self._objects = objects
        self._key_prefix = key_prefix
        self._retention_days = retention_days
        self._now = now

    def events_for(self, owner_id: str) -> EventStore:
        return EventStore(
            self._session,
            owner_id,
            self._objects,
            key_prefix=self._key_prefix,
            retention_days=self._retention_days,
            now=self._now,
        )

    async def resolve(
        self,
        caller_id: str | None,
        slug_or_id: str | None,
        *,
        allow_collaborator: bool = False,
    ) -> TenantScope:
        scope, _ = await self.resolve_event(caller_id, slug_or_id, allow_collaborator=allow_collaborator)
        return scope

    async def resolve_event(
        self,
        caller_id: str | None,
        slug_or_id: str | None,
        *,
        allow_collaborator: bool = False,
    ) -> tuple[TenantScope, EventRecord]:
        """Resolve the caller's event and return its scope with the record.

        Runs the lazy expiry sweep of the caller's events first.

        Raises
        ------
        Unauthorized
            If there is no caller id.
        MissingParameter
            If no event identifier was given.
        NotFound
            If the identifier does not name an event visible to the caller.
        """
        if not caller_id:
            raise Unauthorized()
        if not slug_or_id:
            raise MissingParameter("Event identifier is required")

        events = self.events_for(caller_id)
        await events.sweep_expired()
        event = await events.find(slug_or_id)
        if event is None and allow_collaborator:
            event = await self._find_shared(caller_id, slug_or_id)
        if event is None:
            raise NotFound(f"Event '{slug_or_id}' not found")
        return scope_for(event), event

    async def _find_shared(self, caller_id: str, slug_or_id: str) -> EventRecord | None:
        """An event owned by someone else that lists *caller_id* as collaborator."""
        stmt = select(EventTable).where(
            EventTable.owner_id != caller_id,
            or_(EventTable.slug == slug_or_id, EventTable.id == slug_or_id),
        )
        for row in (await self._session.execute(stmt)).scalars().all():
            event = event_from_row(row)
            if caller_id in event.collaborators:
                logger.debug("Caller %s resolved event %s as collaborator", caller_id, event.id)
                return event
        return None

    async def resolve_public(self, owner_id: str, event_slug: str) -> tuple[TenantScope, EventRecord]:
        """Resolve a guest link's scope.  Closed events do not resolve."""
        if not owner_id or not event_slug:
            raise NotFound("Event not found")
        events = self.events_for(owner_id)
        await events.sweep_expired()
        event = await events.get_by_slug(event_slug)
        if event is None or event.status == EventStatus.CLOSED:
            raise NotFound("Event not found")
        return scope_for(event), event
