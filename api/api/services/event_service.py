"""Service layer for event management and usage accounting.

Wraps the owner-scoped :class:`EventStore` and the :class:`UsageLedger`.
Quota checks happen here, before anything is recorded: the ledger itself
never refuses an increment.
"""

from __future__ import annotations

import logging
from typing import Any

from booth_core.delivery.usage_ledger import UsageLedger
from booth_core.errors import Forbidden
from booth_core.models.event import EventRecord, EventStatus
from booth_core.plans import Plan, check_ai_quota, check_photo_quota, usage_snapshot
from booth_core.scope import ScopeResolver
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def event_to_dict(event: EventRecord) -> dict[str, Any]:
    data = event.model_dump(mode="json")
    data["usage"] = usage_snapshot(event).model_dump(mode="json")
    return data


class EventService:
    """Business logic for one caller's events.

    Parameters
    ----------
    session:
        Active database session.
    resolver:
        Scope resolver bound to the same session.
    caller_id:
        Authenticated caller; owner of every event created here.
    """

    def __init__(self, session: AsyncSession, resolver: ScopeResolver, caller_id: str) -> None:
        self._session = session
        self._resolver = resolver
        self._caller_id = caller_id
        self._events = resolver.events_for(caller_id)

    async def list_events(self) -> list[dict[str, Any]]:
        return [event_to_dict(e) for e in await self._events.list()]

    async def create_event(self, name: str, slug: str | None = None, **settings: Any) -> dict[str, Any]:
        event = await self._events.create(name, slug, **settings)
        return event_to_dict(event)

    async def get_event(self, slug_or_id: str) -> dict[str, Any]:
        _, event = await self._resolver.resolve_event(self._caller_id, slug_or_id, allow_collaborator=True)
        return event_to_dict(event)

    async def update_event(self, slug_or_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        scope = await self._resolver.resolve(self._caller_id, slug_or_id)
        event = await self._events.update_config(scope.event_id, **changes)
        return event_to_dict(event)

    async def set_status(self, slug_or_id: str, status: EventStatus) -> dict[str, Any]:
        scope = await self._resolver.resolve(self._caller_id, slug_or_id)
        return event_to_dict(await self._events.update_status(scope.event_id, status))

    async def set_collaborators(self, slug_or_id: str, user_ids: list[str]) -> dict[str, Any]:
        scope = await self._resolver.resolve(self._caller_id, slug_or_id)
        return event_to_dict(await self._events.set_collaborators(scope.event_id, user_ids))

    async def mark_paid(self, slug_or_id: str, plan: Plan | str | None = None) -> dict[str, Any]:
        scope = await self._resolver.resolve(self._caller_id, slug_or_id)
        return event_to_dict(await self._events.mark_paid(scope.event_id, plan))

    async def delete_event(self, slug_or_id: str) -> dict[str, Any]:
        scope = await self._resolver.resolve(self._caller_id, slug_or_id)
        result = await self._events.delete(scope.event_id)
        return {
            "deleted": scope.event_id,
            "objects_deleted": len(result.succeeded),
            "objects_failed": len(result.failed),
        }

    # -- usage --------------------------------------------------------------

    async def usage(self, slug_or_id: str) -> dict[str, Any]:
        _, event = await self._resolver.resolve_event(self._caller_id, slug_or_id, allow_collaborator=True)
        return usage_snapshot(event).model_dump(mode="json")

    async def check_usage(self, slug_or_id: str, photos: int = 0, ai_credits: int = 0) -> dict[str, Any]:
        """Pre-flight quota check.  Raises ``QuotaExceeded`` when a cap would be passed."""
        _, event = await self._resolver.resolve_event(self._caller_id, slug_or_id, allow_collaborator=True)
        snapshot = usage_snapshot(event)
        check_photo_quota(snapshot, photos)
        check_ai_quota(snapshot, ai_credits)
        return snapshot.model_dump(mode="json")

    async def record_usage(self, slug_or_id: str, photos: int = 0, ai_credits: int = 0) -> dict[str, Any]:
        """Check positive deltas against the caps, then commit them to the ledger.

        Negative deltas are corrections and only the owner may make them;
        a collaborator can consume quota but never hand it back.
        """
        scope, event = await self._resolver.resolve_event(
            self._caller_id, slug_or_id, allow_collaborator=True
        )
        if (photos < 0 or ai_credits < 0) and event.owner_id != self._caller_id:
            logger.warning("Rejected usage correction on event %s by collaborator %s", event.id, self._caller_id)
            raise Forbidden("Only the event owner can reduce usage counters")
        snapshot = usage_snapshot(event)
        check_photo_quota(snapshot, photos)
        check_ai_quota(snapshot, ai_credits)
        _, updated = await UsageLedger(self._session).increment(scope, photos=photos, ai_credits=ai_credits)
        return updated.model_dump(mode="json")
