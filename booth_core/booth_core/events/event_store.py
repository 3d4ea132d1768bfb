"""Owner-scoped event lifecycle.

Events are created and mutated by their owner, and deleted together with
their whole scoped subtree: production sets, photos and backgrounds with
their objects, then selection tokens, checkins and notifications.
Deletion happens explicitly or lazily once ``event_date`` plus the
retention window has passed; the sweep runs whenever the owner's event
collection is read.
"""

from __future__ import annotations

import logging
import re
import uuid
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.delivery.checkin_store import CheckinStore
from booth_core.delivery.media_store import BackgroundStore, PhotoStore
from booth_core.delivery.notification_store import NotificationStore
from booth_core.delivery.production_store import ProductionStore
from booth_core.delivery.selection_store import SelectionStore
from booth_core.errors import Conflict, MissingParameter, NotFound
from booth_core.models.event import (
    CURRENT_EVENT_SCHEMA,
    DEFAULT_ALLOWED_SELECTIONS,
    EventMode,
    EventRecord,
    EventStatus,
    PaymentStatus,
)
from booth_core.models.scope import TenantScope
from booth_core.plans import Plan, apply_plan_defaults, ensure_can_add_collaborators
from booth_core.state.repository import Clock, event_from_row, utcnow
from booth_core.state.tables import EventTable
from booth_core.storage import DeleteResult, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7

_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

# Columns an owner may change through ``update_config``.
_CONFIG_FIELDS = frozenset(
    {
        "name",
        "mode",
        "status",
        "plan",
        "photo_cap",
        "ai_credits",
        "allow_background_removal",
        "allow_ai_backgrounds",
        "allow_ai_filters",
        "delivery_email",
        "delivery_sms",
        "watermark_enabled",
        "gallery_public",
        "gallery_zip_enabled",
        "overlay_theme",
        "allowed_selections",
        "payment_status",
        "event_date",
        "event_time",
    }
)


def slugify(value: str, fallback: str | None = None) -> str:
    """Lower-case, collapse non-alphanumerics to ``-`` and trim dashes."""
    slug = _SLUG_STRIP_RE.sub("-", (value or "").strip().lower()).strip("-")
    return slug or fallback or uuid.uuid4().hex[:8]


def scope_for(event: EventRecord) -> TenantScope:
    return TenantScope(
        owner_id=event.owner_id,
        event_id=event.id,
        event_slug=event.slug,
        event_name=event.name,
    )


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _record_columns(record: EventRecord) -> dict[str, Any]:
    return {k: _column_value(v) for k, v in record.model_dump().items()}


def retention_deadline(event_date: date, retention_days: int) -> datetime:
    """Instant after which an event dated *event_date* is swept."""
    return datetime.combine(event_date, time.min, tzinfo=UTC) + timedelta(days=retention_days)


class EventStore:
    """Events belonging to one owner."""

    def __init__(
        self,
        session: AsyncSession,
        owner_id: str,
        objects: ObjectStore,
        *,
        key_prefix: str,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Clock | None = None,
    ) -> None:
        if not owner_id:
            raise MissingParameter("owner_id is required")
        self._session = session
        self._owner_id = owner_id
        self._objects = objects
        self._key_prefix = key_prefix
        self._retention_days = retention_days
        self._now = now or utcnow

    # -- loading ------------------------------------------------------------

    async def _load(self, row: EventTable) -> EventRecord:
        """Upcast *row*; legacy rows are rewritten in the current schema."""
        record = event_from_row(row)
        if (row.schema_version or 0) < CURRENT_EVENT_SCHEMA:
            for column, value in _record_columns(record).items():
                setattr(row, column, value)
            await self._session.flush()
            logger.info("Upcast event %s to schema v%d", row.id, CURRENT_EVENT_SCHEMA)
        return record

    async def _get_row(self, event_id: str) -> EventTable | None:
        stmt = select(EventTable).where(
            EventTable.owner_id == self._owner_id,
            EventTable.id == event_id,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def _require_row(self, event_id: str) -> EventTable:
        row = await self._get_row(event_id)
        if row is None:
            raise NotFound(f"Event '{event_id}' not found")
        return row

    # -- reads --------------------------------------------------------------

    async def list(self) -> list[EventRecord]:
        """The owner's events, newest first, after the expiry sweep."""
        await self.sweep_expired()
        stmt = (
            select(EventTable)
            .where(EventTable.owner_id == self._owner_id)
            .order_by(EventTable.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [await self._load(r) for r in rows]

    async def get(self, event_id: str) -> EventRecord | None:
        row = await self._get_row(event_id)
        return await self._load(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> EventRecord | None:
        stmt = select(EventTable).where(
            EventTable.owner_id == self._owner_id,
            EventTable.slug == slug,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return await self._load(row) if row is not None else None

    async def find(self, slug_or_id: str) -> EventRecord | None:
        """Match *slug_or_id* against the owner's slugs and ids."""
        stmt = select(EventTable).where(
            EventTable.owner_id == self._owner_id,
            or_(EventTable.slug == slug_or_id, EventTable.id == slug_or_id),
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        if not rows:
            return None
        # A slug that happens to equal another event's id loses to the id.
        row = next((r for r in rows if r.id == slug_or_id), rows[0])
        return await self._load(row)

    # -- writes -------------------------------------------------------------

    async def create(
        self,
        name: str,
        slug: str | None = None,
        *,
        plan: Plan | str = Plan.FREE,
        mode: EventMode = EventMode.SELF_SERVE,
        status: EventStatus = EventStatus.LIVE,
        event_date: date | None = None,
        event_time: str | None = None,
        **flags: Any,
    ) -> EventRecord:
        """Create an event with the plan's caps and flags.

        Raises
        ------
        MissingParameter
            If *name* is empty or *flags* names an unknown setting.
        Conflict
            If the owner already has an event with the same slug.
        """
        name = (name or "").strip()
        if not name:
            raise MissingParameter("Event name is required")
        unknown = set(flags) - _CONFIG_FIELDS
        if unknown:
            raise MissingParameter(f"Unknown event settings: {', '.join(sorted(unknown))}")

        safe_slug = slugify(slug or name)
        if await self.get_by_slug(safe_slug) is not None:
            raise Conflict(f"An event with slug '{safe_slug}' already exists")

        values: dict[str, Any] = {
            "mode": _column_value(mode),
            "status": _column_value(status),
            "photo_used": 0,
            "ai_used": 0,
            "allow_background_removal": True,
            "delivery_email": True,
            "gallery_public": False,
            "overlay_theme": "default",
            "allowed_selections": DEFAULT_ALLOWED_SELECTIONS,
            "payment_status": PaymentStatus.UNPAID.value,
            "collaborators": [],
            **apply_plan_defaults(plan),
            **{k: _column_value(v) for k, v in flags.items()},
        }
        row = EventTable(
            id=uuid.uuid4().hex,
            owner_id=self._owner_id,
            name=name,
            slug=safe_slug,
            event_date=event_date,
            event_time=event_time,
            created_at=self._now(),
            schema_version=CURRENT_EVENT_SCHEMA,
            **values,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise Conflict(f"An event with slug '{safe_slug}' already exists") from exc
        logger.info("Created event %s (%s) for owner %s", row.id, safe_slug, self._owner_id)
        return await self._load(row)

    async def update_status(self, event_id: str, status: EventStatus | str) -> EventRecord:
        return await self.update_config(event_id, status=EventStatus(status))

    async def update_config(self, event_id: str, **changes: Any) -> EventRecord:
        """Apply owner-editable settings.  A plan change re-applies plan defaults."""
        unknown = set(changes) - _CONFIG_FIELDS
        if unknown:
            raise MissingParameter(f"Unknown event settings: {', '.join(sorted(unknown))}")
        row = await self._require_row(event_id)
        await self._load(row)

        updates = dict(changes)
        if "plan" in updates:
            updates = {**apply_plan_defaults(updates.pop("plan")), **updates}
        if "name" in updates and not str(updates["name"]).strip():
            raise MissingParameter("Event name is required")
        for column, value in updates.items():
            setattr(row, column, _column_value(value))
        await self._session.flush()
        logger.info("Updated event %s: %s", event_id, ", ".join(sorted(updates)))
        return await self._load(row)

    async def set_collaborators(self, event_id: str, user_ids: list[str]) -> EventRecord:
        """Replace the collaborator list.

        Raises
        ------
        PlanRestriction
            If the list is non-empty and the event's plan has no collaborators.
        """
        row = await self._require_row(event_id)
        event = await self._load(row)
        cleaned = list(dict.fromkeys(u.strip() for u in user_ids if u and u.strip()))
        cleaned = [u for u in cleaned if u != self._owner_id]
        if cleaned:
            ensure_can_add_collaborators(event.plan)
        row.collaborators = cleaned
        await self._session.flush()
        return await self._load(row)

    async def mark_paid(self, event_id: str, plan: Plan | str | None = None) -> EventRecord:
        """Flip the payment flag, moving the event onto *plan* when given."""
        changes: dict[str, Any] = {"payment_status": PaymentStatus.PAID}
        if plan is not None:
            changes["plan"] = plan
        event = await self.update_config(event_id, **changes)
        logger.info("Event %s marked paid on plan %s", event_id, event.plan.value)
        return event

    async def delete(self, event_id: str) -> DeleteResult:
        """Delete the event and everything stored under its scope."""
        row = await self._require_row(event_id)
        scope = scope_for(event_from_row(row))

        result = await ProductionStore(
            self._session, scope, self._objects, key_prefix=self._key_prefix, now=self._now
        ).delete_all()
        for media in (PhotoStore, BackgroundStore):
            result = result.merge(
                await media(
                    self._session, scope, self._objects, key_prefix=self._key_prefix, now=self._now
                ).delete_all()
            )
        await SelectionStore(self._session, scope, now=self._now).delete_all()
        await CheckinStore(self._session, scope, now=self._now).delete_all()
        await NotificationStore(self._session, scope, now=self._now).delete_all()

        await self._session.execute(
            delete(EventTable).where(
                EventTable.owner_id == self._owner_id,
                EventTable.id == event_id,
            )
        )
        await self._session.flush()
        logger.info("Deleted event %s for owner %s", event_id, self._owner_id)
        return result

    async def sweep_expired(self) -> list[str]:
        """Delete events whose date plus the retention window has passed."""
        stmt = select(EventTable.id, EventTable.event_date).where(
            EventTable.owner_id == self._owner_id,
            EventTable.event_date.is_not(None),
        )
        now = self._now()
        expired = [
            event_id
            for event_id, event_date in (await self._session.execute(stmt)).all()
            if retention_deadline(event_date, self._retention_days) < now
        ]
        for event_id in expired:
            await self.delete(event_id)
        if expired:
            logger.info("Swept %d expired event(s) for owner %s", len(expired), self._owner_id)
        return expired
