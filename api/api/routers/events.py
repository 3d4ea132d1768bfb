"""API router for event management and usage accounting.

Events are addressed by slug or id.  Configuration, status, collaborator
and deletion endpoints are owner-only; reads and usage endpoints also
resolve for collaborators.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from booth_core.models.event import EventMode, EventStatus, PaymentStatus
from booth_core.plans import Plan
from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import CallerDep, ResolverDep, SessionDep
from api.services.event_service import EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EventSettings(BaseModel):
    """Owner-editable settings.  Only fields that are set are applied."""

    name: str | None = Field(None, min_length=1, max_length=256)
    mode: EventMode | None = None
    plan: str | None = Field(None, max_length=64)
    photo_cap: int | None = Field(None, ge=0)
    ai_credits: int | None = Field(None, ge=0)
    allow_background_removal: bool | None = None
    allow_ai_backgrounds: bool | None = None
    allow_ai_filters: bool | None = None
    delivery_email: bool | None = None
    delivery_sms: bool | None = None
    watermark_enabled: bool | None = None
    gallery_public: bool | None = None
    gallery_zip_enabled: bool | None = None
    overlay_theme: str | None = Field(None, max_length=64)
    allowed_selections: int | None = Field(None, ge=1, le=100)
    payment_status: PaymentStatus | None = None
    event_date: date | None = None
    event_time: str | None = Field(None, max_length=16)


class CreateEventRequest(EventSettings):
    name: str = Field(..., min_length=1, max_length=256)
    slug: str | None = Field(None, max_length=128)
    status: EventStatus = EventStatus.LIVE


class StatusRequest(BaseModel):
    status: EventStatus


class CollaboratorsRequest(BaseModel):
    user_ids: list[str] = Field(default_factory=list, max_length=50)


class MarkPaidRequest(BaseModel):
    plan: str | None = Field(None, max_length=64)


class UsageRequest(BaseModel):
    photos: int = Field(0, ge=-10_000, le=10_000)
    ai_credits: int = Field(0, ge=-10_000, le=10_000)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.get("")
async def list_events(session: SessionDep, resolver: ResolverDep, caller_id: CallerDep) -> list[dict[str, Any]]:
    """List the caller's events, newest first."""
    return await EventService(session, resolver, caller_id).list_events()


@router.post("", status_code=201)
async def create_event(
    body: CreateEventRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    """Create an event.  Caps and flags default from the plan."""
    settings = body.model_dump(exclude_none=True, exclude={"name", "slug"})
    settings.setdefault("plan", Plan.FREE)
    return await EventService(session, resolver, caller_id).create_event(body.name, body.slug, **settings)


@router.get("/{event_ref}")
async def get_event(
    event_ref: str,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    return await EventService(session, resolver, caller_id).get_event(event_ref)


@router.patch("/{event_ref}")
async def update_event(
    event_ref: str,
    body: EventSettings,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    return await EventService(session, resolver, caller_id).update_event(
        event_ref, body.model_dump(exclude_none=True)
    )


@router.post("/{event_ref}/status")
async def set_status(
    event_ref: str,
    body: StatusRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    return await EventService(session, resolver, caller_id).set_status(event_ref, body.status)


@router.put("/{event_ref}/collaborators")
async def set_collaborators(
    event_ref: str,
    body: CollaboratorsRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    """Replace the collaborator list.  Requires a plan that allows collaborators."""
    return await EventService(session, resolver, caller_id).set_collaborators(event_ref, body.user_ids)


@router.post("/{event_ref}/payment")
async def mark_paid(
    event_ref: str,
    body: MarkPaidRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    return await EventService(session, resolver, caller_id).mark_paid(event_ref, body.plan)


@router.delete("/{event_ref}")
async def delete_event(
    event_ref: str,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    """Delete the event together with its stored sets, tokens and guests."""
    return await EventService(session, resolver, caller_id).delete_event(event_ref)


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@router.get("/{event_ref}/usage")
async def get_usage(
    event_ref: str,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    return await EventService(session, resolver, caller_id).usage(event_ref)


@router.post("/{event_ref}/usage/check")
async def check_usage(
    event_ref: str,
    body: UsageRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    """Pre-flight check; responds 402 when the request would pass a cap."""
    return await EventService(session, resolver, caller_id).check_usage(
        event_ref, photos=body.photos, ai_credits=body.ai_credits
    )


@router.post("/{event_ref}/usage")
async def record_usage(
    event_ref: str,
    body: UsageRequest,
    session: SessionDep,
    resolver: ResolverDep,
    caller_id: CallerDep,
) -> dict[str, Any]:
    """Record completed work against the event's counters."""
    return await EventService(session, resolver, caller_id).record_usage(
        event_ref, photos=body.photos, ai_credits=body.ai_credits
    )
