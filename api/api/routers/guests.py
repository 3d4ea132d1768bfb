"""API routers for guest-facing records of an event.

Selection links, checkins and the notification queue, all addressed
under ``/events/{event_ref}`` and scoped to the resolved event.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from api.dependencies import EventScopeDep, GuestServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_ref}", tags=["guests"])


class CreateSelectionRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    send_email: bool = Field(False, description="Email the share link to the guest.")


class CheckinRequest(BaseModel):
    name: str = Field("", max_length=256)
    email: str = Field(..., min_length=3, max_length=320)


class NotificationRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    count: int = Field(..., ge=0, le=1000)


# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------


@router.post("/selections", status_code=201)
async def create_selection(
    body: CreateSelectionRequest,
    resolved: EventScopeDep,
    service: GuestServiceDep,
) -> dict[str, Any]:
    """Issue a selection link for a guest.  The token is returned once."""
    scope, _ = resolved
    return await service.start_selection(scope, body.email, send_email=body.send_email)


# ---------------------------------------------------------------------------
# Checkins
# ---------------------------------------------------------------------------


@router.get("/checkins")
async def list_checkins(resolved: EventScopeDep, service: GuestServiceDep) -> list[dict[str, Any]]:
    scope, _ = resolved
    return await service.list_checkins(scope)


@router.post("/checkins", status_code=201)
async def add_checkin(
    body: CheckinRequest,
    resolved: EventScopeDep,
    service: GuestServiceDep,
) -> dict[str, Any]:
    """Add a guest, or refresh the name of one already checked in."""
    scope, _ = resolved
    return await service.add_checkin(scope, body.name, body.email)


@router.delete("/checkins")
async def remove_checkin(
    resolved: EventScopeDep,
    service: GuestServiceDep,
    email: str = Query(..., min_length=3, max_length=320),
) -> list[dict[str, Any]]:
    """Remove a guest by email and return the remaining checkins."""
    scope, _ = resolved
    return await service.remove_checkin(scope, email)


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@router.post("/notifications", status_code=201)
async def add_notification(
    body: NotificationRequest,
    resolved: EventScopeDep,
    service: GuestServiceDep,
) -> dict[str, Any]:
    scope, _ = resolved
    return await service.add_notification(scope, body.email, body.count)


@router.get("/notifications")
async def pop_notifications(resolved: EventScopeDep, service: GuestServiceDep) -> list[dict[str, Any]]:
    """Drain the queue: returns pending notifications oldest first and deletes them."""
    scope, _ = resolved
    return await service.pop_notifications(scope)
