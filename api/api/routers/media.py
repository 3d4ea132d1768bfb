"""API router for booth captures and event backgrounds.

Photos are filed under the guest's email; a selection link lists them
together with the event's backgrounds.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, File, Form, Query, UploadFile

from api.dependencies import EventScopeDep, GuestServiceDep, SettingsDep
from api.routers.production import read_uploads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_ref}", tags=["media"])


# ---------------------------------------------------------------------------
# Photos
# ---------------------------------------------------------------------------


@router.post("/photos", status_code=201)
async def upload_photo(
    resolved: EventScopeDep,
    service: GuestServiceDep,
    settings: SettingsDep,
    email: str = Form(..., min_length=3, max_length=320),
    file: UploadFile = File(...),
    background_id: str | None = Form(None, max_length=64),
) -> dict[str, Any]:
    """File one capture under the guest's email."""
    scope, _ = resolved
    (upload,) = await read_uploads([file], 1, settings.max_upload_bytes)
    return await service.upload_photo(scope, email, upload, background_id)


@router.get("/photos")
async def list_photos(
    resolved: EventScopeDep,
    service: GuestServiceDep,
    email: str | None = Query(None, max_length=320),
) -> list[dict[str, Any]]:
    scope, _ = resolved
    return await service.list_photos(scope, email)


@router.delete("/photos")
async def remove_photos(
    resolved: EventScopeDep,
    service: GuestServiceDep,
    email: str = Query(..., min_length=3, max_length=320),
) -> dict[str, Any]:
    """Delete every capture filed under *email*."""
    scope, _ = resolved
    return await service.remove_photos(scope, email)


# ---------------------------------------------------------------------------
# Backgrounds
# ---------------------------------------------------------------------------


@router.post("/backgrounds", status_code=201)
async def add_background(
    resolved: EventScopeDep,
    service: GuestServiceDep,
    settings: SettingsDep,
    name: str = Form(..., min_length=1, max_length=256),
    description: str = Form("", max_length=1024),
    file: UploadFile = File(...),
) -> dict[str, Any]:
    scope, _ = resolved
    (upload,) = await read_uploads([file], 1, settings.max_upload_bytes)
    return await service.add_background(scope, name, upload, description)


@router.get("/backgrounds")
async def list_backgrounds(resolved: EventScopeDep, service: GuestServiceDep) -> list[dict[str, Any]]:
    scope, _ = resolved
    return await service.list_backgrounds(scope)


@router.delete("/backgrounds/{background_id}")
async def delete_background(
    background_id: str,
    resolved: EventScopeDep,
    service: GuestServiceDep,
) -> dict[str, Any]:
    scope, _ = resolved
    return await service.delete_background(scope, background_id)
