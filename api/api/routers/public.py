"""Guest-facing endpoints reached through emailed or shared links.

These routes carry no bearer token.  The owner id and event slug in the
path select the scope; the link token authorizes the request.  Every
token failure renders the same 404.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from booth_core.models.selection import SelectionChoice
from booth_core.storage import LocalObjectStore
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from api.dependencies import DeliveryServiceDep, GuestServiceDep, ObjectStoreDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public/{owner_id}/{event_slug}", tags=["public"])

objects_router = APIRouter(prefix="/objects", tags=["public"])


class SubmitSelectionRequest(BaseModel):
    selections: list[SelectionChoice] = Field(default_factory=list, max_length=100)


def _attachment_headers(filename: str) -> dict[str, str]:
    return {
        "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
        "Cache-Control": "private, no-store",
    }


@router.get("/production/{set_id}/{filename}")
async def download(
    owner_id: str,
    event_slug: str,
    set_id: str,
    filename: str,
    request: Request,
    service: DeliveryServiceDep,
    token: str = Query("", max_length=256),
) -> Response:
    """Serve one delivered file, or the zip bundle, behind its link token."""
    ip = request.client.host if request.client else None
    data, content_type, name = await service.open_download(owner_id, event_slug, set_id, filename, token, ip)
    return Response(content=data, media_type=content_type, headers=_attachment_headers(name))


@router.get("/selections/{token}")
async def get_selection(
    owner_id: str,
    event_slug: str,
    token: str,
    service: GuestServiceDep,
) -> dict[str, Any]:
    return await service.get_selection(owner_id, event_slug, token)


@router.post("/selections/{token}")
async def submit_selection(
    owner_id: str,
    event_slug: str,
    token: str,
    body: SubmitSelectionRequest,
    service: GuestServiceDep,
) -> dict[str, Any]:
    """Submit a guest's picks.  The link stays usable until it expires."""
    return await service.submit_selection(owner_id, event_slug, token, body.selections)


@objects_router.get("/{key:path}")
async def get_object(
    key: str,
    objects: ObjectStoreDep,
    expires: int = Query(...),
    signature: str = Query(..., max_length=128),
) -> Response:
    """Serve a presigned object from the local filesystem store."""
    if not isinstance(objects, LocalObjectStore) or not objects.verify_signature(key, expires, signature):
        raise HTTPException(status_code=404, detail="Not found")
    fetched = await objects.fetch(key)
    if fetched is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=fetched.data, media_type=fetched.content_type)
