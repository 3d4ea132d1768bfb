"""API router for production delivery uploads."""

from __future__ import annotations

import logging
from typing import Any

from booth_core.errors import MissingParameter
from booth_core.models.production import UploadedFile
from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from api.dependencies import DeliveryServiceDep, EventScopeDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events/{event_ref}/production", tags=["production"])

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


async def read_uploads(files: list[UploadFile], max_files: int, max_bytes: int) -> list[UploadedFile]:
    """Read multipart uploads into memory, enforcing count and size limits."""
    if not files:
        raise MissingParameter("At least one file is required")
    if len(files) > max_files:
        raise HTTPException(status_code=413, detail=f"At most {max_files} files per delivery")
    out: list[UploadedFile] = []
    for upload in files:
        data = await upload.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise HTTPException(status_code=413, detail=f"File '{upload.filename}' is too large")
        out.append(
            UploadedFile(
                filename=upload.filename or "",
                data=data,
                content_type=upload.content_type or _DEFAULT_CONTENT_TYPE,
            )
        )
    return out


@router.post("", status_code=201)
async def deliver(
    resolved: EventScopeDep,
    service: DeliveryServiceDep,
    settings: SettingsDep,
    email: str = Form(..., min_length=3, max_length=320),
    files: list[UploadFile] = File(...),
) -> dict[str, Any]:
    """Store photos for a guest and email them a download link.

    Responds 402 when the event's photo cap would be exceeded; nothing is
    stored in that case.
    """
    scope, event = resolved
    uploads = await read_uploads(files, settings.max_upload_files, settings.max_upload_bytes)
    return await service.deliver(scope, event, email, uploads)
