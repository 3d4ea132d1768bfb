"""Operator endpoints for production sets of any tenant.

Guarded by the shared ``X-Admin-Token`` header instead of a bearer
token; the routes 404 when no admin token is configured.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from api.dependencies import AdminDep, DeliveryServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/production/{owner_id}/{event_id}",
    tags=["admin"],
    dependencies=[AdminDep],
)


@router.get("")
async def list_production(owner_id: str, event_id: str, service: DeliveryServiceDep) -> list[dict[str, Any]]:
    """List an event's live production sets with preview URLs."""
    return await service.admin_list(owner_id, event_id)


@router.delete("")
async def delete_all_production(owner_id: str, event_id: str, service: DeliveryServiceDep) -> dict[str, Any]:
    return await service.admin_delete(owner_id, event_id)


@router.delete("/{set_id}")
async def delete_production(
    owner_id: str,
    event_id: str,
    set_id: str,
    service: DeliveryServiceDep,
) -> dict[str, Any]:
    return await service.admin_delete(owner_id, event_id, set_id)


@router.post("/{set_id}/resend")
async def resend_production(
    owner_id: str,
    event_id: str,
    set_id: str,
    service: DeliveryServiceDep,
) -> dict[str, Any]:
    """Email the download link for a set to its recipient again."""
    return await service.admin_resend(owner_id, event_id, set_id)
