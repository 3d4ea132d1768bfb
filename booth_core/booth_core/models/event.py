"""Event records and their load-time upcast.

Rows written by older releases may lack caps, counters or flags, or carry a
plan identifier that has since been renamed.  :func:`with_event_defaults` is
the single upcast step that brings any stored shape up to
``CURRENT_EVENT_SCHEMA``; business logic only ever sees its output.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from booth_core.plans import Plan, defaults_for, normalize_plan

CURRENT_EVENT_SCHEMA = 2

# Plan assumed for records written before plans existed.
LEGACY_DEFAULT_PLAN = Plan.BASIC

DEFAULT_ALLOWED_SELECTIONS = 3


class EventMode(str, Enum):
    SELF_SERVE = "self-serve"
    PHOTOGRAPHER = "photographer"


class EventStatus(str, Enum):
    DRAFT = "draft"
    LIVE = "live"
    CLOSED = "closed"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"


class EventRecord(BaseModel):
    """A fully upcast event as seen by the rest of the system."""

    id: str
    owner_id: str
    name: str
    slug: str
    mode: EventMode = EventMode.SELF_SERVE
    status: EventStatus = EventStatus.LIVE
    plan: Plan = LEGACY_DEFAULT_PLAN
    photo_cap: int | None = None
    photo_used: int = 0
    ai_credits: int = 0
    ai_used: int = 0
    allow_background_removal: bool = True
    allow_ai_backgrounds: bool = False
    allow_ai_filters: bool = False
    delivery_email: bool = True
    delivery_sms: bool = False
    watermark_enabled: bool = False
    gallery_public: bool = False
    gallery_zip_enabled: bool = False
    overlay_theme: str = "default"
    allowed_selections: int = DEFAULT_ALLOWED_SELECTIONS
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    collaborators: list[str] = Field(default_factory=list)
    event_date: date | None = None
    event_time: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    schema_version: int = CURRENT_EVENT_SCHEMA


# camelCase keys used by the original JSON document store.
_LEGACY_FIELDS: dict[str, str] = {
    "ownerId": "owner_id",
    "ownerUid": "owner_id",
    "photoCap": "photo_cap",
    "photoUsed": "photo_used",
    "aiCredits": "ai_credits",
    "aiUsed": "ai_used",
    "allowBackgroundRemoval": "allow_background_removal",
    "allowAiBackgrounds": "allow_ai_backgrounds",
    "allowAiFilters": "allow_ai_filters",
    "deliveryEmail": "delivery_email",
    "deliverySms": "delivery_sms",
    "watermarkEnabled": "watermark_enabled",
    "galleryPublic": "gallery_public",
    "galleryZipEnabled": "gallery_zip_enabled",
    "overlayTheme": "overlay_theme",
    "allowedSelections": "allowed_selections",
    "paymentStatus": "payment_status",
    "eventDate": "event_date",
    "eventTime": "event_time",
    "createdAt": "created_at",
}


def _rename_legacy(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in data.items():
        out[_LEGACY_FIELDS.get(key, key)] = value
    roles = out.pop("roles", None)
    if isinstance(roles, Mapping) and out.get("collaborators") is None:
        out["collaborators"] = list(roles.get("collaborator") or [])
    return out


def with_event_defaults(event: EventRecord | Mapping[str, Any]) -> EventRecord:
    """Upcast a stored event to the current schema.

    Missing caps and plan-driven flags come from the plan's defaults;
    counters are zero-filled.  Applying the upcast to its own output returns
    an equal record.
    """
    if isinstance(event, EventRecord):
        data = event.model_dump()
    else:
        data = _rename_legacy(dict(event))

    plan = normalize_plan(data.get("plan") or LEGACY_DEFAULT_PLAN)
    defaults = defaults_for(plan)

    def pick(key: str, fallback: Any) -> Any:
        value = data.get(key)
        return fallback if value is None else value

    data.update(
        plan=plan,
        mode=pick("mode", EventMode.SELF_SERVE),
        status=pick("status", EventStatus.LIVE),
        photo_cap=pick("photo_cap", defaults.photo_cap),
        photo_used=max(0, pick("photo_used", 0)),
        ai_credits=pick("ai_credits", defaults.ai_credits),
        ai_used=max(0, pick("ai_used", 0)),
        allow_background_removal=pick("allow_background_removal", True),
        allow_ai_backgrounds=pick("allow_ai_backgrounds", False),
        allow_ai_filters=pick("allow_ai_filters", False),
        delivery_email=pick("delivery_email", True),
        delivery_sms=pick("delivery_sms", False),
        watermark_enabled=pick("watermark_enabled", defaults.watermark_enabled),
        gallery_public=pick("gallery_public", False),
        gallery_zip_enabled=pick("gallery_zip_enabled", defaults.gallery_zip_enabled),
        overlay_theme=pick("overlay_theme", "default"),
        allowed_selections=pick("allowed_selections", DEFAULT_ALLOWED_SELECTIONS),
        payment_status=pick("payment_status", PaymentStatus.UNPAID),
        collaborators=list(pick("collaborators", [])),
        schema_version=CURRENT_EVENT_SCHEMA,
    )
    if data.get("created_at") is None:
        data.pop("created_at", None)
    return EventRecord.model_validate(data)
