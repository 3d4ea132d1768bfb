"""Plan defaults, usage snapshots and caller-side quota checks.

Six plans control an event's caps and feature flags::

    free:                      photos=25,        ai=0,  watermark, no extras
    basic:                     photos=50,        ai=0,  zip downloads
    pro:                       photos=unlimited, ai=10, all features
    unlimited:                 photos=unlimited, ai=50, all features
    photographer-event:        photos=unlimited, ai=20, all features
    photographer-subscription: photos=unlimited, ai=40, all features

Historical plan identifiers are normalized before lookup.  Anything
unrecognised falls back to ``free``: an unknown plan under-provisions,
it never over-provisions.

Quota checks are pre-execution and live here, not in the usage ledger.
The caller checks a snapshot before running the costly operation and
increments the ledger only once that operation succeeded.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

from booth_core.errors import PlanRestriction, QuotaExceeded

logger = logging.getLogger(__name__)


class Plan(str, Enum):
    """Canonical plan identifiers."""

    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    UNLIMITED = "unlimited"
    PHOTOGRAPHER_EVENT = "photographer-event"
    PHOTOGRAPHER_SUBSCRIPTION = "photographer-subscription"


# Renamed plans from earlier billing catalogues.
_LEGACY_PLANS: dict[str, Plan] = {
    "event-basic": Plan.BASIC,
    "event-unlimited": Plan.PRO,
    "event-ai": Plan.UNLIMITED,
    "photographer-single": Plan.PHOTOGRAPHER_EVENT,
    "photographer-monthly": Plan.PHOTOGRAPHER_SUBSCRIPTION,
}


class PlanDefaults(BaseModel):
    """Caps and feature flags granted by a plan."""

    model_config = ConfigDict(frozen=True)

    photo_cap: int | None
    ai_credits: int
    overlays_all: bool
    premium_filters: bool
    watermark_enabled: bool
    sms_enabled: bool
    allow_ai_backgrounds: bool
    gallery_zip_enabled: bool
    can_add_collaborators: bool


_FREE = PlanDefaults(
    photo_cap=25,
    ai_credits=0,
    overlays_all=False,
    premium_filters=False,
    watermark_enabled=True,
    sms_enabled=False,
    allow_ai_backgrounds=False,
    gallery_zip_enabled=False,
    can_add_collaborators=False,
)


def _full_access(ai_credits: int) -> PlanDefaults:
    return PlanDefaults(
        photo_cap=None,
        ai_credits=ai_credits,
        overlays_all=True,
        premium_filters=True,
        watermark_enabled=False,
        sms_enabled=True,
        allow_ai_backgrounds=True,
        gallery_zip_enabled=True,
        can_add_collaborators=True,
    )


_PLAN_DEFAULTS: dict[Plan, PlanDefaults] = {
    Plan.FREE: _FREE,
    Plan.BASIC: _FREE.model_copy(
        update={"photo_cap": 50, "watermark_enabled": False, "gallery_zip_enabled": True},
    ),
    Plan.PRO: _full_access(10),
    Plan.UNLIMITED: _full_access(50),
    Plan.PHOTOGRAPHER_EVENT: _full_access(20),
    Plan.PHOTOGRAPHER_SUBSCRIPTION: _full_access(40),
}


def normalize_plan(value: str | Plan | None) -> Plan:
    """Map any stored or requested plan identifier to a canonical :class:`Plan`."""
    if isinstance(value, Plan):
        return value
    raw = (value or "").strip().lower()
    if raw in _LEGACY_PLANS:
        return _LEGACY_PLANS[raw]
    try:
        return Plan(raw)
    except ValueError:
        if raw:
            logger.warning("Unknown plan %r; falling back to %s", value, Plan.FREE.value)
        return Plan.FREE


def defaults_for(plan: str | Plan | None) -> PlanDefaults:
    """Return the caps and flags for *plan*.  Never raises."""
    return _PLAN_DEFAULTS.get(normalize_plan(plan), _FREE)


def apply_plan_defaults(plan: str | Plan | None) -> dict[str, Any]:
    """Column values written to an event when it moves onto *plan*."""
    canonical = normalize_plan(plan)
    defaults = defaults_for(canonical)
    return {
        "plan": canonical.value,
        "photo_cap": defaults.photo_cap,
        "ai_credits": defaults.ai_credits,
        "watermark_enabled": defaults.watermark_enabled,
        "gallery_zip_enabled": defaults.gallery_zip_enabled,
        "allow_ai_backgrounds": defaults.allow_ai_backgrounds,
        "allow_ai_filters": defaults.premium_filters,
        "delivery_sms": defaults.sms_enabled,
    }


# ---------------------------------------------------------------------------
# Usage snapshots
# ---------------------------------------------------------------------------


class UsageCounters(Protocol):
    plan: str
    photo_cap: int | None
    photo_used: int
    ai_credits: int
    ai_used: int


class UsageSnapshot(BaseModel):
    """Live usage against caps for one event."""

    model_config = ConfigDict(frozen=True)

    plan: Plan
    photo_cap: int | None
    photo_used: int
    remaining_photos: int | None
    ai_credits: int
    ai_used: int
    remaining_ai: int
    watermark: bool


def usage_snapshot(event: UsageCounters) -> UsageSnapshot:
    """Combine an event's stored counters with its effective caps.

    ``remaining_photos`` is ``None`` for unlimited plans and is clamped at
    zero, so a counter that overshot its cap (e.g. two uploads racing past
    the check) never reports a negative balance.
    """
    plan = normalize_plan(event.plan)
    cap = event.photo_cap
    used = event.photo_used or 0
    ai_cap = event.ai_credits or 0
    ai_used = event.ai_used or 0
    return UsageSnapshot(
        plan=plan,
        photo_cap=cap,
        photo_used=used,
        remaining_photos=None if cap is None else max(cap - used, 0),
        ai_credits=ai_cap,
        ai_used=ai_used,
        remaining_ai=max(ai_cap - ai_used, 0),
        watermark=bool(getattr(event, "watermark_enabled", defaults_for(plan).watermark_enabled)),
    )


# ---------------------------------------------------------------------------
# Caller-side checks
# ---------------------------------------------------------------------------


def check_photo_quota(snapshot: UsageSnapshot, requested: int = 1) -> None:
    """Raise :class:`QuotaExceeded` if *requested* photos would pass the cap."""
    if snapshot.remaining_photos is None or requested <= 0:
        return
    if requested > snapshot.remaining_photos:
        msg = (
            f"Photo limit reached ({snapshot.photo_used}/{snapshot.photo_cap}). "
            "Upgrade the event plan to capture more photos."
        )
        logger.warning(
            "Photo quota exceeded: plan=%s used=%d cap=%s requested=%d",
            snapshot.plan.value,
            snapshot.photo_used,
            snapshot.photo_cap,
            requested,
        )
        raise QuotaExceeded("photos", msg)


def check_ai_quota(snapshot: UsageSnapshot, requested: int = 1) -> None:
    """Raise :class:`QuotaExceeded` if *requested* AI credits are not available."""
    if requested <= 0:
        return
    if requested > snapshot.remaining_ai:
        msg = (
            f"AI credits exhausted ({snapshot.ai_used}/{snapshot.ai_credits}). "
            "Upgrade the event plan or buy more credits to keep generating backgrounds."
        )
        logger.warning(
            "AI quota exceeded: plan=%s used=%d cap=%d requested=%d",
            snapshot.plan.value,
            snapshot.ai_used,
            snapshot.ai_credits,
            requested,
        )
        raise QuotaExceeded("ai_credits", msg)


def ensure_can_add_collaborators(plan: str | Plan | None) -> None:
    """Raise :class:`PlanRestriction` unless *plan* allows collaborators."""
    canonical = normalize_plan(plan)
    if not defaults_for(canonical).can_add_collaborators:
        raise PlanRestriction(
            f"Collaborators are not available on the '{canonical.value}' plan. "
            "Upgrade to Pro or a photographer plan to invite collaborators."
        )
