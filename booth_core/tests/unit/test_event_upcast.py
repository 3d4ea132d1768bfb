"""Tests for the event load-time upcast."""

from __future__ import annotations

from booth_core.models.event import (
    CURRENT_EVENT_SCHEMA,
    EventStatus,
    PaymentStatus,
    with_event_defaults,
)
from booth_core.plans import Plan


def _legacy() -> dict[str, object]:
    return {
        "id": "evt-1",
        "ownerUid": "owner-a",
        "name": "Wedding",
        "slug": "wedding",
        "photoUsed": 12,
        "roles": {"collaborator": ["helper-1"]},
    }


class TestWithEventDefaults:
    def test_legacy_record_gets_basic_plan_defaults(self) -> None:
        event = with_event_defaults(_legacy())
        assert event.plan is Plan.BASIC
        assert event.photo_cap == 50
        assert event.photo_used == 12
        assert event.ai_used == 0
        assert event.status is EventStatus.LIVE
        assert event.payment_status is PaymentStatus.UNPAID
        assert event.schema_version == CURRENT_EVENT_SCHEMA

    def test_camel_case_and_roles_are_mapped(self) -> None:
        event = with_event_defaults(_legacy())
        assert event.owner_id == "owner-a"
        assert event.collaborators == ["helper-1"]

    def test_idempotent(self) -> None:
        once = with_event_defaults(_legacy())
        twice = with_event_defaults(once)
        assert twice == once

    def test_explicit_values_win_over_plan_defaults(self) -> None:
        event = with_event_defaults({**_legacy(), "plan": "free", "photo_cap": 5, "watermark_enabled": False})
        assert event.photo_cap == 5
        assert event.watermark_enabled is False

    def test_renamed_plan_is_normalized(self) -> None:
        event = with_event_defaults({**_legacy(), "plan": "event-unlimited"})
        assert event.plan is Plan.PRO
        assert event.photo_cap is None

    def test_negative_counters_are_clamped(self) -> None:
        event = with_event_defaults({**_legacy(), "photoUsed": -4})
        assert event.photo_used == 0
