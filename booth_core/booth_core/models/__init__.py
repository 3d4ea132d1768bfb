"""Pydantic models shared by the stores and the API layer."""

from booth_core.models.checkin import Checkin, Notification, normalize_email
from booth_core.models.media import Background, PhotoRecord
from booth_core.models.event import (
    CURRENT_EVENT_SCHEMA,
    EventMode,
    EventRecord,
    EventStatus,
    PaymentStatus,
    with_event_defaults,
)
from booth_core.models.production import (
    BUNDLE_FILENAME,
    DownloadEvent,
    ProductionAttachment,
    ProductionSet,
    UploadedFile,
)
from booth_core.models.scope import TenantScope
from booth_core.models.selection import SelectionChoice, SelectionToken

__all__ = [
    "BUNDLE_FILENAME",
    "Background",
    "CURRENT_EVENT_SCHEMA",
    "Checkin",
    "DownloadEvent",
    "EventMode",
    "EventRecord",
    "EventStatus",
    "Notification",
    "PaymentStatus",
    "PhotoRecord",
    "ProductionAttachment",
    "ProductionSet",
    "SelectionChoice",
    "SelectionToken",
    "TenantScope",
    "UploadedFile",
    "normalize_email",
    "with_event_defaults",
]
