"""Scoped delivery stores: production sets, media, selections, checkins, usage."""

from booth_core.delivery.checkin_store import CheckinStore
from booth_core.delivery.media_store import BackgroundStore, PhotoStore
from booth_core.delivery.notification_store import NotificationStore
from booth_core.delivery.production_store import ProductionStore
from booth_core.delivery.purge import partition_expired
from booth_core.delivery.selection_store import SelectionStore
from booth_core.delivery.usage_ledger import UsageLedger

__all__ = [
    "BackgroundStore",
    "CheckinStore",
    "NotificationStore",
    "PhotoStore",
    "ProductionStore",
    "SelectionStore",
    "UsageLedger",
    "partition_expired",
]
