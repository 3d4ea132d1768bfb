"""Event lifecycle: creation, configuration, payment and expiry."""

from booth_core.events.event_store import EventStore, scope_for, slugify

__all__ = ["EventStore", "scope_for", "slugify"]
