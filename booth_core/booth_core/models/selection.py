"""Guest selection links."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SelectionToken(BaseModel):
    """A time-boxed link that lets a guest pick photos for delivery.

    ``used_at`` is informational.  A used token keeps resolving until it
    expires.
    """

    token: str = Field(..., repr=False)
    owner_id: str
    event_id: str
    email: str
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None


class SelectionChoice(BaseModel):
    """One photo/background pair a guest picked."""

    photo_id: str = Field(..., min_length=1)
    background_id: str | None = None
