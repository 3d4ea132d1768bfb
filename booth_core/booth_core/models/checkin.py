"""Guest checkins and pending-upload notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Checkin(BaseModel):
    id: str
    owner_id: str
    event_id: str
    name: str
    email: str
    created_at: datetime


class Notification(BaseModel):
    """A ping telling the owner that *count* photos await upload for *email*."""

    id: str
    owner_id: str
    event_id: str
    email: str
    count: int
    payload: dict[str, Any] | None = None
    created_at: datetime
