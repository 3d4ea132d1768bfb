"""Booth captures and the backgrounds guests pair them with."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PhotoRecord(BaseModel):
    """A finished booth capture, filed under the guest's email."""

    id: str
    owner_id: str
    event_id: str
    email: str
    original_name: str
    content_type: str = "image/png"
    storage_key: str
    url: str | None = None
    background_id: str | None = None
    created_at: datetime


class Background(BaseModel):
    id: str
    owner_id: str
    event_id: str
    name: str
    description: str = ""
    content_type: str = "image/png"
    storage_key: str
    url: str | None = None
    created_at: datetime
