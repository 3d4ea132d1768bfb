"""API router modules for the BoothOS API."""

from __future__ import annotations

from api.routers import admin, events, guests, health, media, production, public

__all__ = [
    "admin",
    "events",
    "guests",
    "health",
    "media",
    "production",
    "public",
]
