"""Service layer for guest-facing flows: media, selections, checkins, notifications."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any

from booth_core.config import CoreSettings
from booth_core.delivery.checkin_store import CheckinStore
from booth_core.delivery.media_store import BackgroundStore, PhotoStore
from booth_core.delivery.notification_store import NotificationStore
from booth_core.delivery.selection_store import SelectionStore
from booth_core.errors import MissingParameter, NotFound, TokenInvalid
from booth_core.events.event_store import slugify
from booth_core.models.event import EventRecord
from booth_core.models.media import Background, PhotoRecord
from booth_core.models.production import UploadedFile
from booth_core.models.scope import TenantScope
from booth_core.models.selection import SelectionChoice, SelectionToken
from booth_core.plans import usage_snapshot
from booth_core.scope import ScopeResolver
from booth_core.state.repository import Clock
from booth_core.storage import ObjectStore
from sqlalchemy.ext.asyncio import AsyncSession

from api.config import APISettings
from api.services.delivery_service import DeliveryService
from api.services.mailer import Mailer

logger = logging.getLogger(__name__)

# Lifetime of presigned URLs handed to a guest's selection page.
_MEDIA_URL_TTL_SECONDS = 3600


def delivered_filename(photo: PhotoRecord, background: Background | None) -> str:
    """``{photo stem}-{background name}{suffix}``, or the photo's own name."""
    if background is None:
        return photo.original_name
    path = PurePosixPath(photo.original_name)
    stem = path.stem or photo.id
    return f"{stem}-{slugify(background.name, fallback=background.id)}{path.suffix or '.png'}"


class GuestService:
    def __init__(
        self,
        session: AsyncSession,
        resolver: ScopeResolver,
        objects: ObjectStore,
        core: CoreSettings,
        settings: APISettings,
        mailer: Mailer,
        clock: Clock,
    ) -> None:
        self._session = session
        self._resolver = resolver
        self._objects = objects
        self._core = core
        self._settings = settings
        self._mailer = mailer
        self._clock = clock
        self._delivery = DeliveryService(session, resolver, objects, core, settings, mailer, clock)

    def _selections(self, scope: TenantScope) -> SelectionStore:
        return SelectionStore(
            self._session, scope, ttl_hours=self._core.selection_ttl_hours, now=self._clock
        )

    def _photos(self, scope: TenantScope) -> PhotoStore:
        return PhotoStore(
            self._session, scope, self._objects, key_prefix=self._core.key_prefix, now=self._clock
        )

    def _backgrounds(self, scope: TenantScope) -> BackgroundStore:
        return BackgroundStore(
            self._session, scope, self._objects, key_prefix=self._core.key_prefix, now=self._clock
        )

    async def _media_view(self, item: PhotoRecord | Background) -> dict[str, Any]:
        """Model dump with a usable ``url``; storage keys stay server-side."""
        data = item.model_dump(mode="json", exclude={"storage_key", "owner_id", "event_id"})
        if not data.get("url"):
            data["url"] = await self._objects.presign(item.storage_key, _MEDIA_URL_TTL_SECONDS)
        return data

    def share_url(self, scope: TenantScope, token: str) -> str:
        base = self._settings.app_base_url.rstrip("/")
        return f"{base}/api/v1/public/{scope.owner_id}/{scope.event_slug}/selections/{token}"

    # -- photos / backgrounds -----------------------------------------------

    async def upload_photo(
        self,
        scope: TenantScope,
        email: str,
        item: UploadedFile,
        background_id: str | None = None,
    ) -> dict[str, Any]:
        photo = await self._photos(scope).save(email, item, background_id)
        return await self._media_view(photo)

    async def list_photos(self, scope: TenantScope, email: str | None = None) -> list[dict[str, Any]]:
        store = self._photos(scope)
        photos = await (store.list_by_email(email) if email else store.list())
        return [await self._media_view(p) for p in photos]

    async def remove_photos(self, scope: TenantScope, email: str) -> dict[str, Any]:
        """Delete every photo filed under *email*."""
        store = self._photos(scope)
        photos = await store.list_by_email(email)
        result = await store.remove([p.id for p in photos])
        return {
            "deleted": len(photos),
            "objects_deleted": len(result.succeeded),
            "objects_failed": len(result.failed),
        }

    async def add_background(
        self, scope: TenantScope, name: str, item: UploadedFile, description: str = ""
    ) -> dict[str, Any]:
        background = await self._backgrounds(scope).add(name, item, description)
        return await self._media_view(background)

    async def list_backgrounds(self, scope: TenantScope) -> list[dict[str, Any]]:
        return [await self._media_view(b) for b in await self._backgrounds(scope).list()]

    async def delete_background(self, scope: TenantScope, background_id: str) -> dict[str, Any]:
        result = await self._backgrounds(scope).delete(background_id)
        return {
            "deleted": background_id,
            "objects_deleted": len(result.succeeded),
            "objects_failed": len(result.failed),
        }

    # -- selections ---------------------------------------------------------

    async def start_selection(self, scope: TenantScope, email: str, send_email: bool = False) -> dict[str, Any]:
        selection = await self._selections(scope).create(email)
        share_url = self.share_url(scope, selection.token)
        emailed = False
        if send_email:
            emailed = await self._mailer.send_selection_link(selection.email, scope.event_name, share_url)
        return {
            "token": selection.token,
            "share_url": share_url,
            "expires_at": selection.expires_at.isoformat(),
            "emailed": emailed,
        }

    async def _resolve_selection(
        self, owner_id: str, event_slug: str, token: str
    ) -> tuple[TenantScope, EventRecord, SelectionToken]:
        try:
            scope, event = await self._resolver.resolve_public(owner_id, event_slug)
        except NotFound as exc:
            raise TokenInvalid() from exc
        selection = await self._selections(scope).find(token)
        if selection is None:
            raise TokenInvalid()
        return scope, event, selection

    async def get_selection(self, owner_id: str, event_slug: str, token: str) -> dict[str, Any]:
        scope, event, selection = await self._resolve_selection(owner_id, event_slug, token)
        usage = usage_snapshot(event)
        return {
            "email": selection.email,
            "photos": await self.list_photos(scope, selection.email),
            "backgrounds": await self.list_backgrounds(scope),
            "allowed_selections": event.allowed_selections,
            "usage": usage.model_dump(mode="json"),
            "event": {
                "name": event.name,
                "plan": event.plan.value,
                "watermark": usage.watermark,
            },
        }

    async def _selected_files(
        self, scope: TenantScope, email: str, choices: list[SelectionChoice]
    ) -> list[UploadedFile]:
        """Load the chosen photos; each must belong to the guest."""
        photos = self._photos(scope)
        backgrounds = self._backgrounds(scope)
        files: list[UploadedFile] = []
        for choice in choices:
            photo = await photos.get(choice.photo_id)
            if photo is None or photo.email != email:
                raise NotFound(f"Photo {choice.photo_id} was not found.")
            background = None
            if choice.background_id:
                background = await backgrounds.get(choice.background_id)
                if background is None:
                    raise NotFound(f"Background {choice.background_id} not found.")
            fetched = await photos.fetch(photo.storage_key)
            files.append(
                UploadedFile(
                    filename=delivered_filename(photo, background),
                    data=fetched.data,
                    content_type=photo.content_type or fetched.content_type,
                )
            )
        return files

    async def submit_selection(
        self,
        owner_id: str,
        event_slug: str,
        token: str,
        choices: list[SelectionChoice],
    ) -> dict[str, Any]:
        """Deliver the guest's picks as a production set and stamp the token used.

        The picks go through the regular delivery path: photo quota check,
        stored set, ledger increment, then the link email.  The owner also
        gets a notification carrying the chosen pairs.
        """
        scope, event, selection = await self._resolve_selection(owner_id, event_slug, token)
        allowed = event.allowed_selections
        if not choices:
            raise MissingParameter("No selections provided.")
        if len(choices) > allowed:
            raise MissingParameter(f"You can select up to {allowed} photo(s).")

        files = await self._selected_files(scope, selection.email, choices)
        delivered = await self._delivery.deliver(scope, event, selection.email, files)
        production_id = delivered["production"]["id"]

        await NotificationStore(self._session, scope, now=self._clock).add(
            selection.email,
            len(choices),
            payload={
                "selections": [c.model_dump() for c in choices],
                "production_id": production_id,
            },
        )
        await self._selections(scope).mark_used(token)
        logger.info("Delivered %d selection(s) for event %s", len(choices), scope.event_id)
        return {
            "status": "ok",
            "count": len(choices),
            "production_id": production_id,
            "download_url": delivered["download_url"],
            "emailed": delivered["emailed"],
        }

    # -- checkins / notifications -------------------------------------------

    async def list_checkins(self, scope: TenantScope) -> list[dict[str, Any]]:
        items = await CheckinStore(self._session, scope, now=self._clock).list()
        return [c.model_dump(mode="json") for c in items]

    async def add_checkin(self, scope: TenantScope, name: str, email: str) -> dict[str, Any]:
        checkin = await CheckinStore(self._session, scope, now=self._clock).add(name, email)
        return checkin.model_dump(mode="json")

    async def remove_checkin(self, scope: TenantScope, email: str) -> list[dict[str, Any]]:
        remaining = await CheckinStore(self._session, scope, now=self._clock).remove_by_email(email)
        return [c.model_dump(mode="json") for c in remaining]

    async def add_notification(self, scope: TenantScope, email: str, count: int) -> dict[str, Any]:
        item = await NotificationStore(self._session, scope, now=self._clock).add(email, count)
        return item.model_dump(mode="json")

    async def pop_notifications(self, scope: TenantScope) -> list[dict[str, Any]]:
        items = await NotificationStore(self._session, scope, now=self._clock).pop()
        return [n.model_dump(mode="json") for n in items]
