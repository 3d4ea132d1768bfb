"""Service layer for production delivery.

Coordinates the quota check, the production store, the usage ledger and
the mail relay for an upload, and serves guest downloads behind their
tokenized links.
"""

from __future__ import annotations

import logging
from typing import Any

from booth_core.config import CoreSettings
from booth_core.delivery.production_store import ProductionStore
from booth_core.delivery.usage_ledger import UsageLedger
from booth_core.errors import NotFound, TokenInvalid
from booth_core.models.event import EventRecord
from booth_core.models.production import ProductionSet, UploadedFile
from booth_core.models.scope import TenantScope
from booth_core.plans import check_photo_quota, usage_snapshot
from booth_core.scope import ScopeResolver
from booth_core.state.repository import Clock
from booth_core.storage import ObjectStore
from sqlalchemy.ext.asyncio import AsyncSession

from api.config import APISettings
from api.services.mailer import Mailer

logger = logging.getLogger(__name__)

# Lifetime of presigned preview URLs in admin listings.
_PREVIEW_TTL_SECONDS = 3600


def set_to_dict(production: ProductionSet) -> dict[str, Any]:
    """Public view of a production set; the download token is left out."""
    return production.model_dump(mode="json", exclude={"download_token"})


class DeliveryService:
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

    def store(self, scope: TenantScope) -> ProductionStore:
        return ProductionStore(
            self._session,
            scope,
            self._objects,
            key_prefix=self._core.key_prefix,
            ttl_hours=self._core.production_ttl_hours,
            now=self._clock,
        )

    def download_link(self, scope: TenantScope, production: ProductionSet) -> str:
        base = self._settings.app_base_url.rstrip("/")
        filename = production.bundle_filename or production.attachments[0].filename
        return (
            f"{base}/api/v1/public/{scope.owner_id}/{scope.event_slug}"
            f"/production/{production.id}/{filename}?token={production.download_token}"
        )

    async def _email_link(self, scope: TenantScope, event_name: str, production: ProductionSet) -> bool:
        return await self._mailer.send_delivery_link(
            production.email,
            event_name,
            self.download_link(scope, production),
            production.token_expires_at,
        )

    # -- owner side ---------------------------------------------------------

    async def deliver(
        self,
        scope: TenantScope,
        event: EventRecord,
        email: str,
        files: list[UploadedFile],
    ) -> dict[str, Any]:
        """Store *files* as a production set and email the download link.

        The photo quota is checked before anything is uploaded and the
        ledger is only incremented once the set is saved.
        """
        check_photo_quota(usage_snapshot(event), len(files))
        production = await self.store(scope).save(email, files)
        _, snapshot = await UsageLedger(self._session).increment(scope, photos=len(files))
        emailed = False
        if event.delivery_email:
            emailed = await self._email_link(scope, event.name, production)
        return {
            "production": set_to_dict(production),
            "download_url": self.download_link(scope, production),
            "emailed": emailed,
            "usage": snapshot.model_dump(mode="json"),
        }

    # -- guest side ---------------------------------------------------------

    async def open_download(
        self,
        owner_id: str,
        event_slug: str,
        set_id: str,
        filename: str,
        token: str,
        ip: str | None = None,
    ) -> tuple[bytes, str, str]:
        """Verify a guest link and return ``(data, content_type, filename)``.

        Raises
        ------
        TokenInvalid
            For an unknown set or a wrong token; ``TokenExpired`` for an
            expired one.  Both render identically.
        """
        try:
            scope, _ = await self._resolver.resolve_public(owner_id, event_slug)
        except NotFound as exc:
            raise TokenInvalid() from exc
        store = self.store(scope)
        try:
            await store.authorize(set_id, token)
        except TokenInvalid:
            # Keep the purge an expired token may have triggered.
            await self._session.commit()
            raise
        fetched = await store.fetch_attachment(set_id, filename)
        if fetched is None:
            raise NotFound("File not found")
        await store.record_download(set_id, ip)
        logger.info("Served %s from production set %s", filename, set_id)
        return fetched

    # -- admin side ---------------------------------------------------------

    async def _admin_scope(self, owner_id: str, event_id: str) -> tuple[TenantScope, EventRecord]:
        events = self._resolver.events_for(owner_id)
        event = await events.get(event_id)
        if event is None:
            raise NotFound(f"Event '{event_id}' not found")
        return TenantScope(
            owner_id=event.owner_id,
            event_id=event.id,
            event_slug=event.slug,
            event_name=event.name,
        ), event

    async def admin_list(self, owner_id: str, event_id: str) -> list[dict[str, Any]]:
        scope, _ = await self._admin_scope(owner_id, event_id)
        items: list[dict[str, Any]] = []
        for production in await self.store(scope).list():
            data = set_to_dict(production)
            for attachment in data["attachments"]:
                if not attachment.get("url"):
                    attachment["url"] = await self._objects.presign(
                        attachment["storage_key"], _PREVIEW_TTL_SECONDS
                    )
            items.append(data)
        return items

    async def admin_delete(self, owner_id: str, event_id: str, set_id: str | None = None) -> dict[str, Any]:
        scope, _ = await self._admin_scope(owner_id, event_id)
        store = self.store(scope)
        result = await (store.delete(set_id) if set_id else store.delete_all())
        return {
            "objects_deleted": len(result.succeeded),
            "objects_failed": len(result.failed),
        }

    async def admin_resend(self, owner_id: str, event_id: str, set_id: str) -> dict[str, Any]:
        scope, event = await self._admin_scope(owner_id, event_id)
        production = await self.store(scope).get(set_id)
        if production is None:
            raise NotFound("Production set not found")
        emailed = await self._email_link(scope, event.name, production)
        return {"emailed": emailed, "email": production.email}
