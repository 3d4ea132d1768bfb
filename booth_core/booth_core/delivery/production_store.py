"""Production sets: stored photos delivered behind a tokenized link.

Each set's files live under ``{scope prefix}/production/{set_id}/`` next to
a ``photos.zip`` bundle of all of them.  The download token is generated
here and returned once; it is never logged.  Expired sets are purged
lazily at the top of read paths, rows first, then their objects on a
best-effort basis.
"""

from __future__ import annotations

import hmac
import logging
import secrets
import uuid
from collections.abc import Sequence
from datetime import timedelta
from pathlib import PurePosixPath

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.delivery.archive import build_bundle
from booth_core.delivery.purge import is_token_live, partition_expired
from booth_core.errors import MissingParameter, NotFound, StorageFailure, TokenExpired, TokenInvalid
from booth_core.models.production import (
    BUNDLE_CONTENT_TYPE,
    BUNDLE_FILENAME,
    MAX_DOWNLOAD_EVENTS,
    DownloadEvent,
    ProductionAttachment,
    ProductionSet,
    UploadedFile,
)
from booth_core.models.scope import TenantScope
from booth_core.state.repository import Clock, ScopedRepository, row_to_dict
from booth_core.state.tables import ProductionSetTable
from booth_core.storage import DeleteResult, ObjectStore, build_key, safe_filename

logger = logging.getLogger(__name__)

PRODUCTION_KIND = "production"
CACHE_CONTROL = "public, max-age=604800"
DEFAULT_TTL_HOURS = 72


def _unique_name(name: str, taken: set[str]) -> str:
    """Suffix *name* until it does not collide with *taken*."""
    if name not in taken:
        return name
    path = PurePosixPath(name)
    n = 1
    while True:
        candidate = f"{path.stem}-{n}{path.suffix}"
        if candidate not in taken:
            return candidate
        n += 1


class ProductionStore(ScopedRepository):
    """Production sets of one tenant scope."""

    def __init__(
        self,
        session: AsyncSession,
        scope: TenantScope,
        objects: ObjectStore,
        *,
        key_prefix: str,
        ttl_hours: int = DEFAULT_TTL_HOURS,
        now: Clock | None = None,
    ) -> None:
        super().__init__(session, scope, now=now)
        self._objects = objects
        self._prefix = scope.storage_prefix(key_prefix)
        self._ttl_hours = ttl_hours

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _to_model(row: ProductionSetTable) -> ProductionSet:
        return ProductionSet.model_validate(row_to_dict(row))

    async def _get_row(self, set_id: str) -> ProductionSetTable | None:
        stmt = select(ProductionSetTable).where(
            ProductionSetTable.id == set_id,
            *self._in_scope(ProductionSetTable),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _scope_rows(self) -> list[ProductionSetTable]:
        stmt = (
            select(ProductionSetTable)
            .where(*self._in_scope(ProductionSetTable))
            .order_by(ProductionSetTable.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def _delete_rows(self, sets: Sequence[ProductionSet]) -> DeleteResult:
        """Delete rows, then best-effort delete their objects."""
        if not sets:
            return DeleteResult()
        await self._session.execute(
            delete(ProductionSetTable).where(
                ProductionSetTable.id.in_([s.id for s in sets]),
                *self._in_scope(ProductionSetTable),
            )
        )
        await self._session.flush()
        keys = [key for s in sets for key in s.storage_keys()]
        result = await self._objects.delete_many(keys)
        if result.failed:
            logger.warning(
                "Orphaned %d object(s) while deleting production sets in %s/%s",
                len(result.failed),
                self._scope.owner_id,
                self._scope.event_id,
            )
        return result

    # -- writes -------------------------------------------------------------

    async def save(
        self,
        email: str,
        files: Sequence[UploadedFile],
        ttl_hours: int | None = None,
    ) -> ProductionSet:
        """Upload *files* plus a zip bundle and record a new production set.

        Parameters
        ----------
        email:
            Recipient the download link is sent to.
        files:
            Photos to deliver.  Names are reduced to their basename and
            de-duplicated.
        ttl_hours:
            Link lifetime; defaults to the store's configured TTL.

        Raises
        ------
        MissingParameter
            If *email* or *files* is empty, a filename is unusable or
            *ttl_hours* is not positive.
        StorageFailure
            If an upload fails.  Objects already written are removed.
        """
        if not email or not email.strip():
            raise MissingParameter("Recipient email is required")
        if not files:
            raise MissingParameter("At least one file is required")
        hours = self._ttl_hours if ttl_hours is None else ttl_hours
        if hours <= 0:
            raise MissingParameter("Link lifetime must be positive")

        set_id = uuid.uuid4().hex
        taken = {BUNDLE_FILENAME}
        named: list[tuple[str, UploadedFile]] = []
        for item in files:
            try:
                name = _unique_name(safe_filename(item.filename), taken)
            except ValueError as exc:
                raise MissingParameter(str(exc)) from exc
            taken.add(name)
            named.append((name, item))

        attachments: list[ProductionAttachment] = []
        written: list[str] = []
        try:
            for name, item in named:
                key = build_key(self._prefix, PRODUCTION_KIND, set_id, name)
                uploaded = await self._objects.upload(key, item.data, item.content_type, CACHE_CONTROL)
                written.append(key)
                attachments.append(
                    ProductionAttachment(
                        filename=name,
                        storage_key=key,
                        url=uploaded.url,
                        content_type=item.content_type,
                        size=len(item.data),
                    )
                )

            bundle = build_bundle((name, item.data) for name, item in named)
            bundle_key = build_key(self._prefix, PRODUCTION_KIND, set_id, BUNDLE_FILENAME)
            bundle_upload = await self._objects.upload(
                bundle_key, bundle, BUNDLE_CONTENT_TYPE, CACHE_CONTROL
            )
            written.append(bundle_key)
        except StorageFailure:
            await self._objects.delete_many(written)
            raise

        now = self._now()
        row = ProductionSetTable(
            id=set_id,
            owner_id=self._scope.owner_id,
            event_id=self._scope.event_id,
            email=email.strip().lower(),
            download_token=secrets.token_urlsafe(32),
            token_expires_at=now + timedelta(hours=hours),
            attachments=[a.model_dump() for a in attachments],
            bundle_key=bundle_key,
            bundle_url=bundle_upload.url,
            bundle_filename=BUNDLE_FILENAME,
            download_count=0,
            download_events=[],
            created_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        logger.info(
            "Saved production set %s for event %s (%d file(s))",
            set_id,
            self._scope.event_id,
            len(attachments),
        )
        return self._to_model(row)

    async def record_download(self, set_id: str, ip: str | None = None) -> ProductionSet:
        """Bump the download counter and keep the most recent events."""
        row = await self._get_row(set_id)
        if row is None:
            raise NotFound("Production set not found")
        now = self._now()
        entry = DownloadEvent(at=now, ip=ip).model_dump(mode="json")
        row.download_count = (row.download_count or 0) + 1
        row.last_downloaded_at = now
        row.download_events = [entry, *(row.download_events or [])][:MAX_DOWNLOAD_EVENTS]
        await self._session.flush()
        return self._to_model(row)

    async def delete(self, set_id: str) -> DeleteResult:
        row = await self._get_row(set_id)
        if row is None:
            raise NotFound("Production set not found")
        result = await self._delete_rows([self._to_model(row)])
        logger.info("Deleted production set %s", set_id)
        return result

    async def delete_all(self) -> DeleteResult:
        sets = [self._to_model(r) for r in await self._scope_rows()]
        result = await self._delete_rows(sets)
        logger.info(
            "Deleted %d production set(s) for event %s",
            len(sets),
            self._scope.event_id,
        )
        return result

    async def purge_expired(self) -> DeleteResult:
        """Remove every set whose link expired before now."""
        sets = [self._to_model(r) for r in await self._scope_rows()]
        _, expired = partition_expired(sets, self._now())
        if not expired:
            return DeleteResult()
        result = await self._delete_rows(expired)
        logger.info(
            "Purged %d expired production set(s) for event %s",
            len(expired),
            self._scope.event_id,
        )
        return result

    # -- reads --------------------------------------------------------------

    async def list(self) -> list[ProductionSet]:
        """Newest-first listing, after a lazy purge."""
        await self.purge_expired()
        return [self._to_model(r) for r in await self._scope_rows()]

    async def get(self, set_id: str) -> ProductionSet | None:
        row = await self._get_row(set_id)
        return self._to_model(row) if row is not None else None

    async def authorize(self, set_id: str, token: str) -> ProductionSet:
        """Return the set if *token* matches and has not expired.

        An expired token triggers a purge of the scope.

        Raises
        ------
        TokenExpired
            If the token matched but its link has expired.
        TokenInvalid
            For an unknown set or a wrong token.  Both errors render the
            same client-visible message.
        """
        found = await self.get(set_id)
        if found is None or not token:
            raise TokenInvalid()
        if not hmac.compare_digest(found.download_token.encode(), token.encode()):
            raise TokenInvalid()
        if not is_token_live(found.token_expires_at, self._now()):
            await self.purge_expired()
            raise TokenExpired()
        return found

    async def fetch_attachment(
        self,
        set_id: str,
        filename: str,
    ) -> tuple[bytes, str, str] | None:
        """Return ``(data, content_type, filename)`` for one file or the bundle."""
        found = await self.get(set_id)
        if found is None:
            return None
        if found.bundle_key and filename == found.bundle_filename:
            key, content_type = found.bundle_key, BUNDLE_CONTENT_TYPE
        else:
            match = next((a for a in found.attachments if a.filename == filename), None)
            if match is None:
                return None
            key, content_type = match.storage_key, match.content_type
        fetched = await self._objects.fetch(key)
        if fetched is None:
            logger.warning("Object missing for production set %s: %s", set_id, key)
            return None
        return fetched.data, content_type or fetched.content_type, filename
