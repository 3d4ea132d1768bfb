"""Booth captures and event backgrounds of one tenant scope.

Photos live under ``{scope prefix}/photos/{photo_id}/`` and backgrounds
under ``{scope prefix}/backgrounds/{background_id}/``.  Rows are written
after their object, and deleted before it, so a row never points at a key
that was never uploaded.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booth_core.errors import MissingParameter, NotFound
from booth_core.models.checkin import normalize_email
from booth_core.models.media import Background, PhotoRecord
from booth_core.models.production import UploadedFile
from booth_core.models.scope import TenantScope
from booth_core.state.repository import Clock, ScopedRepository, row_to_dict
from booth_core.state.tables import BackgroundTable, PhotoTable
from booth_core.storage import DeleteResult, FetchResult, ObjectStore, build_key, safe_filename

logger = logging.getLogger(__name__)

PHOTO_KIND = "photos"
BACKGROUND_KIND = "backgrounds"
CACHE_CONTROL = "public, max-age=604800"


class _MediaRepository(ScopedRepository):
    """Shared upload and delete plumbing for scoped media rows."""

    table: Any

    def __init__(
        self,
        session: AsyncSession,
        scope: TenantScope,
        objects: ObjectStore,
        *,
        key_prefix: str,
        now: Clock | None = None,
    ) -> None:
        super().__init__(session, scope, now=now)
        self._objects = objects
        self._prefix = scope.storage_prefix(key_prefix)

    async def _upload(self, kind: str, resource_id: str, item: UploadedFile) -> tuple[str, str, str | None]:
        try:
            name = safe_filename(item.filename)
        except ValueError as exc:
            raise MissingParameter(str(exc)) from exc
        if not item.data:
            raise MissingParameter(f"File '{name}' is empty")
        key = build_key(self._prefix, kind, resource_id, name)
        uploaded = await self._objects.upload(key, item.data, item.content_type, CACHE_CONTROL)
        return name, key, uploaded.url

    async def _rows(self, *where: Any) -> list[Any]:
        stmt = (
            select(self.table)
            .where(*self._in_scope(self.table), *where)
            .order_by(self.table.created_at.desc())
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _delete(self, rows: Sequence[Any]) -> DeleteResult:
        """Delete *rows*, then best-effort delete their objects."""
        if not rows:
            return DeleteResult()
        await self._session.execute(
            delete(self.table).where(
                self.table.id.in_([r.id for r in rows]),
                *self._in_scope(self.table),
            )
        )
        await self._session.flush()
        result = await self._objects.delete_many([r.storage_key for r in rows])
        if result.failed:
            logger.warning(
                "Orphaned %d %s object(s) in %s/%s",
                len(result.failed),
                self.table.__tablename__,
                self._scope.owner_id,
                self._scope.event_id,
            )
        return result

    async def fetch(self, storage_key: str) -> FetchResult:
        fetched = await self._objects.fetch(storage_key)
        if fetched is None:
            logger.warning("Object missing in %s: %s", self.table.__tablename__, storage_key)
            raise NotFound("Stored file not found")
        return fetched

    async def delete_all(self) -> DeleteResult:
        return await self._delete(await self._rows())


class PhotoStore(_MediaRepository):
    """Captures of one scope, filed per guest email."""

    table = PhotoTable

    async def save(self, email: str, item: UploadedFile, background_id: str | None = None) -> PhotoRecord:
        normalized = normalize_email(email or "")
        if not normalized:
            raise MissingParameter("Email is required.")
        photo_id = uuid.uuid4().hex
        name, key, url = await self._upload(PHOTO_KIND, photo_id, item)
        row = PhotoTable(
            id=photo_id,
            owner_id=self._scope.owner_id,
            event_id=self._scope.event_id,
            email=normalized,
            original_name=name,
            content_type=item.content_type,
            storage_key=key,
            url=url,
            background_id=background_id,
            created_at=self._now(),
        )
        self._session.add(row)
        await self._session.flush()
        logger.info("Saved photo %s for event %s", photo_id, self._scope.event_id)
        return PhotoRecord.model_validate(row_to_dict(row))

    async def list_by_email(self, email: str) -> list[PhotoRecord]:
        """The guest's photos, newest first."""
        rows = await self._rows(PhotoTable.email == normalize_email(email or ""))
        return [PhotoRecord.model_validate(row_to_dict(r)) for r in rows]

    async def list(self) -> list[PhotoRecord]:
        return [PhotoRecord.model_validate(row_to_dict(r)) for r in await self._rows()]

    async def get(self, photo_id: str) -> PhotoRecord | None:
        rows = await self._rows(PhotoTable.id == photo_id)
        return PhotoRecord.model_validate(row_to_dict(rows[0])) if rows else None

    async def remove(self, photo_ids: Sequence[str]) -> DeleteResult:
        if not photo_ids:
            return DeleteResult()
        return await self._delete(await self._rows(PhotoTable.id.in_(list(photo_ids))))


class BackgroundStore(_MediaRepository):
    """Backgrounds a guest can pair a capture with."""

    table = BackgroundTable

    async def add(self, name: str, item: UploadedFile, description: str = "") -> Background:
        if not name or not name.strip():
            raise MissingParameter("Background name is required.")
        background_id = uuid.uuid4().hex
        _, key, url = await self._upload(BACKGROUND_KIND, background_id, item)
        row = BackgroundTable(
            id=background_id,
            owner_id=self._scope.owner_id,
            event_id=self._scope.event_id,
            name=name.strip(),
            description=(description or "").strip(),
            content_type=item.content_type,
            storage_key=key,
            url=url,
            created_at=self._now(),
        )
        self._session.add(row)
        await self._session.flush()
        return Background.model_validate(row_to_dict(row))

    async def list(self) -> list[Background]:
        return [Background.model_validate(row_to_dict(r)) for r in await self._rows()]

    async def get(self, background_id: str) -> Background | None:
        rows = await self._rows(BackgroundTable.id == background_id)
        return Background.model_validate(row_to_dict(rows[0])) if rows else None

    async def delete(self, background_id: str) -> DeleteResult:
        rows = await self._rows(BackgroundTable.id == background_id)
        if not rows:
            raise NotFound("Background not found")
        return await self._delete(rows)
