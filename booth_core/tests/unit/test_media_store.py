"""Tests for booth captures and event backgrounds."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from booth_core.delivery.media_store import BackgroundStore, PhotoStore
from booth_core.errors import MissingParameter, NotFound
from booth_core.events.event_store import EventStore
from booth_core.models.event import EventRecord
from booth_core.models.production import UploadedFile
from booth_core.models.scope import TenantScope
from booth_core.storage import LocalObjectStore
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from conftest import FakeClock

KEY_PREFIX = "test"


def _capture(name: str = "shot.png", data: bytes = b"png-bytes") -> UploadedFile:
    return UploadedFile(filename=name, data=data, content_type="image/png")


@pytest.fixture()
def photos(session: AsyncSession, scope: TenantScope, objects: LocalObjectStore, clock: FakeClock) -> PhotoStore:
    return PhotoStore(session, scope, objects, key_prefix=KEY_PREFIX, now=clock)


@pytest.fixture()
def backgrounds(
    session: AsyncSession, scope: TenantScope, objects: LocalObjectStore, clock: FakeClock
) -> BackgroundStore:
    return BackgroundStore(session, scope, objects, key_prefix=KEY_PREFIX, now=clock)


class TestPhotoStore:
    @pytest.mark.asyncio
    async def test_save_files_under_email(
        self, photos: PhotoStore, scope: TenantScope, objects: LocalObjectStore
    ) -> None:
        photo = await photos.save(" Guest@Example.com", _capture("../up/shot.png"))
        assert photo.email == "guest@example.com"
        assert photo.original_name == "shot.png"
        prefix = f"{KEY_PREFIX}/tenants/{scope.owner_id}/{scope.event_id}/photos/{photo.id}/"
        assert photo.storage_key.startswith(prefix)

        stored = await objects.fetch(photo.storage_key)
        assert stored is not None
        assert stored.data == b"png-bytes"

    @pytest.mark.asyncio
    async def test_list_by_email_newest_first(self, photos: PhotoStore, clock: FakeClock) -> None:
        first = await photos.save("a@example.com", _capture("1.png"))
        clock.advance(minutes=1)
        second = await photos.save("a@example.com", _capture("2.png"))
        await photos.save("b@example.com", _capture("3.png"))

        assert [p.id for p in await photos.list_by_email("A@example.com")] == [second.id, first.id]
        assert len(await photos.list()) == 3

    @pytest.mark.asyncio
    async def test_rejects_empty_and_anonymous(self, photos: PhotoStore) -> None:
        with pytest.raises(MissingParameter):
            await photos.save("", _capture())
        with pytest.raises(MissingParameter):
            await photos.save("g@example.com", _capture(data=b""))
        assert await photos.list() == []

    @pytest.mark.asyncio
    async def test_other_scope_is_invisible(
        self,
        session: AsyncSession,
        photos: PhotoStore,
        scope: TenantScope,
        objects: LocalObjectStore,
        clock: FakeClock,
    ) -> None:
        photo = await photos.save("g@example.com", _capture())
        foreign = PhotoStore(
            session,
            scope.model_copy(update={"owner_id": "owner-b"}),
            objects,
            key_prefix=KEY_PREFIX,
            now=clock,
        )
        assert await foreign.get(photo.id) is None
        assert await foreign.list_by_email("g@example.com") == []
        assert (await foreign.remove([photo.id])).succeeded == []
        assert await photos.get(photo.id) is not None

    @pytest.mark.asyncio
    async def test_remove_deletes_rows_and_objects(self, photos: PhotoStore, objects: LocalObjectStore) -> None:
        keep = await photos.save("g@example.com", _capture("keep.png"))
        drop = await photos.save("g@example.com", _capture("drop.png"))

        result = await photos.remove([drop.id])
        assert result.succeeded == [drop.storage_key]
        assert await photos.get(drop.id) is None
        assert await objects.fetch(drop.storage_key) is None
        assert await photos.get(keep.id) is not None

    @pytest.mark.asyncio
    async def test_fetch_missing_object(self, photos: PhotoStore, objects: LocalObjectStore) -> None:
        photo = await photos.save("g@example.com", _capture())
        await objects.delete_many([photo.storage_key])
        with pytest.raises(NotFound):
            await photos.fetch(photo.storage_key)


class TestBackgroundStore:
    @pytest.mark.asyncio
    async def test_add_list_delete(self, backgrounds: BackgroundStore, objects: LocalObjectStore) -> None:
        beach = await backgrounds.add(" Beach ", _capture("beach.png"), description="Sunset")
        assert beach.name == "Beach"
        assert beach.description == "Sunset"
        assert [b.id for b in await backgrounds.list()] == [beach.id]

        result = await backgrounds.delete(beach.id)
        assert result.succeeded == [beach.storage_key]
        assert await backgrounds.get(beach.id) is None
        assert await objects.fetch(beach.storage_key) is None

    @pytest.mark.asyncio
    async def test_requires_name(self, backgrounds: BackgroundStore) -> None:
        with pytest.raises(MissingParameter):
            await backgrounds.add("  ", _capture())

    @pytest.mark.asyncio
    async def test_delete_missing(self, backgrounds: BackgroundStore) -> None:
        with pytest.raises(NotFound):
            await backgrounds.delete("missing")


class TestEventCascade:
    @pytest.mark.asyncio
    async def test_event_delete_removes_media(
        self,
        event_store: EventStore,
        event: EventRecord,
        photos: PhotoStore,
        backgrounds: BackgroundStore,
        objects: LocalObjectStore,
    ) -> None:
        photo = await photos.save("g@example.com", _capture())
        background = await backgrounds.add("Beach", _capture("beach.png"))

        result = await event_store.delete(event.id)

        assert sorted(result.succeeded) == sorted([photo.storage_key, background.storage_key])
        assert await photos.list() == []
        assert await backgrounds.list() == []
        for key in (photo.storage_key, background.storage_key):
            assert await objects.fetch(key) is None
