"""Tests for production sets: save, tokenized access, purge and deletion."""

from __future__ import annotations

import io
import zipfile
from datetime import timedelta
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest
from booth_core.delivery.production_store import ProductionStore
from booth_core.errors import MissingParameter, NotFound, StorageFailure, TokenExpired, TokenInvalid
from booth_core.models.production import BUNDLE_FILENAME, MAX_DOWNLOAD_EVENTS, UploadedFile
from booth_core.models.scope import TenantScope
from booth_core.storage import DeleteResult, LocalObjectStore
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from conftest import FakeClock

KEY_PREFIX = "test"


def _files() -> list[UploadedFile]:
    return [
        UploadedFile(filename="a.jpg", data=b"photo-a", content_type="image/jpeg"),
        UploadedFile(filename="b.jpg", data=b"photo-b", content_type="image/jpeg"),
    ]


@pytest.fixture()
def store(
    session: AsyncSession,
    scope: TenantScope,
    objects: LocalObjectStore,
    clock: FakeClock,
) -> ProductionStore:
    return ProductionStore(session, scope, objects, key_prefix=KEY_PREFIX, ttl_hours=72, now=clock)


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


class TestSave:
    @pytest.mark.asyncio
    async def test_two_files_and_a_bundle(self, store: ProductionStore, objects: LocalObjectStore) -> None:
        production = await store.save("Guest@Example.com ", _files())

        assert [a.filename for a in production.attachments] == ["a.jpg", "b.jpg"]
        assert production.bundle_filename == BUNDLE_FILENAME
        assert production.email == "guest@example.com"
        assert len(production.storage_keys()) == 3

        bundle = await objects.fetch(production.bundle_key or "")
        assert bundle is not None
        with zipfile.ZipFile(io.BytesIO(bundle.data)) as archive:
            assert sorted(archive.namelist()) == ["a.jpg", "b.jpg"]
            assert archive.read("a.jpg") == b"photo-a"

    @pytest.mark.asyncio
    async def test_keys_live_under_scope_prefix(self, store: ProductionStore, scope: TenantScope) -> None:
        production = await store.save("g@example.com", _files())
        prefix = f"{KEY_PREFIX}/tenants/{scope.owner_id}/{scope.event_id}/production/{production.id}/"
        assert all(key.startswith(prefix) for key in production.storage_keys())

    @pytest.mark.asyncio
    async def test_tokens_are_unique(self, store: ProductionStore) -> None:
        first = await store.save("g@example.com", _files())
        second = await store.save("g@example.com", _files())
        assert first.download_token != second.download_token
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_token_not_in_repr(self, store: ProductionStore) -> None:
        production = await store.save("g@example.com", _files())
        assert production.download_token not in repr(production)

    @pytest.mark.asyncio
    async def test_duplicate_and_traversal_names(self, store: ProductionStore) -> None:
        files = [
            UploadedFile(filename="../../etc/photo.jpg", data=b"1"),
            UploadedFile(filename="photo.jpg", data=b"2"),
            UploadedFile(filename="photos.zip", data=b"3"),
        ]
        production = await store.save("g@example.com", files)
        assert [a.filename for a in production.attachments] == ["photo.jpg", "photo-1.jpg", "photos-1.zip"]

    @pytest.mark.asyncio
    async def test_requires_email_and_files(self, store: ProductionStore) -> None:
        with pytest.raises(MissingParameter):
            await store.save("", _files())
        with pytest.raises(MissingParameter):
            await store.save("g@example.com", [])

    @pytest.mark.asyncio
    async def test_link_lifetime_must_be_positive(self, store: ProductionStore) -> None:
        for hours in (0, -1):
            with pytest.raises(MissingParameter, match="Link lifetime must be positive"):
                await store.save("g@example.com", _files(), ttl_hours=hours)
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_explicit_lifetime(self, store: ProductionStore, clock: FakeClock) -> None:
        production = await store.save("g@example.com", _files(), ttl_hours=1)
        assert production.token_expires_at == clock.now + timedelta(hours=1)
        default = await store.save("g@example.com", _files())
        assert default.token_expires_at == clock.now + timedelta(hours=72)

    @pytest.mark.asyncio
    async def test_failed_upload_removes_written_objects(
        self, session: AsyncSession, scope: TenantScope, clock: FakeClock
    ) -> None:
        objects = AsyncMock()
        objects.upload.side_effect = [AsyncMock(url=None), StorageFailure("boom")]
        objects.delete_many.return_value = DeleteResult()
        store = ProductionStore(session, scope, objects, key_prefix=KEY_PREFIX, now=clock)

        with pytest.raises(StorageFailure):
            await store.save("g@example.com", _files())

        (written,), _ = objects.delete_many.call_args
        assert len(written) == 1
        assert await store.list() == []


# ---------------------------------------------------------------------------
# Token verification and expiry
# ---------------------------------------------------------------------------


class TestAuthorize:
    @pytest.mark.asyncio
    async def test_valid_token(self, store: ProductionStore) -> None:
        production = await store.save("g@example.com", _files())
        found = await store.authorize(production.id, production.download_token)
        assert found.id == production.id

    @pytest.mark.asyncio
    async def test_mismatch_is_invalid_not_expired(self, store: ProductionStore) -> None:
        production = await store.save("g@example.com", _files())
        cases = ((production.id, "not-the-token"), (production.id, ""), ("missing", production.download_token))
        for set_id, token in cases:
            with pytest.raises(TokenInvalid) as excinfo:
                await store.authorize(set_id, token)
            assert not isinstance(excinfo.value, TokenExpired)

    @pytest.mark.asyncio
    async def test_rejected_at_expiry_instant_but_not_purged(
        self, store: ProductionStore, clock: FakeClock
    ) -> None:
        production = await store.save("g@example.com", _files())
        clock.now = production.token_expires_at
        with pytest.raises(TokenExpired):
            await store.authorize(production.id, production.download_token)
        assert await store.get(production.id) is not None

    @pytest.mark.asyncio
    async def test_expired_token_purges_set_and_objects(
        self, store: ProductionStore, objects: LocalObjectStore, clock: FakeClock
    ) -> None:
        production = await store.save("g@example.com", _files())
        clock.advance(hours=73)
        with pytest.raises(TokenExpired):
            await store.authorize(production.id, production.download_token)
        assert await store.get(production.id) is None
        for key in production.storage_keys():
            assert await objects.fetch(key) is None

    @pytest.mark.asyncio
    async def test_expired_wrong_token_is_invalid(self, store: ProductionStore, clock: FakeClock) -> None:
        production = await store.save("g@example.com", _files())
        clock.advance(hours=73)
        with pytest.raises(TokenInvalid) as excinfo:
            await store.authorize(production.id, "wrong")
        assert not isinstance(excinfo.value, TokenExpired)


class TestPurge:
    @pytest.mark.asyncio
    async def test_list_purges_expired_only(self, store: ProductionStore, clock: FakeClock) -> None:
        old = await store.save("old@example.com", _files(), ttl_hours=1)
        fresh = await store.save("new@example.com", _files())
        clock.advance(hours=2)

        remaining = await store.list()
        assert [p.id for p in remaining] == [fresh.id]
        assert await store.get(old.id) is None

    @pytest.mark.asyncio
    async def test_nothing_to_purge(self, store: ProductionStore) -> None:
        await store.save("g@example.com", _files())
        result = await store.purge_expired()
        assert result.succeeded == []


# ---------------------------------------------------------------------------
# Downloads and attachments
# ---------------------------------------------------------------------------


class TestDownloads:
    @pytest.mark.asyncio
    async def test_record_download_keeps_recent_events(self, store: ProductionStore) -> None:
        production = await store.save("g@example.com", _files())
        for _ in range(MAX_DOWNLOAD_EVENTS + 3):
            updated = await store.record_download(production.id, "10.0.0.1")
        assert updated.download_count == MAX_DOWNLOAD_EVENTS + 3
        assert len(updated.download_events) == MAX_DOWNLOAD_EVENTS
        assert updated.last_downloaded_at is not None

    @pytest.mark.asyncio
    async def test_fetch_attachment_and_bundle(self, store: ProductionStore) -> None:
        production = await store.save("g@example.com", _files())

        data, content_type, name = await store.fetch_attachment(production.id, "b.jpg")  # type: ignore[misc]
        assert (data, content_type, name) == (b"photo-b", "image/jpeg", "b.jpg")

        bundle = await store.fetch_attachment(production.id, BUNDLE_FILENAME)
        assert bundle is not None
        assert bundle[1] == "application/zip"

        assert await store.fetch_attachment(production.id, "nope.jpg") is None


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_one(self, store: ProductionStore, objects: LocalObjectStore) -> None:
        production = await store.save("g@example.com", _files())
        result = await store.delete(production.id)
        assert result.ok
        assert sorted(result.succeeded) == sorted(production.storage_keys())
        assert await store.get(production.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing(self, store: ProductionStore) -> None:
        with pytest.raises(NotFound):
            await store.delete("missing")

    @pytest.mark.asyncio
    async def test_delete_all(self, store: ProductionStore) -> None:
        await store.save("a@example.com", _files())
        await store.save("b@example.com", _files())
        result = await store.delete_all()
        assert len(result.succeeded) == 6
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_partial_object_failure_still_removes_rows(
        self, store: ProductionStore, objects: LocalObjectStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        production = await store.save("g@example.com", _files())
        keys = production.storage_keys()
        monkeypatch.setattr(
            objects,
            "delete_many",
            AsyncMock(return_value=DeleteResult(succeeded=keys[:2], failed=keys[2:])),
        )
        result = await store.delete(production.id)
        assert not result.ok
        assert result.failed == keys[2:]
        assert await store.get(production.id) is None

    @pytest.mark.asyncio
    async def test_other_scope_is_invisible(
        self,
        session: AsyncSession,
        store: ProductionStore,
        scope: TenantScope,
        objects: LocalObjectStore,
        clock: FakeClock,
    ) -> None:
        production = await store.save("g@example.com", _files())
        foreign = ProductionStore(
            session,
            scope.model_copy(update={"owner_id": "owner-b"}),
            objects,
            key_prefix=KEY_PREFIX,
            now=clock,
        )
        assert await foreign.get(production.id) is None
        with pytest.raises(TokenInvalid):
            await foreign.authorize(production.id, production.download_token)
        with pytest.raises(NotFound):
            await foreign.delete(production.id)
