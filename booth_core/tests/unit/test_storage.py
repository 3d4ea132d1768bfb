"""Tests for object keys and the filesystem object store."""

from __future__ import annotations

import time
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
from booth_core.config import StorageBackend, load_settings
from booth_core.delivery.archive import build_bundle
from booth_core.errors import StorageFailure
from booth_core.storage import LocalObjectStore, ObjectStore, build_key, build_object_store, safe_filename

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestSafeFilename:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("photo.jpg", "photo.jpg"),
            ("../../etc/passwd", "passwd"),
            ("C:\\Users\\me\\pic.png", "pic.png"),
            ("bad\x00name.jpg", "badname.jpg"),
        ],
    )
    def test_reduces_to_basename(self, raw: str, expected: str) -> None:
        assert safe_filename(raw) == expected

    @pytest.mark.parametrize("raw", ["", ".", "..", "\x00"])
    def test_rejects_unusable(self, raw: str) -> None:
        with pytest.raises(ValueError):
            safe_filename(raw)


class TestBuildKey:
    def test_layout(self) -> None:
        key = build_key("p/tenants/o/e", "production", "set1", "../a.jpg")
        assert key == "p/tenants/o/e/production/set1/a.jpg"

    def test_rejects_bad_components(self) -> None:
        with pytest.raises(ValueError):
            build_key("p", "production", "../x", "a.jpg")
        with pytest.raises(ValueError):
            build_key("p/../q", "production", "set1", "a.jpg")
        with pytest.raises(ValueError):
            build_key("p", "prod/uction", "set1", "a.jpg")


# ---------------------------------------------------------------------------
# Local store
# ---------------------------------------------------------------------------


class TestLocalObjectStore:
    def test_satisfies_protocol(self, objects: LocalObjectStore) -> None:
        assert isinstance(objects, ObjectStore)

    @pytest.mark.asyncio
    async def test_upload_fetch_delete(self, objects: LocalObjectStore) -> None:
        result = await objects.upload("a/b/c.jpg", b"data", "image/jpeg")
        assert result.key == "a/b/c.jpg"
        assert result.url is None

        fetched = await objects.fetch("a/b/c.jpg")
        assert fetched is not None
        assert fetched.data == b"data"
        assert fetched.content_type == "image/jpeg"

        deleted = await objects.delete_many(["a/b/c.jpg", "a/b/missing.jpg", "a/b/c.jpg"])
        assert deleted.ok
        assert deleted.succeeded == ["a/b/c.jpg", "a/b/missing.jpg"]
        assert await objects.fetch("a/b/c.jpg") is None

    @pytest.mark.asyncio
    async def test_traversal_is_refused(self, objects: LocalObjectStore) -> None:
        with pytest.raises(StorageFailure):
            await objects.upload("../outside.txt", b"x", "text/plain")
        deleted = await objects.delete_many(["../outside.txt"])
        assert deleted.failed == ["../outside.txt"]

    @pytest.mark.asyncio
    async def test_presign_round_trip(self, objects: LocalObjectStore) -> None:
        url = await objects.presign("a/b.jpg", ttl_seconds=60)
        parts = urlsplit(url)
        assert parts.path == "/api/v1/objects/a/b.jpg"
        query = parse_qs(parts.query)
        expires, signature = int(query["expires"][0]), query["signature"][0]
        assert objects.verify_signature("a/b.jpg", expires, signature)
        assert not objects.verify_signature("a/c.jpg", expires, signature)
        assert not objects.verify_signature("a/b.jpg", int(time.time()) - 1, signature)

    def test_public_url(self, tmp_path: Path) -> None:
        store = LocalObjectStore(tmp_path, "s", public_base_url="https://cdn.example.com/")
        assert store.public_url("a/b.jpg") == "https://cdn.example.com/a/b.jpg"


class TestBuildObjectStore:
    def test_local_backend_by_default(self, tmp_path: Path) -> None:
        settings = load_settings(storage_root=tmp_path, storage_backend=StorageBackend.LOCAL)
        assert isinstance(build_object_store(settings), LocalObjectStore)


def test_build_bundle_is_a_zip() -> None:
    data = build_bundle([("a.txt", b"a"), ("b.txt", b"b")])
    assert data[:2] == b"PK"
