"""Tests for the S3 object store against a mocked boto3 client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from booth_core.errors import StorageFailure
from booth_core.storage.s3_store import S3ObjectStore
from botocore.exceptions import ClientError


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "Operation")


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def store(client: MagicMock) -> S3ObjectStore:
    return S3ObjectStore(client, "bucket", public_base_url="https://cdn.example.com")


class TestUpload:
    @pytest.mark.asyncio
    async def test_puts_object_with_headers(self, store: S3ObjectStore, client: MagicMock) -> None:
        result = await store.upload("k/a.jpg", b"data", "image/jpeg", "public, max-age=60")
        client.put_object.assert_called_once_with(
            Bucket="bucket",
            Key="k/a.jpg",
            Body=b"data",
            ContentType="image/jpeg",
            CacheControl="public, max-age=60",
        )
        assert result.url == "https://cdn.example.com/k/a.jpg"

    @pytest.mark.asyncio
    async def test_failure_maps_to_storage_failure(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.put_object.side_effect = _client_error("AccessDenied")
        with pytest.raises(StorageFailure):
            await store.upload("k/a.jpg", b"data", "image/jpeg")


class TestFetch:
    @pytest.mark.asyncio
    async def test_reads_body(self, store: S3ObjectStore, client: MagicMock) -> None:
        body = MagicMock()
        body.read.return_value = b"bytes"
        client.get_object.return_value = {"Body": body, "ContentType": "image/png"}
        fetched = await store.fetch("k/a.png")
        assert fetched is not None
        assert (fetched.data, fetched.content_type) == (b"bytes", "image/png")

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.get_object.side_effect = _client_error("NoSuchKey")
        assert await store.fetch("k/missing") is None

    @pytest.mark.asyncio
    async def test_other_errors_raise(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.get_object.side_effect = _client_error("InternalError")
        with pytest.raises(StorageFailure):
            await store.fetch("k/a.png")


class TestDeleteMany:
    @pytest.mark.asyncio
    async def test_reports_per_key_errors(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.delete_objects.return_value = {"Errors": [{"Key": "b", "Code": "AccessDenied"}]}
        result = await store.delete_many(["a", "b", "c", "a"])
        assert result.succeeded == ["a", "c"]
        assert result.failed == ["b"]

    @pytest.mark.asyncio
    async def test_batches_of_one_thousand(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.delete_objects.return_value = {}
        keys = [f"k/{i}" for i in range(2500)]
        result = await store.delete_many(keys)
        assert client.delete_objects.call_count == 3
        assert len(result.succeeded) == 2500

    @pytest.mark.asyncio
    async def test_failed_batch_is_reported_not_raised(self, store: S3ObjectStore, client: MagicMock) -> None:
        client.delete_objects.side_effect = _client_error("SlowDown")
        result = await store.delete_many(["a", "b"])
        assert result.failed == ["a", "b"]
        assert not result.ok


@pytest.mark.asyncio
async def test_presign(store: S3ObjectStore, client: MagicMock) -> None:
    client.generate_presigned_url.return_value = "https://signed"
    assert await store.presign("k/a.jpg", ttl_seconds=120) == "https://signed"
    client.generate_presigned_url.assert_called_once_with(
        "get_object", Params={"Bucket": "bucket", "Key": "k/a.jpg"}, ExpiresIn=120
    )
