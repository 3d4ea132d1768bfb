"""S3-compatible object store (AWS S3, Cloudflare R2).

boto3 is synchronous, so every call is pushed onto the default executor
to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from booth_core.config import CoreSettings
from booth_core.errors import StorageFailure
from booth_core.storage.base import DeleteResult, FetchResult, UploadResult

logger = logging.getLogger(__name__)

# DeleteObjects accepts at most 1000 keys per request.
_DELETE_BATCH = 1000

_MISSING_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3ObjectStore:
    """Object store backed by a single S3 bucket."""

    def __init__(
        self,
        client: Any,
        bucket: str,
        public_base_url: str | None = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> S3ObjectStore:
        if not settings.is_s3_configured():
            raise ValueError("S3 storage requires BOOTH_S3_BUCKET and access keys")
        config = Config(
            region_name=settings.s3_region,
            retries={"max_attempts": 1, "mode": "standard"},
            max_pool_connections=50,
        )
        secret = settings.s3_secret_access_key
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=secret.get_secret_value() if secret else None,
            config=config,
        )
        logger.info("S3 object store initialised for bucket %s", settings.s3_bucket)
        return cls(client, settings.s3_bucket or "", settings.public_base_url)

    async def _run(self, fn: Any, /, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(Bucket=self._bucket, **kwargs))

    async def upload(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> UploadResult:
        extra: dict[str, Any] = {"ContentType": content_type}
        if cache_control:
            extra["CacheControl"] = cache_control
        try:
            await self._run(self._client.put_object, Key=key, Body=data, **extra)
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 upload failed for %s: %s", key, exc)
            raise StorageFailure(f"Upload failed for {key}") from exc
        logger.debug("Uploaded %s (%d bytes)", key, len(data))
        return UploadResult(key=key, url=self.public_url(key))

    async def fetch(self, key: str) -> FetchResult | None:
        try:
            response = await self._run(self._client.get_object, Key=key)
            body = response["Body"]
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, body.read)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            logger.error("S3 fetch failed for %s: %s", key, exc)
            raise StorageFailure(f"Fetch failed for {key}") from exc
        except BotoCoreError as exc:
            logger.error("S3 fetch failed for %s: %s", key, exc)
            raise StorageFailure(f"Fetch failed for {key}") from exc
        return FetchResult(
            data=data,
            content_type=response.get("ContentType") or "application/octet-stream",
        )

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        pending = list(dict.fromkeys(k for k in keys if k))
        result = DeleteResult()
        for start in range(0, len(pending), _DELETE_BATCH):
            batch = pending[start : start + _DELETE_BATCH]
            try:
                response = await self._run(
                    self._client.delete_objects,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (ClientError, BotoCoreError) as exc:
                logger.warning("S3 bulk delete of %d keys failed: %s", len(batch), exc)
                result = result.merge(DeleteResult(failed=batch))
                continue
            errors = {e.get("Key") for e in response.get("Errors", [])}
            for key in errors:
                logger.warning("S3 delete failed for %s", key)
            result = result.merge(
                DeleteResult(
                    succeeded=[k for k in batch if k not in errors],
                    failed=[k for k in batch if k in errors],
                )
            )
        return result

    async def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None,
                lambda: self._client.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self._bucket, "Key": key},
                    ExpiresIn=ttl_seconds,
                ),
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageFailure(f"Presign failed for {key}") from exc

    def public_url(self, key: str) -> str | None:
        if not self._public_base_url:
            return None
        return f"{self._public_base_url}/{key}"
