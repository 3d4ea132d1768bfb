"""Filesystem object store for local development and tests.

Objects live under ``root/<key>``; their content type is kept in a JSON
sidecar under ``root/.meta``.  Presigned URLs are relative paths signed
with HMAC-SHA256 and checked by :meth:`LocalObjectStore.verify_signature`.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable, Iterable
from functools import partial
from pathlib import Path
from typing import Any
from urllib.parse import quote

from booth_core.errors import StorageFailure
from booth_core.storage.base import DeleteResult, FetchResult, UploadResult

logger = logging.getLogger(__name__)

_META_DIR = ".meta"


class LocalObjectStore:
    def __init__(
        self,
        root: Path | str,
        signing_secret: str,
        url_prefix: str = "/api/v1/objects",
        public_base_url: str | None = None,
    ) -> None:
        self._root = Path(root).resolve()
        self._secret = signing_secret.encode()
        self._url_prefix = url_prefix.rstrip("/")
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if path == self._root or self._root not in path.parents:
            raise StorageFailure(f"Key escapes storage root: {key!r}")
        if _META_DIR in path.relative_to(self._root).parts[:1]:
            raise StorageFailure(f"Reserved key: {key!r}")
        return path

    def _meta_path(self, key: str) -> Path:
        return self._root / _META_DIR / f"{key}.json"

    async def _io(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args))

    # -- writes -------------------------------------------------------------

    def _write(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        meta = self._meta_path(key)
        meta.parent.mkdir(parents=True, exist_ok=True)
        meta.write_text(json.dumps({"content_type": content_type}))

    async def upload(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> UploadResult:
        try:
            await self._io(self._write, key, data, content_type)
        except OSError as exc:
            logger.error("Local upload failed for %s: %s", key, exc)
            raise StorageFailure(f"Upload failed for {key}") from exc
        return UploadResult(key=key, url=self.public_url(key))

    # -- reads --------------------------------------------------------------

    def _read(self, key: str) -> FetchResult | None:
        path = self._path(key)
        if not path.is_file():
            return None
        content_type = "application/octet-stream"
        meta = self._meta_path(key)
        if meta.is_file():
            content_type = json.loads(meta.read_text()).get("content_type", content_type)
        return FetchResult(data=path.read_bytes(), content_type=content_type)

    async def fetch(self, key: str) -> FetchResult | None:
        try:
            return await self._io(self._read, key)
        except OSError as exc:
            logger.error("Local fetch failed for %s: %s", key, exc)
            raise StorageFailure(f"Fetch failed for {key}") from exc

    # -- deletes ------------------------------------------------------------

    def _remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
        self._meta_path(key).unlink(missing_ok=True)

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        succeeded: list[str] = []
        failed: list[str] = []
        for key in dict.fromkeys(k for k in keys if k):
            try:
                await self._io(self._remove, key)
            except (OSError, StorageFailure) as exc:
                logger.warning("Local delete failed for %s: %s", key, exc)
                failed.append(key)
            else:
                succeeded.append(key)
        return DeleteResult(succeeded=succeeded, failed=failed)

    # -- urls ---------------------------------------------------------------

    def _signature(self, key: str, expires: int) -> str:
        msg = f"{key}\n{expires}".encode()
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    async def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        expires = int(time.time()) + ttl_seconds
        return (
            f"{self._url_prefix}/{quote(key)}"
            f"?expires={expires}&signature={self._signature(key, expires)}"
        )

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        """True when *signature* matches and *expires* is still in the future."""
        if expires <= int(time.time()):
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    def public_url(self, key: str) -> str | None:
        if not self._public_base_url:
            return None
        return f"{self._public_base_url}/{key}"
