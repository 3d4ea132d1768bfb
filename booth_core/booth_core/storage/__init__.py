"""Object storage backends and key helpers."""

from __future__ import annotations

from booth_core.config import CoreSettings, StorageBackend
from booth_core.storage.base import DeleteResult, FetchResult, ObjectStore, UploadResult
from booth_core.storage.keys import build_key, safe_filename
from booth_core.storage.local_store import LocalObjectStore


def build_object_store(settings: CoreSettings) -> ObjectStore:
    """Instantiate the backend selected by ``BOOTH_STORAGE_BACKEND``."""
    if settings.storage_backend == StorageBackend.S3:
        from booth_core.storage.s3_store import S3ObjectStore

        return S3ObjectStore.from_settings(settings)
    return LocalObjectStore(
        settings.storage_root,
        settings.signing_secret.get_secret_value(),
        public_base_url=settings.public_base_url,
    )


__all__ = [
    "DeleteResult",
    "FetchResult",
    "LocalObjectStore",
    "ObjectStore",
    "UploadResult",
    "build_key",
    "build_object_store",
    "safe_filename",
]
