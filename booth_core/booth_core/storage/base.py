"""Object store contract shared by every backend."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    key: str
    url: str | None = None


class FetchResult(BaseModel):
    data: bytes = Field(..., repr=False)
    content_type: str = "application/octet-stream"


class DeleteResult(BaseModel):
    """Outcome of a best-effort bulk delete.

    Keys are reported, never raised: a failed object delete leaves an
    orphan in the bucket but must not abort the row deletion that
    triggered it.
    """

    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: DeleteResult) -> DeleteResult:
        return DeleteResult(
            succeeded=[*self.succeeded, *other.succeeded],
            failed=[*self.failed, *other.failed],
        )


@runtime_checkable
class ObjectStore(Protocol):
    """Async blob storage addressed by string keys."""

    async def upload(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> UploadResult:
        """Store *data* under *key*.  Raises ``StorageFailure``."""
        ...

    async def fetch(self, key: str) -> FetchResult | None:
        """Return the object, ``None`` when the key does not exist."""
        ...

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        """Delete every key, reporting failures instead of raising."""
        ...

    async def presign(self, key: str, ttl_seconds: int = 3600) -> str:
        """Time-limited URL for *key*."""
        ...

    def public_url(self, key: str) -> str | None:
        """Permanent URL when the bucket is publicly served, else ``None``."""
        ...
