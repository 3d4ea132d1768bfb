"""Production sets: the delivered photos behind one tokenized link."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

BUNDLE_FILENAME = "photos.zip"
BUNDLE_CONTENT_TYPE = "application/zip"

# Download history kept per set; older events are dropped.
MAX_DOWNLOAD_EVENTS = 25


class ProductionAttachment(BaseModel):
    """One stored file of a production set."""

    filename: str
    storage_key: str
    url: str | None = None
    content_type: str = "application/octet-stream"
    size: int = 0


class DownloadEvent(BaseModel):
    at: datetime
    ip: str | None = None


class ProductionSet(BaseModel):
    """A delivered set of photos plus its zip bundle.

    ``download_token`` is a bearer secret.  It is returned once to the
    caller that created the set so the link can be mailed, and must never
    be written to logs.
    """

    id: str
    owner_id: str
    event_id: str
    email: str
    created_at: datetime
    download_token: str = Field(..., repr=False)
    token_expires_at: datetime
    attachments: list[ProductionAttachment] = Field(default_factory=list)
    bundle_key: str | None = None
    bundle_url: str | None = None
    bundle_filename: str | None = None
    download_count: int = 0
    last_downloaded_at: datetime | None = None
    download_events: list[DownloadEvent] = Field(default_factory=list)

    def storage_keys(self) -> list[str]:
        """Every object key backing this set, bundle included."""
        keys = [a.storage_key for a in self.attachments]
        if self.bundle_key:
            keys.append(self.bundle_key)
        return keys


class UploadedFile(BaseModel):
    """Raw bytes handed to the production store by the caller."""

    filename: str
    data: bytes = Field(..., repr=False)
    content_type: str = "application/octet-stream"
