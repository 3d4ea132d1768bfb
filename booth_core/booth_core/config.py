"""Core configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class StorageBackend(str, Enum):
    LOCAL = "local"
    S3 = "s3"


class CoreSettings(BaseSettings):
    """Settings shared by every store, loaded from ``BOOTH_``-prefixed env vars."""

    model_config = SettingsConfigDict(
        env_prefix="BOOTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./.boothos/state.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # Object storage
    storage_backend: StorageBackend = StorageBackend.LOCAL
    storage_root: Path = Path(".boothos/objects")
    key_prefix: str = "boothos"
    public_base_url: str | None = None

    # S3-compatible backend (AWS S3, Cloudflare R2).
    s3_endpoint_url: str | None = None
    s3_region: str = "auto"
    s3_bucket: str | None = None
    s3_access_key_id: str | None = None
    s3_secret_access_key: SecretStr | None = None

    # HMAC secret for locally presigned object URLs.
    signing_secret: SecretStr = SecretStr("boothos-dev-signing-secret")

    # Lifetimes
    production_ttl_hours: int = 72
    selection_ttl_hours: int = 72
    event_retention_days: int = 7

    structured_logging: bool = False

    @field_validator("key_prefix")
    @classmethod
    def strip_trailing_slashes(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("s3_secret_access_key", mode="before")
    @classmethod
    def mask_secret_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    def is_s3_configured(self) -> bool:
        return (
            self.s3_bucket is not None
            and self.s3_access_key_id is not None
            and self.s3_secret_access_key is not None
        )


def load_settings(**overrides: object) -> CoreSettings:
    """Load settings from environment, with optional overrides for testing."""
    settings = CoreSettings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded core settings: storage=%s prefix=%s",
            settings.storage_backend.value,
            settings.key_prefix,
        )

    return settings
