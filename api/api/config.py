"""API-layer configuration loaded from environment variables."""

from __future__ import annotations

from typing import Self

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class APISettings(BaseSettings):
    """FastAPI application settings.

    All values can be overridden via environment variables prefixed with
    ``API_`` (e.g. ``API_HOST=0.0.0.0``) or through a ``.env`` file in the
    working directory.  Storage and database settings live in
    :class:`booth_core.config.CoreSettings` under the ``BOOTH_`` prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Origins permitted by the CORS middleware.
    cors_origins: list[str] = ["http://localhost:3000"]
    cors_allow_credentials: bool = True

    @model_validator(mode="after")
    def _validate_cors_credentials_not_wildcard(self) -> Self:
        """Reject wildcard origins when credentials are enabled.

        Browsers silently reject ``Access-Control-Allow-Origin: *`` together
        with ``Access-Control-Allow-Credentials: true``; fail at startup
        instead.
        """
        if self.cors_allow_credentials and "*" in self.cors_origins:
            raise ValueError(
                "Cannot use wildcard origins with credentials. "
                "Specify explicit origins instead of '*' when "
                "cors_allow_credentials=True."
            )
        return self

    # Bearer token signing.
    jwt_secret: SecretStr = SecretStr("boothos-dev-secret-change-in-production")
    token_ttl_seconds: int = 3600

    # Shared secret for the /admin routes (X-Admin-Token).  Unset disables them.
    admin_token: SecretStr | None = None

    # Public base URL used to build guest links in emails.
    app_base_url: str = "http://localhost:8000"

    # HTTP mail relay.  Unset means links are not emailed.
    mail_relay_url: str | None = None
    mail_relay_token: SecretStr | None = None
    mail_relay_timeout: float = 10.0

    # Upload limits for production delivery.
    max_upload_bytes: int = 25 * 1024 * 1024
    max_upload_files: int = 20

    # Structured JSON logging.
    structured_logging: bool = False


def load_api_settings() -> APISettings:
    """Construct settings from the environment / ``.env`` file."""
    return APISettings()
