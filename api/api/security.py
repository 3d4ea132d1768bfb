"""Bearer token issuing and validation.

Tokens are ``btk.<base64url(payload)>.<hex hmac-sha256(payload)>`` where the
payload is a JSON object of :class:`TokenClaims`.  The caller identity used
for every scope lookup is the ``sub`` claim.  Validation failures raise
``PermissionError`` and the message never echoes the token.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time

from pydantic import BaseModel, Field, SecretStr, ValidationError

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "btk"
ISSUER = "boothos"


class TokenConfig(BaseModel):
    jwt_secret: SecretStr
    token_ttl_seconds: int = Field(default=3600, gt=0)
    issuer: str = ISSUER


class TokenClaims(BaseModel):
    sub: str = Field(..., min_length=1, max_length=128)
    iss: str
    iat: float
    exp: float
    jti: str


class TokenManager:
    """Issue and validate HMAC-signed bearer tokens."""

    def __init__(self, config: TokenConfig) -> None:
        self._config = config
        self._key = config.jwt_secret.get_secret_value().encode("utf-8")

    def _sign(self, payload: bytes) -> str:
        return hmac.new(self._key, payload, hashlib.sha256).hexdigest()

    def generate_token(self, sub: str, ttl_seconds: int | None = None) -> str:
        now = time.time()
        claims = TokenClaims(
            sub=sub,
            iss=self._config.issuer,
            iat=now,
            exp=now + (ttl_seconds or self._config.token_ttl_seconds),
            jti=secrets.token_hex(8),
        )
        payload = claims.model_dump_json().encode("utf-8")
        encoded = base64.urlsafe_b64encode(payload).decode("ascii")
        return f"{TOKEN_PREFIX}.{encoded}.{self._sign(payload)}"

    def validate_token(self, token: str) -> TokenClaims:
        """Return the claims of a valid token.

        Raises
        ------
        PermissionError
            If the token is malformed, its signature does not verify, it
            was issued by someone else or it has expired.
        """
        parts = token.split(".")
        if len(parts) != 3 or parts[0] != TOKEN_PREFIX:
            raise PermissionError("Malformed token")
        try:
            payload = base64.urlsafe_b64decode(parts[1].encode("ascii"))
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise PermissionError("Malformed token") from exc
        if not hmac.compare_digest(self._sign(payload), parts[2]):
            raise PermissionError("Token signature verification failed")
        try:
            claims = TokenClaims.model_validate(json.loads(payload))
        except (ValueError, ValidationError) as exc:
            raise PermissionError("Malformed token claims") from exc
        if claims.iss != self._config.issuer:
            raise PermissionError("Unexpected token issuer")
        if claims.exp <= time.time():
            raise PermissionError("Token has expired")
        return claims
