"""Error taxonomy for the tenant-scoped delivery layer.

Every error carries the HTTP status the API layer renders it with, so a
single exception handler can translate the whole hierarchy.  Token errors
share one client-visible message: callers must not be able to tell an
expired token from a wrong one.
"""

from __future__ import annotations

from typing import Literal


class BoothError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    public_message: str | None = None

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.public_message or self.__class__.__name__)

    @property
    def detail(self) -> str:
        """Message safe to return to the client."""
        return self.public_message or str(self)


class Unauthorized(BoothError):
    """No caller identity, or an invalid credential."""

    status_code = 401
    public_message = "Authentication required"


class MissingParameter(BoothError):
    status_code = 400


class NotFound(BoothError):
    """The scope, event, set or token does not resolve for this caller."""

    status_code = 404


class Conflict(BoothError):
    status_code = 409


class Forbidden(BoothError):
    """The caller can see the event but may not perform this action on it."""

    status_code = 403


class PlanRestriction(BoothError):
    """The requested feature or action is not part of the event's plan."""

    status_code = 403


class QuotaExceeded(BoothError):
    """A caller-side quota check failed.

    ``kind`` tells the client which cap ran out so it can prompt the right
    upgrade.
    """

    status_code = 402

    def __init__(self, kind: Literal["photos", "ai_credits"], message: str) -> None:
        super().__init__(message)
        self.kind = kind


class TokenInvalid(BoothError):
    status_code = 404
    public_message = "Invalid or expired link."


class TokenExpired(TokenInvalid):
    """Rendered exactly like :class:`TokenInvalid`."""


class StorageFailure(BoothError):
    """Object store I/O failed."""

    status_code = 502
    public_message = "Storage backend unavailable"
