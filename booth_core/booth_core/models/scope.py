"""The tenant scope every store operation is parameterized by."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TenantScope(BaseModel):
    """Owner + event pair that namespaces all storage and quota state.

    Scopes are derived per request by the scope resolver and never
    persisted.  Stores accept a scope instead of a raw caller identity so
    that no code path can address another owner's rows or objects.
    """

    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(..., min_length=1, max_length=128)
    event_id: str = Field(..., min_length=1, max_length=64)
    event_slug: str = Field(..., min_length=1, max_length=128)
    event_name: str = ""

    def storage_prefix(self, key_prefix: str) -> str:
        """Root of this scope's object-store namespace."""
        return "/".join(p for p in (key_prefix, "tenants", self.owner_id, self.event_id) if p)
