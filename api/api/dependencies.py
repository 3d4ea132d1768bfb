"""FastAPI dependency injection for settings, sessions, storage and mail."""

from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from booth_core.config import CoreSettings, load_settings
from booth_core.errors import Unauthorized
from booth_core.models.event import EventRecord
from booth_core.models.scope import TenantScope
from booth_core.scope import ScopeResolver
from booth_core.state.database import get_engine, session_factory
from booth_core.state.repository import Clock, utcnow
from booth_core.storage import ObjectStore, build_object_store
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from api.config import APISettings, load_api_settings
from api.security import TokenConfig, TokenManager
from api.services.delivery_service import DeliveryService
from api.services.guest_service import GuestService
from api.services.mailer import Mailer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None
_core_settings_cache: CoreSettings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


def get_core_settings() -> CoreSettings:
    """Return the cached :class:`CoreSettings` singleton."""
    global _core_settings_cache  # noqa: PLW0603
    if _core_settings_cache is None:
        _core_settings_cache = load_settings()
    return _core_settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]
CoreSettingsDep = Annotated[CoreSettings, Depends(get_core_settings)]


def get_token_manager(settings: SettingsDep) -> TokenManager:
    return TokenManager(
        TokenConfig(jwt_secret=settings.jwt_secret, token_ttl_seconds=settings.token_ttl_seconds)
    )


# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_engine(settings: CoreSettings) -> AsyncEngine:
    """Create and cache the global async engine."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = get_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    _session_factory = session_factory(_engine)
    return _engine


async def dispose_engine() -> None:
    """Dispose the global engine pool (call during shutdown)."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError(
            "Database engine has not been initialised. Ensure init_engine() is called during application startup."
        )
    return _session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession`` that commits on clean exit and rolls back on error.

    Tenant isolation is enforced by the stores, which filter every
    statement on the resolved scope, not by the session.
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------

_object_store: ObjectStore | None = None


def init_object_store(settings: CoreSettings) -> ObjectStore:
    global _object_store  # noqa: PLW0603
    _object_store = build_object_store(settings)
    return _object_store


def get_object_store() -> ObjectStore:
    if _object_store is None:
        raise RuntimeError("Object store has not been initialised.")
    return _object_store


ObjectStoreDep = Annotated[ObjectStore, Depends(get_object_store)]

# ---------------------------------------------------------------------------
# Mail relay
# ---------------------------------------------------------------------------

_mailer: Mailer | None = None


def init_mailer(settings: APISettings) -> Mailer:
    global _mailer  # noqa: PLW0603
    token = settings.mail_relay_token.get_secret_value() if settings.mail_relay_token else None
    _mailer = Mailer(settings.mail_relay_url, token, timeout=settings.mail_relay_timeout)
    return _mailer


async def dispose_mailer() -> None:
    global _mailer  # noqa: PLW0603
    if _mailer is not None:
        await _mailer.close()
        _mailer = None


def get_mailer() -> Mailer:
    if _mailer is None:
        raise RuntimeError("Mailer has not been initialised.")
    return _mailer


MailerDep = Annotated[Mailer, Depends(get_mailer)]

# ---------------------------------------------------------------------------
# Clock and scope resolution
# ---------------------------------------------------------------------------


def get_clock() -> Clock:
    """Time source for stores; overridden in tests to move time forward."""
    return utcnow


ClockDep = Annotated[Clock, Depends(get_clock)]


def get_resolver(
    session: SessionDep,
    objects: ObjectStoreDep,
    core: CoreSettingsDep,
    clock: ClockDep,
) -> ScopeResolver:
    return ScopeResolver(
        session,
        objects,
        key_prefix=core.key_prefix,
        retention_days=core.event_retention_days,
        now=clock,
    )


ResolverDep = Annotated[ScopeResolver, Depends(get_resolver)]


def get_caller_id(request: Request) -> str:
    """Return the authenticated caller id set by the auth middleware."""
    owner_id = getattr(request.state, "owner_id", None)
    if not owner_id:
        raise Unauthorized()
    return str(owner_id)


CallerDep = Annotated[str, Depends(get_caller_id)]


def require_admin(
    settings: SettingsDep,
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Guard for /admin routes: constant-time check of ``X-Admin-Token``."""
    expected = settings.admin_token.get_secret_value() if settings.admin_token else ""
    if not expected:
        raise HTTPException(status_code=404, detail="Not found")
    if not x_admin_token or not hmac.compare_digest(x_admin_token.encode(), expected.encode()):
        logger.warning("Rejected admin request with invalid token")
        raise HTTPException(status_code=401, detail="Invalid admin token")


AdminDep = Depends(require_admin)


async def resolve_event_scope(
    event_ref: str,
    caller_id: CallerDep,
    resolver: ResolverDep,
) -> tuple[TenantScope, EventRecord]:
    """Resolve the ``{event_ref}`` path segment for the caller or a collaborator."""
    return await resolver.resolve_event(caller_id, event_ref, allow_collaborator=True)


EventScopeDep = Annotated[tuple[TenantScope, EventRecord], Depends(resolve_event_scope)]

# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_delivery_service(
    session: SessionDep,
    resolver: ResolverDep,
    objects: ObjectStoreDep,
    core: CoreSettingsDep,
    settings: SettingsDep,
    mailer: MailerDep,
    clock: ClockDep,
) -> DeliveryService:
    return DeliveryService(session, resolver, objects, core, settings, mailer, clock)


def get_guest_service(
    session: SessionDep,
    resolver: ResolverDep,
    objects: ObjectStoreDep,
    core: CoreSettingsDep,
    settings: SettingsDep,
    mailer: MailerDep,
    clock: ClockDep,
) -> GuestService:
    return GuestService(session, resolver, objects, core, settings, mailer, clock)


DeliveryServiceDep = Annotated[DeliveryService, Depends(get_delivery_service)]
GuestServiceDep = Annotated[GuestService, Depends(get_guest_service)]
