"""Shared fixtures for booth_core unit tests.

Every test gets a fresh SQLite database on disk, a filesystem object
store under ``tmp_path`` and a clock that only moves when told to.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from booth_core.events.event_store import EventStore, scope_for
from booth_core.models.event import EventRecord
from booth_core.models.scope import TenantScope
from booth_core.state.database import session_factory
from booth_core.state.sqlite_adapter import create_local_tables, get_local_engine
from booth_core.storage import LocalObjectStore
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

KEY_PREFIX = "test"
OWNER = "owner-a"


class FakeClock:
    """Callable clock for stores; ``advance`` moves it forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture()
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    engine = get_local_engine(tmp_path / "state.db")
    await create_local_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture()
def objects(tmp_path: Path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects", "test-signing-secret")


@pytest.fixture()
def store_for(
    session: AsyncSession,
    objects: LocalObjectStore,
    clock: FakeClock,
) -> Callable[[str], EventStore]:
    """Build an event store for any owner on the shared session."""

    def _make(owner_id: str) -> EventStore:
        return EventStore(session, owner_id, objects, key_prefix=KEY_PREFIX, now=clock)

    return _make


@pytest.fixture()
def event_store(store_for: Callable[[str], EventStore]) -> EventStore:
    return store_for(OWNER)


@pytest_asyncio.fixture()
async def event(event_store: EventStore) -> EventRecord:
    return await event_store.create("Summer Party", plan="basic")


@pytest.fixture()
def scope(event: EventRecord) -> TenantScope:
    return scope_for(event)
