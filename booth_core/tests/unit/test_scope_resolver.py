"""Tests for caller/event scope resolution."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest
from booth_core.errors import MissingParameter, NotFound, Unauthorized
from booth_core.events.event_store import EventStore
from booth_core.models.event import EventRecord, EventStatus
from booth_core.scope import ScopeResolver
from booth_core.storage import LocalObjectStore
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from conftest import FakeClock


@pytest.fixture()
def resolver(session: AsyncSession, objects: LocalObjectStore, clock: FakeClock) -> ScopeResolver:
    return ScopeResolver(session, objects, key_prefix="test", retention_days=7, now=clock)


class TestResolve:
    @pytest.mark.asyncio
    async def test_owner_resolves_by_slug_and_id(self, resolver: ScopeResolver, event: EventRecord) -> None:
        by_slug = await resolver.resolve(event.owner_id, event.slug)
        by_id = await resolver.resolve(event.owner_id, event.id)
        assert by_slug == by_id
        assert by_slug.event_id == event.id
        assert by_slug.event_name == event.name

    @pytest.mark.asyncio
    async def test_missing_caller(self, resolver: ScopeResolver, event: EventRecord) -> None:
        with pytest.raises(Unauthorized):
            await resolver.resolve(None, event.slug)

    @pytest.mark.asyncio
    async def test_missing_identifier(self, resolver: ScopeResolver) -> None:
        with pytest.raises(MissingParameter):
            await resolver.resolve("owner-a", "")

    @pytest.mark.asyncio
    async def test_other_owner_gets_not_found(self, resolver: ScopeResolver, event: EventRecord) -> None:
        with pytest.raises(NotFound):
            await resolver.resolve("owner-b", event.slug)
        with pytest.raises(NotFound):
            await resolver.resolve("owner-b", event.id)

    @pytest.mark.asyncio
    async def test_same_slug_resolves_per_owner(
        self, resolver: ScopeResolver, store_for: Callable[[str], EventStore]
    ) -> None:
        a = await store_for("owner-a").create("Party")
        b = await store_for("owner-b").create("Party")
        assert (await resolver.resolve("owner-a", "party")).event_id == a.id
        assert (await resolver.resolve("owner-b", "party")).event_id == b.id


class TestCollaborators:
    @pytest.mark.asyncio
    async def test_collaborator_only_when_allowed(
        self, resolver: ScopeResolver, store_for: Callable[[str], EventStore]
    ) -> None:
        owner_store = store_for("owner-a")
        event = await owner_store.create("Gala", plan="pro")
        await owner_store.set_collaborators(event.id, ["helper"])

        with pytest.raises(NotFound):
            await resolver.resolve("helper", "gala")
        scope = await resolver.resolve("helper", "gala", allow_collaborator=True)
        assert scope.owner_id == "owner-a"
        assert scope.event_id == event.id

    @pytest.mark.asyncio
    async def test_stranger_is_not_a_collaborator(self, resolver: ScopeResolver, event: EventRecord) -> None:
        with pytest.raises(NotFound):
            await resolver.resolve("stranger", event.slug, allow_collaborator=True)


class TestResolvePublic:
    @pytest.mark.asyncio
    async def test_live_event(self, resolver: ScopeResolver, event: EventRecord) -> None:
        scope, found = await resolver.resolve_public(event.owner_id, event.slug)
        assert scope.event_id == event.id
        assert found.id == event.id

    @pytest.mark.asyncio
    async def test_closed_event_does_not_resolve(
        self, resolver: ScopeResolver, event_store: EventStore, event: EventRecord
    ) -> None:
        await event_store.update_status(event.id, EventStatus.CLOSED)
        with pytest.raises(NotFound):
            await resolver.resolve_public(event.owner_id, event.slug)

    @pytest.mark.asyncio
    async def test_wrong_owner(self, resolver: ScopeResolver, event: EventRecord) -> None:
        with pytest.raises(NotFound):
            await resolver.resolve_public("owner-b", event.slug)
