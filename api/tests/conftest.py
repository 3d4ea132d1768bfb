"""Shared fixtures for BoothOS API tests.

Each test runs the real application against a fresh SQLite database and
a filesystem object store under ``tmp_path``.  The mail relay is an
``httpx.MockTransport`` that records outgoing messages, and the store
clock can be moved forward through ``clock``.
"""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from api_helpers import TEST_ADMIN_TOKEN, TEST_JWT_SECRET, FakeClock, auth_headers

# Settings are read from the environment when the app module is imported,
# so these must be in place first.
os.environ["API_JWT_SECRET"] = TEST_JWT_SECRET
os.environ["API_ADMIN_TOKEN"] = TEST_ADMIN_TOKEN
os.environ["API_APP_BASE_URL"] = "http://testserver"

from booth_core.config import CoreSettings, load_settings  # noqa: E402
from booth_core.state.sqlite_adapter import create_local_tables  # noqa: E402
from fastapi import FastAPI  # noqa: E402

from api import dependencies  # noqa: E402
from api.dependencies import (  # noqa: E402
    dispose_engine,
    get_clock,
    get_core_settings,
    get_mailer,
    get_settings,
    init_engine,
    init_object_store,
)
from api.main import create_app  # noqa: E402
from api.services.mailer import Mailer  # noqa: E402


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture()
def core_settings(tmp_path: Path) -> CoreSettings:
    return load_settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'state.db'}",
        storage_root=tmp_path / "objects",
        key_prefix="test",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sent_mail() -> list[dict[str, Any]]:
    return []


@pytest_asyncio.fixture()
async def mailer(sent_mail: list[dict[str, Any]]) -> AsyncGenerator[Mailer, None]:
    def handler(request: httpx.Request) -> httpx.Response:
        sent_mail.append(json.loads(request.content))
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    yield Mailer("http://relay.test/send", "relay-token", http_client=client)
    await client.aclose()


@pytest_asyncio.fixture()
async def app(core_settings: CoreSettings, clock: FakeClock, mailer: Mailer) -> AsyncGenerator[FastAPI, None]:
    engine = init_engine(core_settings)
    await create_local_tables(engine)
    init_object_store(core_settings)

    application = create_app()
    application.dependency_overrides[get_core_settings] = lambda: core_settings
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_mailer] = lambda: mailer
    yield application

    await dispose_engine()
    dependencies._object_store = None


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture()
def settings_override(app: FastAPI) -> Any:
    """Return a helper that swaps in API settings with the given overrides."""

    def _apply(**overrides: Any) -> None:
        base = get_settings()
        app.dependency_overrides[get_settings] = lambda: base.model_copy(update=overrides)

    return _apply


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def event(client: AsyncClient) -> dict[str, Any]:
    """A live 'basic' event owned by owner-a."""
    resp = await client.post(
        "/api/v1/events",
        json={"name": "Summer Party", "plan": "basic"},
        headers=auth_headers(),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
