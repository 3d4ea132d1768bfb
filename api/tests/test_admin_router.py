"""Tests for api/api/routers/admin.py (X-Admin-Token guarded operator routes)."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from api_helpers import ADMIN_HEADERS, auth_headers


async def _deliver(client: AsyncClient, event: dict[str, Any]) -> dict[str, Any]:
    resp = await client.post(
        f"/api/v1/events/{event['slug']}/production",
        data={"email": "guest@example.com"},
        files=[("files", ("a.jpg", b"a", "image/jpeg"))],
        headers=auth_headers(),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _base(event: dict[str, Any]) -> str:
    return f"/api/v1/admin/production/{event['owner_id']}/{event['id']}"


class TestAdminAuth:
    @pytest.mark.asyncio
    async def test_missing_or_wrong_token(self, client: AsyncClient, event: dict[str, Any]) -> None:
        assert (await client.get(_base(event))).status_code == 401
        assert (await client.get(_base(event), headers={"X-Admin-Token": "nope"})).status_code == 401

    @pytest.mark.asyncio
    async def test_bearer_token_is_not_enough(self, client: AsyncClient, event: dict[str, Any]) -> None:
        assert (await client.get(_base(event), headers=auth_headers())).status_code == 401

    @pytest.mark.asyncio
    async def test_disabled_without_configured_token(
        self, client: AsyncClient, event: dict[str, Any], settings_override: Any
    ) -> None:
        settings_override(admin_token=None)
        assert (await client.get(_base(event), headers=ADMIN_HEADERS)).status_code == 404


class TestAdminOperations:
    @pytest.mark.asyncio
    async def test_list_presigns_previews(self, client: AsyncClient, event: dict[str, Any]) -> None:
        await _deliver(client, event)
        resp = await client.get(_base(event), headers=ADMIN_HEADERS)
        assert resp.status_code == 200
        items = resp.json()
        assert len(items) == 1
        preview = items[0]["attachments"][0]["url"]
        assert preview.startswith("/api/v1/objects/")
        assert "download_token" not in items[0]

        fetched = await client.get(preview)
        assert fetched.status_code == 200
        assert fetched.content == b"a"

    @pytest.mark.asyncio
    async def test_tampered_object_signature(self, client: AsyncClient, event: dict[str, Any]) -> None:
        await _deliver(client, event)
        preview = (await client.get(_base(event), headers=ADMIN_HEADERS)).json()[0]["attachments"][0]["url"]
        assert (await client.get(preview[:-4] + "0000")).status_code == 404

    @pytest.mark.asyncio
    async def test_resend(
        self, client: AsyncClient, event: dict[str, Any], sent_mail: list[dict[str, Any]]
    ) -> None:
        production = (await _deliver(client, event))["production"]
        resp = await client.post(f"{_base(event)}/{production['id']}/resend", headers=ADMIN_HEADERS)
        assert resp.json() == {"emailed": True, "email": "guest@example.com"}
        assert len(sent_mail) == 2

    @pytest.mark.asyncio
    async def test_delete_one_and_all(self, client: AsyncClient, event: dict[str, Any]) -> None:
        first = (await _deliver(client, event))["production"]
        await _deliver(client, event)

        one = await client.delete(f"{_base(event)}/{first['id']}", headers=ADMIN_HEADERS)
        assert one.json() == {"objects_deleted": 2, "objects_failed": 0}

        rest = await client.delete(_base(event), headers=ADMIN_HEADERS)
        assert rest.json()["objects_deleted"] == 2
        assert (await client.get(_base(event), headers=ADMIN_HEADERS)).json() == []

    @pytest.mark.asyncio
    async def test_unknown_event_or_set(self, client: AsyncClient, event: dict[str, Any]) -> None:
        wrong_owner = f"/api/v1/admin/production/owner-b/{event['id']}"
        assert (await client.get(wrong_owner, headers=ADMIN_HEADERS)).status_code == 404
        assert (await client.delete(f"{_base(event)}/missing", headers=ADMIN_HEADERS)).status_code == 404
