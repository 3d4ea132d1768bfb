"""Tests for api/api/services/mailer.py."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

import httpx
import pytest

from api.services.mailer import Mailer


def _mailer(handler: object) -> Mailer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]
    return Mailer("http://relay.test/send", "relay-token", http_client=client)


class TestMailer:
    @pytest.mark.asyncio
    async def test_posts_json_with_bearer(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        mailer = _mailer(handler)
        sent = await mailer.send_delivery_link(
            "guest@example.com", "Party", "http://x/link?token=t", datetime(2026, 6, 4, tzinfo=UTC)
        )
        assert sent is True
        assert seen[0].headers["Authorization"] == "Bearer relay-token"
        body = json.loads(seen[0].content)
        assert body["to"] == "guest@example.com"
        assert "http://x/link?token=t" in body["text"]
        assert "2026-06-04 00:00" in body["text"]

    @pytest.mark.asyncio
    async def test_relay_error_is_reported_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with caplog.at_level(logging.INFO):
            sent = await _mailer(handler).send_selection_link("guest@example.com", "Party", "http://x/s/secret")
        assert sent is False
        assert all("secret" not in r.getMessage() for r in caplog.records)
        assert all("guest@example.com" not in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_rejected_status(self) -> None:
        sent = await _mailer(lambda request: httpx.Response(500)).send("a@example.com", "s", "t")
        assert sent is False

    @pytest.mark.asyncio
    async def test_disabled_without_relay(self) -> None:
        mailer = Mailer(None)
        assert mailer.enabled is False
        assert await mailer.send("a@example.com", "s", "t") is False
        await mailer.close()

    @pytest.mark.asyncio
    async def test_html_body_escapes_event_name_and_link(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        mailer = _mailer(handler)
        await mailer.send_delivery_link(
            "guest@example.com",
            "<script>alert(1)</script>",
            'http://x/link?token=t&a="b"',
            datetime(2026, 6, 4, tzinfo=UTC),
        )
        await mailer.send_selection_link("guest@example.com", "<b>Party</b>", "http://x/s/t?a=1&b=2")
        delivery, selection = (json.loads(r.content) for r in seen)
        assert "<script>" not in delivery["html"]
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in delivery["html"]
        assert 'href="http://x/link?token=t&amp;a=&quot;b&quot;"' in delivery["html"]
        # Plain-text part is left as is.
        assert "<script>alert(1)</script>" in delivery["text"]
        assert "&lt;b&gt;Party&lt;/b&gt;" in selection["html"]
        assert 'href="http://x/s/t?a=1&amp;b=2"' in selection["html"]
