"""Outbound email through an HTTP mail relay.

Delivery is fire-and-forget: one attempt, failures are logged and
reported as ``False`` but never propagate.  Message bodies carry bearer
links and are never logged.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10.0


def _mask_email(address: str) -> str:
    local, _, domain = address.partition("@")
    return f"{local[:1]}***@{domain}" if domain else "***"


class Mailer:
    """Post rendered messages to the configured relay.

    Parameters
    ----------
    relay_url:
        Endpoint accepting ``{"to", "subject", "text", "html"}`` JSON.
        ``None`` disables sending.
    relay_token:
        Bearer token for the relay.
    http_client:
        Optional ``httpx.AsyncClient`` for testing.
    """

    def __init__(
        self,
        relay_url: str | None,
        relay_token: str | None = None,
        *,
        timeout: float = _TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._relay_url = relay_url
        self._relay_token = relay_token
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    @property
    def enabled(self) -> bool:
        return bool(self._relay_url)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        if not self._relay_url:
            logger.info("Mail relay not configured; not emailing %s", _mask_email(to))
            return False

        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._relay_token:
            headers["Authorization"] = f"Bearer {self._relay_token}"
        body: dict[str, Any] = {"to": to, "subject": subject, "text": text}
        if html:
            body["html"] = html

        try:
            response = await self._client.post(self._relay_url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Mail relay request failed for %s: %s", _mask_email(to), type(exc).__name__)
            return False
        if not 200 <= response.status_code < 300:
            logger.warning(
                "Mail relay rejected message to %s: status=%d",
                _mask_email(to),
                response.status_code,
            )
            return False
        logger.info("Emailed %s: %s", _mask_email(to), subject)
        return True

    async def send_delivery_link(
        self,
        to: str,
        event_name: str,
        link: str,
        expires_at: datetime,
    ) -> bool:
        subject = f"Your photos from {event_name}"
        text = (
            f"Your photos from {event_name} are ready.\n\n"
            f"Download them here: {link}\n\n"
            f"The link expires on {expires_at:%Y-%m-%d %H:%M} UTC."
        )
        body = (
            f"<p>Your photos from <strong>{html.escape(event_name)}</strong> are ready.</p>"
            f'<p><a href="{html.escape(link)}">Download your photos</a></p>'
            f"<p>The link expires on {expires_at:%Y-%m-%d %H:%M} UTC.</p>"
        )
        return await self.send(to, subject, text, body)

    async def send_selection_link(self, to: str, event_name: str, link: str) -> bool:
        subject = f"Pick your favourite photos from {event_name}"
        text = f"Choose the photos you want delivered: {link}"
        body = (
            f"<p>Choose the photos you want delivered from <strong>{html.escape(event_name)}</strong>:</p>"
            f'<p><a href="{html.escape(link)}">Pick my photos</a></p>'
        )
        return await self.send(to, subject, text, body)
