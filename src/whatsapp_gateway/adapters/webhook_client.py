"""Outbound webhook sink."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

import httpx

USER_AGENT = "WhatsApp-Gateway-Webhook/1.0"


class WebhookSink(Protocol):
    """Interface for delivering gateway events to an external endpoint."""

    async def send(self, event: str, data: dict[str, object]) -> None:
        """Deliver one event."""


@dataclass
class HttpxWebhookClient(WebhookSink):
    """Single-attempt webhook delivery over httpx."""

    url: str | None
    secret: str | None
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, url: str | None, secret: str | None) -> "HttpxWebhookClient":
        """Create a webhook client with a managed httpx session."""
        return cls(url=url, secret=secret, http_client=httpx.AsyncClient())

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def send(self, event: str, data: dict[str, object]) -> None:
        """POST the event envelope; raises on transport or HTTP errors."""
        if not self.url:
            return
        headers = {"User-Agent": USER_AGENT}
        if self.secret:
            headers["X-Webhook-Secret"] = self.secret
        payload = {
            "event": event,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "data": data,
        }
        response = await self.http_client.post(
            self.url, json=payload, headers=headers, timeout=10
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
