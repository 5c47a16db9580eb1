"""WhatsApp client adapter backed by the browser-automation bridge."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import httpx

from whatsapp_gateway.domain.messages import (
    ChatSummary,
    ContactSummary,
    NumberId,
    QuotedMessage,
    RawMessage,
)


class WhatsAppClient(Protocol):
    """Interface for one connected WhatsApp client.

    ``client_id`` identifies this client instance. Lifecycle events are only
    accepted for a session when they carry the id of its current client.
    """

    client_id: str

    async def initialize(self) -> None:
        """Start the client; lifecycle events are reported with its client id."""

    async def destroy(self) -> None:
        """Tear the client down."""

    async def send_message(self, chat_id: str, text: str) -> dict[str, object]:
        """Send a text message and return the transport result."""

    async def get_number_id(self, number: str) -> NumberId | None:
        """Resolve a phone number to a WhatsApp address, if registered."""

    async def get_contact(self, message: RawMessage) -> ContactSummary:
        """Return the sender contact of a message."""

    async def get_chat(self, message: RawMessage) -> ChatSummary:
        """Return the chat a message belongs to."""

    async def get_quoted_message(self, message: RawMessage) -> QuotedMessage | None:
        """Return the message quoted by a reply, if any."""


ClientFactory = Callable[[str, str], WhatsAppClient]


@dataclass
class HttpxBridgeClient:
    """Client for one session hosted by the bridge sidecar.

    The bridge runs the headless browser and posts lifecycle events back to
    the gateway's internal events endpoint, tagged with ``client_id``.
    """

    session_id: str
    client_id: str
    base_url: str
    token: str | None
    http_client: httpx.AsyncClient

    def _url(self, path: str = "") -> str:
        return f"{self.base_url}/sessions/{self.session_id}{path}"

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def initialize(self) -> None:
        """Ask the bridge to start a browser for this session."""
        response = await self.http_client.post(
            self._url(),
            json={"clientId": self.client_id},
            headers=self._headers(),
            timeout=30,
        )
        response.raise_for_status()

    async def destroy(self) -> None:
        """Ask the bridge to close the browser for this session."""
        response = await self.http_client.delete(
            self._url(), headers=self._headers(), timeout=10
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return
        response.raise_for_status()

    async def send_message(self, chat_id: str, text: str) -> dict[str, object]:
        """Send a text message through the bridge."""
        response = await self.http_client.post(
            self._url("/messages"),
            json={"chatId": chat_id, "text": text},
            headers=self._headers(),
            timeout=30,
        )
        _raise_for_bridge_error(response)
        return response.json()

    async def get_number_id(self, number: str) -> NumberId | None:
        """Resolve a phone number through the bridge."""
        response = await self.http_client.get(
            self._url(f"/numbers/{number}"), headers=self._headers(), timeout=15
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _raise_for_bridge_error(response)
        data = response.json()
        return NumberId(user=str(data["user"]), serialized=str(data["_serialized"]))

    async def get_contact(self, message: RawMessage) -> ContactSummary:
        """Fetch the sender contact of a message."""
        data = await self._get_message_detail(message, "contact")
        return ContactSummary(
            name=data.get("name") or data.get("pushname") or data.get("number"),
            number=data.get("number"),
            is_my_contact=bool(data.get("isMyContact", False)),
        )

    async def get_chat(self, message: RawMessage) -> ChatSummary:
        """Fetch the chat of a message."""
        data = await self._get_message_detail(message, "chat")
        is_group = bool(data.get("isGroup", False))
        participants = data.get("participants") or []
        return ChatSummary(
            name=data.get("name"),
            is_group=is_group,
            participant_count=len(participants) if is_group else None,
        )

    async def get_quoted_message(self, message: RawMessage) -> QuotedMessage | None:
        """Fetch the message quoted by a reply."""
        response = await self.http_client.get(
            self._url(f"/messages/{message.id}/quoted"),
            headers=self._headers(),
            timeout=15,
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        _raise_for_bridge_error(response)
        data = response.json()
        return QuotedMessage(
            id=str(data["id"]),
            body=str(data.get("body") or ""),
            from_address=str(data.get("from") or ""),
            timestamp=int(data.get("timestamp") or 0),
        )

    async def _get_message_detail(
        self, message: RawMessage, detail: str
    ) -> dict[str, object]:
        response = await self.http_client.get(
            self._url(f"/messages/{message.id}/{detail}"),
            headers=self._headers(),
            timeout=15,
        )
        _raise_for_bridge_error(response)
        return response.json()


@dataclass
class BridgeClientFactory:
    """Builds bridge clients sharing one HTTP session."""

    base_url: str
    token: str | None
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str, token: str | None) -> "BridgeClientFactory":
        """Create a factory with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            token=token,
            http_client=httpx.AsyncClient(),
        )

    def __call__(self, session_id: str, client_id: str) -> HttpxBridgeClient:
        return HttpxBridgeClient(
            session_id=session_id,
            client_id=client_id,
            base_url=self.base_url,
            token=self.token,
            http_client=self.http_client,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


class BridgeError(RuntimeError):
    """The bridge rejected an operation."""


def _raise_for_bridge_error(response: httpx.Response) -> None:
    """Raise with the bridge's own error message when it reports one."""
    if response.is_success:
        return
    try:
        data = response.json()
    except ValueError:
        data = None
    detail = data.get("error") if isinstance(data, dict) else None
    raise BridgeError(detail or f"Bridge returned HTTP {response.status_code}")
