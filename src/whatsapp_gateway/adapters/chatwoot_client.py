"""Chatwoot REST API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class ChatwootClient(Protocol):
    """Interface for the Chatwoot calls used by message sync."""

    async def search_contact(self, query: str) -> dict[str, object] | None:
        """Return the first contact matching the query, if any."""

    async def create_contact(self, name: str, phone: str) -> dict[str, object]:
        """Create a contact and return it."""

    async def find_open_conversation(
        self, inbox_id: int, contact_id: int
    ) -> dict[str, object] | None:
        """Return the open conversation of a contact in an inbox, if any."""

    async def create_conversation(
        self, inbox_id: int, contact_id: int, source_id: str
    ) -> dict[str, object]:
        """Create a conversation and return it."""

    async def create_message(
        self, conversation_id: int, content: str, message_type: str
    ) -> dict[str, object]:
        """Post a message into a conversation."""


@dataclass
class HttpxChatwootClient(ChatwootClient):
    """Chatwoot client implemented with httpx."""

    base_url: str
    token: str
    account_id: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, base_url: str, token: str, account_id: str
    ) -> "HttpxChatwootClient":
        """Create a Chatwoot client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            token=token,
            account_id=account_id,
            http_client=httpx.AsyncClient(),
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v1/accounts/{self.account_id}{path}"

    def _headers(self) -> dict[str, str]:
        return {"api_access_token": self.token}

    async def search_contact(self, query: str) -> dict[str, object] | None:
        """Search contacts by phone number or name."""
        response = await self.http_client.get(
            self._url("/contacts/search"),
            params={"q": query},
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        payload = response.json().get("payload") or []
        return payload[0] if payload else None

    async def create_contact(self, name: str, phone: str) -> dict[str, object]:
        """Create a contact identified by its phone number."""
        response = await self.http_client.post(
            self._url("/contacts"),
            json={"name": name, "phone": phone, "identifier": phone},
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        return response.json()["payload"]["contact"]

    async def find_open_conversation(
        self, inbox_id: int, contact_id: int
    ) -> dict[str, object] | None:
        """Find the open conversation of a contact."""
        response = await self.http_client.get(
            self._url("/conversations"),
            params={"inbox_id": inbox_id, "status": "open"},
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        conversations = response.json().get("data", {}).get("payload", [])
        for conversation in conversations:
            sender = conversation.get("meta", {}).get("sender", {})
            if sender.get("id") == contact_id:
                return conversation
        return None

    async def create_conversation(
        self, inbox_id: int, contact_id: int, source_id: str
    ) -> dict[str, object]:
        """Create a conversation for a contact."""
        response = await self.http_client.post(
            self._url("/conversations"),
            json={
                "source_id": source_id,
                "inbox_id": inbox_id,
                "contact_id": contact_id,
            },
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        return response.json()

    async def create_message(
        self, conversation_id: int, content: str, message_type: str
    ) -> dict[str, object]:
        """Post a public message into a conversation."""
        response = await self.http_client.post(
            self._url(f"/conversations/{conversation_id}/messages"),
            json={
                "content": content,
                "message_type": message_type,
                "private": False,
            },
            headers=self._headers(),
            timeout=10,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
