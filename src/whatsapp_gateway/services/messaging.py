"""Outbound messaging through ready sessions."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from whatsapp_gateway.adapters.whatsapp_client import WhatsAppClient
from whatsapp_gateway.services.chatwoot import ChatwootSyncService
from whatsapp_gateway.services.lifecycle import SessionLifecycleController

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_CHAT_ID = re.compile(r"@c\.us$|@g\.us$")
_EVALUATION_FAILED = "Evaluation failed"
_EVALUATION_HINT = (
    "Failed to send. Make sure the number is in international format "
    "(e.g., 62...) and exists on WhatsApp"
)


class MessagingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class SessionNotReadyError(MessagingError):
    """The session does not exist or cannot send yet."""

    def __init__(self) -> None:
        super().__init__("session not ready")


class InvalidRequestError(MessagingError):
    """The caller supplied missing or malformed fields."""


class TransportFailure(MessagingError):
    """The underlying client rejected the operation."""

    status_code = 500

    @classmethod
    def from_exception(cls, exc: Exception) -> "TransportFailure":
        raw = str(exc) or "unknown error"
        if _EVALUATION_FAILED in raw:
            return cls(_EVALUATION_HINT, details=raw)
        return cls(raw)


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value)


@dataclass
class MessageService:
    """Validates recipients and sends messages through ready sessions."""

    controller: SessionLifecycleController
    chatwoot: ChatwootSyncService
    _background: set[asyncio.Task[Any]] = field(default_factory=set)

    async def validate_number(
        self, session_id: str, to: str | None
    ) -> dict[str, object]:
        """Check whether a phone number is registered on WhatsApp."""
        client = self._ready_client(session_id)
        if not to:
            raise InvalidRequestError("to required")
        try:
            number_id = await client.get_number_id(digits_only(str(to)))
        except Exception as exc:
            logger.exception("Number lookup failed", extra={"session_id": session_id})
            raise TransportFailure.from_exception(exc) from exc
        if number_id is None:
            return {"exists": False}
        return {
            "exists": True,
            "number": number_id.user,
            "chatId": number_id.serialized,
        }

    async def send_message(
        self, session_id: str, to: str | None, message: str | None
    ) -> dict[str, object]:
        """Send a text message, resolving raw phone numbers to chat ids."""
        client = self._ready_client(session_id)
        if not to or not message:
            raise InvalidRequestError("to & message required")
        to = str(to).strip()
        message = str(message).strip()
        if not to or not message:
            raise InvalidRequestError("invalid to or message")

        try:
            chat_id = await self._resolve_chat_id(client, to)
            result = await client.send_message(chat_id, message)
        except MessagingError:
            raise
        except Exception as exc:
            logger.exception("Sending message failed", extra={"session_id": session_id})
            raise TransportFailure.from_exception(exc) from exc

        self._spawn(self._sync_outgoing(session_id, chat_id, message))
        return {"success": True, "result": result, "to": chat_id}

    async def flush(self) -> None:
        """Wait for pending outbound syncs."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _ready_client(self, session_id: str) -> WhatsAppClient:
        record = self.controller.get(session_id)
        client = self.controller.client_for(session_id)
        if record is None or not record.ready or client is None:
            raise SessionNotReadyError()
        return client

    async def _resolve_chat_id(self, client: WhatsAppClient, to: str) -> str:
        if _CHAT_ID.search(to):
            return to
        digits = digits_only(to)
        if not digits:
            raise InvalidRequestError("invalid phone number")
        number_id = await client.get_number_id(digits)
        if number_id is None:
            raise InvalidRequestError("number not on WhatsApp")
        return number_id.serialized or f"{number_id.user}@c.us"

    async def _sync_outgoing(self, session_id: str, chat_id: str, body: str) -> None:
        await self.chatwoot.handle_message(
            {
                "sessionId": session_id,
                "from": chat_id,
                "to": chat_id,
                "body": body,
                "contact": {"name": chat_id, "number": chat_id},
            },
            "outgoing",
        )

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
