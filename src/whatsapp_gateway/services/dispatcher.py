"""Inbound message enrichment and forwarding."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass

from whatsapp_gateway.adapters.webhook_client import WebhookSink
from whatsapp_gateway.adapters.whatsapp_client import WhatsAppClient
from whatsapp_gateway.domain.messages import InboundMessageEvent, RawMessage
from whatsapp_gateway.services.chatwoot import ChatwootSyncService
from whatsapp_gateway.services.fanout import RealtimeFanout

logger = logging.getLogger(__name__)


@dataclass
class InboundMessageDispatcher:
    """Turns raw inbound messages into events and forwards them."""

    fanout: RealtimeFanout
    webhook: WebhookSink
    chatwoot: ChatwootSyncService

    async def dispatch(
        self, session_id: str, client: WhatsAppClient, message: RawMessage
    ) -> InboundMessageEvent | None:
        """Enrich, classify and forward one message.

        Returns the forwarded event, or None when enrichment failed and the
        message was dropped.
        """
        try:
            event = await self._build_event(session_id, client, message)
        except Exception:
            logger.exception(
                "Failed to resolve message metadata, dropping message",
                extra={"session_id": session_id, "message_id": message.id},
            )
            return None

        logger.info(
            "Inbound message",
            extra={
                "session_id": session_id,
                "message_id": event.message_id,
                "is_reply": event.is_reply,
            },
        )
        payload = event.to_payload()
        await asyncio.gather(
            self._isolate(
                "fanout",
                session_id,
                self.fanout.publish(event.fanout_event, payload),
            ),
            self._isolate(
                "webhook",
                session_id,
                self.webhook.send(event.webhook_event, payload),
            ),
            self._isolate(
                "chatwoot",
                session_id,
                self.chatwoot.handle_message(payload, "incoming"),
            ),
        )
        return event

    async def _build_event(
        self, session_id: str, client: WhatsAppClient, message: RawMessage
    ) -> InboundMessageEvent:
        contact = await client.get_contact(message)
        chat = await client.get_chat(message)
        quoted = None
        if message.has_quoted_message:
            quoted = await client.get_quoted_message(message)
        return InboundMessageEvent(
            session_id=session_id,
            message_id=message.id,
            from_address=message.from_address,
            to_address=message.to_address,
            body=message.body,
            timestamp=message.timestamp,
            contact=contact,
            chat=chat,
            quoted_message=quoted,
        )

    async def _isolate(
        self, sink: str, session_id: str, forward: Awaitable[None]
    ) -> None:
        try:
            await forward
        except Exception:
            logger.exception(
                "Forwarding inbound message failed",
                extra={"session_id": session_id, "sink": sink},
            )
