"""Message synchronization into a Chatwoot inbox."""

import logging
import re
import time
from dataclasses import dataclass

from whatsapp_gateway.adapters.chatwoot_client import ChatwootClient

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def clean_phone_number(address: str) -> str:
    """Strip WhatsApp suffixes and non-digits from an address."""
    return _NON_DIGITS.sub("", address.replace("@c.us", "").replace("@g.us", ""))


def format_content(payload: dict[str, object]) -> str:
    """Return the Chatwoot message body, quoting the original on replies."""
    content = str(payload.get("body") or payload.get("message") or "")
    quoted = payload.get("quotedMessage")
    if payload.get("isReply") and isinstance(quoted, dict):
        content = f'[Reply to: "{quoted.get("body", "")}"]\n\n{content}'
    return content


@dataclass
class ChatwootSyncService:
    """Best-effort mirror of WhatsApp traffic into Chatwoot.

    With auto provisioning on, contacts and conversations are looked up and
    created on demand in ``inbox_id``. Otherwise every message goes to the
    pre-identified ``conversation_id``.
    """

    client: ChatwootClient | None
    inbox_id: int | None = None
    conversation_id: int | None = None
    auto_provision: bool = True

    @property
    def enabled(self) -> bool:
        if self.client is None:
            return False
        if self.auto_provision:
            return self.inbox_id is not None
        return self.conversation_id is not None

    async def handle_message(
        self, payload: dict[str, object], message_type: str = "incoming"
    ) -> None:
        """Sync one message; failures are logged and swallowed."""
        if not self.enabled or self.client is None:
            logger.debug("Chatwoot not configured, skipping message sync")
            return
        phone = clean_phone_number(str(payload.get("from") or ""))
        try:
            conversation_id = await self._resolve_conversation(payload, phone)
            if conversation_id is None:
                return
            await self.client.create_message(
                conversation_id, format_content(payload), message_type
            )
        except Exception:
            logger.exception(
                "Chatwoot message sync failed",
                extra={"phone": phone, "message_type": message_type},
            )
            return
        logger.info(
            "Synced message to Chatwoot",
            extra={"conversation_id": conversation_id, "message_type": message_type},
        )

    async def _resolve_conversation(
        self, payload: dict[str, object], phone: str
    ) -> int | None:
        if not self.auto_provision:
            return self.conversation_id
        if self.client is None or self.inbox_id is None:
            return None
        contact = await self.client.search_contact(phone)
        if contact is None:
            name = _contact_name(payload) or phone
            contact = await self.client.create_contact(name=name, phone=phone)
        contact_id = int(contact["id"])
        conversation = await self.client.find_open_conversation(
            self.inbox_id, contact_id
        )
        if conversation is None:
            conversation = await self.client.create_conversation(
                self.inbox_id,
                contact_id,
                source_id=f"whatsapp_{contact_id}_{int(time.time() * 1000)}",
            )
        return int(conversation["id"])


def _contact_name(payload: dict[str, object]) -> str | None:
    contact = payload.get("contact")
    if isinstance(contact, dict):
        name = contact.get("name")
        return str(name) if name else None
    return None
