"""Domain models for WhatsApp messages."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RawMessage:
    """Inbound message as reported by the underlying client."""

    id: str
    from_address: str
    to_address: str
    body: str
    timestamp: int
    has_quoted_message: bool = False


@dataclass(frozen=True)
class ContactSummary:
    """Sender contact details."""

    name: str | None
    number: str | None
    is_my_contact: bool = False


@dataclass(frozen=True)
class ChatSummary:
    """Chat the message belongs to."""

    name: str | None
    is_group: bool = False
    participant_count: int | None = None


@dataclass(frozen=True)
class QuotedMessage:
    """Message referenced by a reply."""

    id: str
    body: str
    from_address: str
    timestamp: int


@dataclass(frozen=True)
class NumberId:
    """Resolved WhatsApp address for a phone number."""

    user: str
    serialized: str


@dataclass(frozen=True)
class InboundMessageEvent:
    """Canonical inbound message forwarded to external sinks."""

    session_id: str
    message_id: str
    from_address: str
    to_address: str
    body: str
    timestamp: int
    contact: ContactSummary
    chat: ChatSummary
    quoted_message: QuotedMessage | None = None

    @property
    def is_reply(self) -> bool:
        return self.quoted_message is not None

    @property
    def fanout_event(self) -> str:
        return "message:reply" if self.is_reply else "message:received"

    @property
    def webhook_event(self) -> str:
        return "message_reply" if self.is_reply else "message_received"

    def to_payload(self) -> dict[str, object]:
        """Return the camelCase wire representation."""
        payload: dict[str, object] = {
            "sessionId": self.session_id,
            "messageId": self.message_id,
            "from": self.from_address,
            "to": self.to_address,
            "body": self.body,
            "timestamp": self.timestamp,
            "isReply": self.is_reply,
            "contact": {
                "name": self.contact.name,
                "number": self.contact.number,
                "isMyContact": self.contact.is_my_contact,
            },
            "chat": {
                "name": self.chat.name,
                "isGroup": self.chat.is_group,
                "participantCount": self.chat.participant_count,
            },
        }
        if self.quoted_message is not None:
            payload["quotedMessage"] = {
                "id": self.quoted_message.id,
                "body": self.quoted_message.body,
                "from": self.quoted_message.from_address,
                "timestamp": self.quoted_message.timestamp,
            }
        return payload
