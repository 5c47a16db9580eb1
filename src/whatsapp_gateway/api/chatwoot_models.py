"""Pydantic models for Chatwoot webhook payloads."""

from pydantic import BaseModel, Field


class ChatwootContactInbox(BaseModel):
    """Link between a Chatwoot contact and an inbox."""

    source_id: str | None = None


class ChatwootConversation(BaseModel):
    """Conversation the webhook message belongs to."""

    id: int | None = None
    contact_inbox: ChatwootContactInbox | None = None


class ChatwootEventData(BaseModel):
    """Message created in Chatwoot."""

    id: int | None = None
    content: str | None = None
    message_type: str | int | None = None
    sender_type: str | None = None
    conversation: ChatwootConversation | None = None


class ChatwootWebhookEvent(BaseModel):
    """Chatwoot webhook payload."""

    event_type: str | None = None
    event_data: ChatwootEventData = Field(default_factory=ChatwootEventData)

    @property
    def source_id(self) -> str | None:
        conversation = self.event_data.conversation
        if conversation is None or conversation.contact_inbox is None:
            return None
        return conversation.contact_inbox.source_id

    @property
    def conversation_id(self) -> int | None:
        conversation = self.event_data.conversation
        return conversation.id if conversation else None
