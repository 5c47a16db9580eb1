"""Pydantic models for events pushed by the WhatsApp bridge sidecar."""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from whatsapp_gateway.domain.events import (
    Authenticated,
    AuthFailed,
    ClientReady,
    Disconnected,
    LifecycleEvent,
    MessageReceived,
    QrIssued,
    StateChanged,
)
from whatsapp_gateway.domain.messages import RawMessage


class BridgeEventBase(BaseModel):
    """Fields shared by every bridge event."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    client_id: str = Field(alias="clientId", min_length=1)


class BridgeQrEvent(BridgeEventBase):
    type: Literal["qr"]
    qr: str

    def to_domain(self) -> LifecycleEvent:
        return QrIssued(challenge=self.qr)


class BridgeReadyEvent(BridgeEventBase):
    type: Literal["ready"]

    def to_domain(self) -> LifecycleEvent:
        return ClientReady()


class BridgeAuthenticatedEvent(BridgeEventBase):
    type: Literal["authenticated"]

    def to_domain(self) -> LifecycleEvent:
        return Authenticated()


class BridgeAuthFailureEvent(BridgeEventBase):
    type: Literal["auth_failure"]
    message: str = ""

    def to_domain(self) -> LifecycleEvent:
        return AuthFailed(reason=self.message)


class BridgeDisconnectedEvent(BridgeEventBase):
    type: Literal["disconnected"]
    reason: str = ""

    def to_domain(self) -> LifecycleEvent:
        return Disconnected(reason=self.reason)


class BridgeChangeStateEvent(BridgeEventBase):
    type: Literal["change_state"]
    state: str

    def to_domain(self) -> LifecycleEvent:
        return StateChanged(state=self.state)


class BridgeMessage(BaseModel):
    """Inbound WhatsApp message payload."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_address: str = Field(alias="from")
    to_address: str = Field(alias="to")
    body: str = ""
    timestamp: int = 0
    has_quoted_msg: bool = Field(default=False, alias="hasQuotedMsg")


class BridgeMessageEvent(BridgeEventBase):
    type: Literal["message"]
    message: BridgeMessage

    def to_domain(self) -> LifecycleEvent:
        return MessageReceived(
            message=RawMessage(
                id=self.message.id,
                from_address=self.message.from_address,
                to_address=self.message.to_address,
                body=self.message.body,
                timestamp=self.message.timestamp,
                has_quoted_message=self.message.has_quoted_msg,
            )
        )


BridgeEvent = Annotated[
    BridgeQrEvent
    | BridgeReadyEvent
    | BridgeAuthenticatedEvent
    | BridgeAuthFailureEvent
    | BridgeDisconnectedEvent
    | BridgeChangeStateEvent
    | BridgeMessageEvent,
    Field(discriminator="type"),
]

bridge_event_adapter: TypeAdapter[BridgeEvent] = TypeAdapter(BridgeEvent)
