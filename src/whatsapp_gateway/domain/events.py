"""Lifecycle events raised by underlying clients and the session state machine."""

from dataclasses import dataclass, replace
from datetime import datetime

from whatsapp_gateway.domain.messages import RawMessage
from whatsapp_gateway.domain.sessions import SessionRecord, SessionStatus


@dataclass(frozen=True)
class QrIssued:
    """A new QR challenge is waiting to be scanned."""

    challenge: str


@dataclass(frozen=True)
class Authenticated:
    """The QR was scanned or stored credentials were accepted."""


@dataclass(frozen=True)
class ClientReady:
    """The client can send and receive messages."""


@dataclass(frozen=True)
class AuthFailed:
    """Authentication was rejected."""

    reason: str


@dataclass(frozen=True)
class Disconnected:
    """The client lost its connection."""

    reason: str


@dataclass(frozen=True)
class StateChanged:
    """The transport connection state changed."""

    state: str


@dataclass(frozen=True)
class MessageReceived:
    """A new inbound message arrived."""

    message: RawMessage


LifecycleEvent = (
    QrIssued
    | Authenticated
    | ClientReady
    | AuthFailed
    | Disconnected
    | StateChanged
    | MessageReceived
)

_S = SessionStatus

# Statuses each status-changing event may be applied from. Anything else is a
# late or out-of-order delivery and is ignored.
_ALLOWED_FROM: dict[type, frozenset[SessionStatus]] = {
    QrIssued: frozenset({_S.INITIALIZING, _S.QR_PENDING, _S.DISCONNECTED}),
    Authenticated: frozenset({_S.INITIALIZING, _S.QR_PENDING, _S.DISCONNECTED}),
    ClientReady: frozenset(
        {_S.INITIALIZING, _S.QR_PENDING, _S.AUTHENTICATED, _S.DISCONNECTED}
    ),
    AuthFailed: frozenset(
        {
            _S.INITIALIZING,
            _S.QR_PENDING,
            _S.AUTHENTICATED,
            _S.READY,
            _S.DISCONNECTED,
        }
    ),
    Disconnected: frozenset(SessionStatus),
}


def apply_event(  # noqa: PLR0911
    record: SessionRecord, event: LifecycleEvent, now: datetime
) -> SessionRecord | None:
    """Return the record after applying the event, or None when it is ignored."""
    if isinstance(event, MessageReceived):
        return None
    if isinstance(event, StateChanged):
        return replace(record, client_state=event.state, last_activity_at=now)

    allowed = _ALLOWED_FROM.get(type(event), frozenset())
    if record.status not in allowed:
        return None

    if isinstance(event, QrIssued):
        return replace(
            record,
            status=_S.QR_PENDING,
            ready=False,
            qr=event.challenge,
            last_activity_at=now,
        )
    if isinstance(event, Authenticated):
        return replace(
            record,
            status=_S.AUTHENTICATED,
            ready=False,
            qr=None,
            last_activity_at=now,
        )
    if isinstance(event, ClientReady):
        return replace(
            record,
            status=_S.READY,
            ready=True,
            qr=None,
            error=None,
            last_activity_at=now,
        )
    if isinstance(event, AuthFailed):
        return replace(
            record,
            status=_S.AUTH_FAILED,
            ready=False,
            qr=None,
            error=event.reason,
            last_activity_at=now,
        )
    if isinstance(event, Disconnected):
        return replace(
            record,
            status=_S.DISCONNECTED,
            ready=False,
            qr=None,
            error=event.reason,
            last_activity_at=now,
        )
    return None
