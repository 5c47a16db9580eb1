"""Domain models for WhatsApp sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle states of a session."""

    INITIALIZING = "initializing"
    QR_PENDING = "qr_received"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    AUTH_FAILED = "auth_failed"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionRecord:
    """Snapshot of one session as held by the registry."""

    id: str
    status: SessionStatus
    ready: bool
    client_state: str | None
    qr: str | None
    error: str | None
    created_at: datetime
    last_activity_at: datetime

    @classmethod
    def initializing(cls, session_id: str, now: datetime) -> "SessionRecord":
        """Build the record for a freshly created session."""
        return cls(
            id=session_id,
            status=SessionStatus.INITIALIZING,
            ready=False,
            client_state=None,
            qr=None,
            error=None,
            created_at=now,
            last_activity_at=now,
        )

    def summary(self, now: datetime) -> dict[str, object]:
        """Return the wire summary used by listings and realtime updates."""
        return {
            "id": self.id,
            "ready": self.ready,
            "status": self.status.value,
            "clientState": self.client_state,
            "error": self.error,
            "createdAt": self.created_at.isoformat(),
            "lastActivity": self.last_activity_at.isoformat(),
            "uptime": whole_seconds(self.created_at, now),
        }


def whole_seconds(start: datetime, end: datetime) -> int:
    """Return elapsed whole seconds between two timestamps."""
    return int((end - start).total_seconds() // 1)
