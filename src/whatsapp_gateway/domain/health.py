"""Health evaluation for sessions."""

from dataclasses import dataclass
from datetime import datetime

from whatsapp_gateway.domain.sessions import SessionRecord, SessionStatus, whole_seconds

STALE_AFTER_SECONDS = 300
HEALTHY_RATIO_THRESHOLD = 0.8
HEALTHY_STATUSES = frozenset(
    {SessionStatus.READY, SessionStatus.AUTHENTICATED, SessionStatus.QR_PENDING}
)


@dataclass(frozen=True)
class HealthSnapshot:
    """Health verdict for a single session."""

    record: SessionRecord
    healthy: bool
    stale: bool
    uptime_seconds: int
    seconds_since_last_activity: int

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation."""
        record = self.record
        return {
            "id": record.id,
            "status": record.status.value,
            "clientState": record.client_state,
            "ready": record.ready,
            "healthy": self.healthy,
            "uptime": self.uptime_seconds,
            "timeSinceLastActivity": self.seconds_since_last_activity,
            "error": record.error,
            "createdAt": record.created_at.isoformat(),
            "lastActivity": record.last_activity_at.isoformat(),
            "stale": self.stale,
        }


@dataclass(frozen=True)
class HealthSummary:
    """Counters across all sessions."""

    total: int
    healthy: int
    ready: int
    stale: int

    @property
    def unhealthy(self) -> int:
        return self.total - self.healthy


@dataclass(frozen=True)
class AggregateHealth:
    """Health verdict across all sessions."""

    summary: HealthSummary
    sessions: list[HealthSnapshot]
    timestamp: datetime
    overall_healthy: bool

    def to_payload(self) -> dict[str, object]:
        """Return the wire representation."""
        return {
            "status": "healthy" if self.overall_healthy else "unhealthy",
            "summary": {
                "total": self.summary.total,
                "healthy": self.summary.healthy,
                "ready": self.summary.ready,
                "stale": self.summary.stale,
                "unhealthy": self.summary.unhealthy,
            },
            "sessions": [snapshot.to_payload() for snapshot in self.sessions],
            "timestamp": self.timestamp.isoformat(),
            "overallHealth": self.overall_healthy,
        }


def evaluate(record: SessionRecord, now: datetime) -> HealthSnapshot:
    """Evaluate the health of one session at the given time."""
    idle = whole_seconds(record.last_activity_at, now)
    stale = idle > STALE_AFTER_SECONDS
    return HealthSnapshot(
        record=record,
        healthy=record.status in HEALTHY_STATUSES and not stale,
        stale=stale,
        uptime_seconds=whole_seconds(record.created_at, now),
        seconds_since_last_activity=idle,
    )


def evaluate_all(records: list[SessionRecord], now: datetime) -> AggregateHealth:
    """Evaluate every session and derive the overall verdict."""
    snapshots = [evaluate(record, now) for record in records]
    total = len(snapshots)
    healthy = sum(1 for snapshot in snapshots if snapshot.healthy)
    summary = HealthSummary(
        total=total,
        healthy=healthy,
        ready=sum(1 for snapshot in snapshots if snapshot.record.ready),
        stale=sum(1 for snapshot in snapshots if snapshot.stale),
    )
    return AggregateHealth(
        summary=summary,
        sessions=snapshots,
        timestamp=now,
        overall_healthy=total == 0 or healthy / total >= HEALTHY_RATIO_THRESHOLD,
    )
