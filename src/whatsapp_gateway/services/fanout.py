"""Realtime fan-out of session state to connected observers."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from whatsapp_gateway.domain.health import evaluate_all
from whatsapp_gateway.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 5.0


class Observer(Protocol):
    """A realtime connection able to receive JSON frames."""

    async def send_json(self, data: object) -> None:
        """Send one JSON frame."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class RealtimeFanout:
    """Best-effort broadcaster of registry snapshots and lifecycle events.

    Observers are written to concurrently. One that fails or does not accept a
    frame within ``send_timeout_seconds`` is dropped.
    """

    registry: SessionRegistry
    clock: Callable[[], datetime] = _utcnow
    send_timeout_seconds: float = SEND_TIMEOUT_SECONDS
    _observers: list[Observer] = field(default_factory=list)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def connect(self, observer: Observer) -> None:
        """Register an observer and send it the initial state."""
        self._observers.append(observer)
        now = self.clock()
        frames = [
            ("connected", {"ok": True, "ts": int(now.timestamp() * 1000)}),
            ("sessions:update", self.sessions_snapshot()),
            ("health:update", evaluate_all(self.registry.list(), now).to_payload()),
        ]
        for event, data in frames:
            if not await self._deliver(observer, event, data):
                return

    def disconnect(self, observer: Observer) -> None:
        """Forget an observer; unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    def sessions_snapshot(self) -> list[dict[str, object]]:
        """Return the summaries of all sessions."""
        now = self.clock()
        return [record.summary(now) for record in self.registry.list()]

    async def publish(self, event: str, data: object) -> None:
        """Send an event to every observer, dropping the ones that fail."""
        observers = list(self._observers)
        if observers:
            await asyncio.gather(
                *(self._deliver(observer, event, data) for observer in observers)
            )

    async def publish_sessions(self) -> None:
        """Broadcast the full session list."""
        await self.publish("sessions:update", self.sessions_snapshot())

    async def _deliver(self, observer: Observer, event: str, data: object) -> bool:
        try:
            await asyncio.wait_for(
                observer.send_json({"event": event, "data": data}),
                timeout=self.send_timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Dropping realtime observer after send timed out",
                extra={"event": event},
            )
        except Exception:
            logger.warning(
                "Dropping realtime observer after failed send",
                extra={"event": event},
                exc_info=True,
            )
        else:
            return True
        self.disconnect(observer)
        return False
