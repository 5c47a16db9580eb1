"""Session lifecycle controller.

Owns one underlying WhatsApp client per session id. Clients report their
lifecycle through ``deliver`` tagged with their client id; events are queued
per session and applied in order by a dedicated worker task, so the registry
is only ever written from the event loop and never mid-transition.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from whatsapp_gateway.adapters.qr import QrRenderer
from whatsapp_gateway.adapters.whatsapp_client import ClientFactory, WhatsAppClient
from whatsapp_gateway.domain.events import (
    Authenticated,
    AuthFailed,
    ClientReady,
    Disconnected,
    LifecycleEvent,
    MessageReceived,
    QrIssued,
    StateChanged,
    apply_event,
)
from whatsapp_gateway.domain.health import (
    AggregateHealth,
    HealthSnapshot,
    evaluate,
    evaluate_all,
)
from whatsapp_gateway.domain.messages import RawMessage
from whatsapp_gateway.domain.sessions import SessionRecord, SessionStatus
from whatsapp_gateway.services.dispatcher import InboundMessageDispatcher
from whatsapp_gateway.services.fanout import RealtimeFanout
from whatsapp_gateway.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

DISCONNECT_EXPIRY_SECONDS = 30.0
DESTROY_TIMEOUT_SECONDS = 10.0


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Delivery(Enum):
    """Outcome of handing a lifecycle event to the controller."""

    QUEUED = "queued"
    UNKNOWN_SESSION = "unknown_session"
    STALE_CLIENT = "stale_client"


@dataclass
class _Attachment:
    """Runtime state bound to one client instance of a session."""

    client_id: str
    client: WhatsAppClient
    queue: asyncio.Queue[LifecycleEvent] = field(default_factory=asyncio.Queue)
    worker: asyncio.Task[None] | None = None
    init_task: asyncio.Task[None] | None = None
    expiry: asyncio.Task[None] | None = None
    dispatches: set[asyncio.Task[Any]] = field(default_factory=set)

    def tasks(self) -> list[asyncio.Task[None]]:
        return [
            task
            for task in (self.worker, self.init_task, self.expiry)
            if task is not None
        ]


@dataclass
class SessionLifecycleController:
    """Creates, tracks, restarts and removes WhatsApp sessions."""

    registry: SessionRegistry
    client_factory: ClientFactory
    fanout: RealtimeFanout
    dispatcher: InboundMessageDispatcher
    qr_renderer: QrRenderer
    expiry_seconds: float = DISCONNECT_EXPIRY_SECONDS
    destroy_timeout_seconds: float = DESTROY_TIMEOUT_SECONDS
    clock: Callable[[], datetime] = _utcnow
    _attachments: dict[str, _Attachment] = field(default_factory=dict)
    _background: set[asyncio.Task[Any]] = field(default_factory=set)

    def get(self, session_id: str) -> SessionRecord | None:
        """Return the current record of a session."""
        return self.registry.get(session_id)

    def list_sessions(self) -> list[SessionRecord]:
        """Return the records of all sessions."""
        return self.registry.list()

    def client_for(self, session_id: str) -> WhatsAppClient | None:
        """Return the client currently attached to a session."""
        attachment = self._attachments.get(session_id)
        return attachment.client if attachment else None

    def health(self, session_id: str) -> HealthSnapshot | None:
        """Evaluate one session, or None when it does not exist."""
        record = self.registry.get(session_id)
        if record is None:
            return None
        return evaluate(record, self.clock())

    def health_all(self) -> AggregateHealth:
        """Evaluate every session."""
        return evaluate_all(self.registry.list(), self.clock())

    async def create(self, session_id: str) -> SessionRecord:
        """Create a session, or return the existing one unchanged."""
        existing = self.registry.get(session_id)
        if existing is not None:
            return existing
        record = SessionRecord.initializing(session_id, self.clock())
        self.registry.put(record)
        self._attach(session_id)
        logger.info("Session created", extra={"session_id": session_id})
        await self.fanout.publish_sessions()
        return record

    async def remove(self, session_id: str) -> bool:
        """Tear down and forget a session; returns whether it existed."""
        removed = await self._teardown(session_id)
        if removed:
            logger.info("Session removed", extra={"session_id": session_id})
            await self.fanout.publish_sessions()
        return removed

    async def restart(self, session_id: str) -> SessionRecord | None:
        """Replace the client of an existing session with a fresh one."""
        if session_id not in self.registry:
            return None
        await self._teardown(session_id)
        logger.info("Session restarting", extra={"session_id": session_id})
        return await self.create(session_id)

    def deliver(
        self, session_id: str, client_id: str, event: LifecycleEvent
    ) -> Delivery:
        """Queue an event reported by a client of a session.

        Events from a client that is no longer attached (the session was
        restarted or removed since) are dropped.
        """
        attachment = self._attachments.get(session_id)
        if attachment is None:
            return Delivery.UNKNOWN_SESSION
        if attachment.client_id != client_id:
            logger.info(
                "Dropping event from detached client",
                extra={
                    "session_id": session_id,
                    "client_id": client_id,
                    "event": type(event).__name__,
                },
            )
            return Delivery.STALE_CLIENT
        attachment.queue.put_nowait(event)
        return Delivery.QUEUED

    def touch(self, session_id: str) -> None:
        """Record message activity on a session."""
        record = self.registry.get(session_id)
        if record is None:
            return
        self.registry.put(replace(record, last_activity_at=self.clock()))

    async def drain(self, session_id: str) -> None:
        """Wait until every queued event of a session has been handled.

        Message dispatches started by those events are awaited too; work of
        other sessions is not.
        """
        attachment = self._attachments.get(session_id)
        if attachment is None:
            return
        if attachment.worker is not None:
            joined = asyncio.ensure_future(attachment.queue.join())
            try:
                await asyncio.wait(
                    {joined, attachment.worker},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                joined.cancel()
        if attachment.dispatches:
            await asyncio.gather(*list(attachment.dispatches), return_exceptions=True)

    async def shutdown(self) -> None:
        """Tear down every session."""
        session_ids = set(self._attachments) | {r.id for r in self.registry.list()}
        for session_id in session_ids:
            await self._teardown(session_id)
        for task in list(self._background):
            task.cancel()
        logger.info(
            "Lifecycle controller stopped", extra={"sessions": len(session_ids)}
        )

    def _attach(self, session_id: str) -> _Attachment:
        client_id = uuid.uuid4().hex
        attachment = _Attachment(
            client_id=client_id, client=self.client_factory(session_id, client_id)
        )
        self._attachments[session_id] = attachment
        attachment.worker = asyncio.create_task(
            self._run_worker(session_id, attachment)
        )
        attachment.init_task = asyncio.create_task(
            self._initialize(session_id, attachment)
        )
        return attachment

    async def _initialize(self, session_id: str, attachment: _Attachment) -> None:
        try:
            await attachment.client.initialize()
        except Exception as exc:
            logger.exception(
                "Client initialization failed", extra={"session_id": session_id}
            )
            if self._attachments.get(session_id) is attachment:
                attachment.queue.put_nowait(
                    Disconnected(reason=f"initialization failed: {exc}")
                )

    async def _run_worker(self, session_id: str, attachment: _Attachment) -> None:
        while True:
            event = await attachment.queue.get()
            try:
                await self._handle_event(session_id, attachment, event)
            except Exception:
                logger.exception(
                    "Failed to handle lifecycle event",
                    extra={"session_id": session_id},
                )
            finally:
                attachment.queue.task_done()

    async def _handle_event(
        self, session_id: str, attachment: _Attachment, event: LifecycleEvent
    ) -> None:
        if self._attachments.get(session_id) is not attachment:
            return
        if isinstance(event, MessageReceived):
            self.touch(session_id)
            self._spawn(
                self._dispatch_message(session_id, attachment.client, event.message),
                attachment,
            )
            return
        current = self.registry.get(session_id)
        if current is None:
            return
        updated = apply_event(current, event, self.clock())
        if updated is None:
            logger.info(
                "Ignoring out-of-order lifecycle event",
                extra={
                    "session_id": session_id,
                    "status": current.status.value,
                    "event": type(event).__name__,
                },
            )
            return
        self.registry.put(updated)
        self._sync_expiry(session_id, attachment, updated)
        if updated.status != current.status:
            logger.info(
                "Session status changed",
                extra={
                    "session_id": session_id,
                    "from_status": current.status.value,
                    "to_status": updated.status.value,
                },
            )
        await self._publish_transition(updated, event)
        await self.fanout.publish_sessions()

    def _sync_expiry(
        self, session_id: str, attachment: _Attachment, record: SessionRecord
    ) -> None:
        if record.status is SessionStatus.DISCONNECTED:
            if attachment.expiry is None:
                attachment.expiry = asyncio.create_task(
                    self._expire_later(session_id, attachment.client_id)
                )
        elif attachment.expiry is not None:
            attachment.expiry.cancel()
            attachment.expiry = None

    async def _expire_later(self, session_id: str, client_id: str) -> None:
        await asyncio.sleep(self.expiry_seconds)
        attachment = self._attachments.get(session_id)
        if attachment is None or attachment.client_id != client_id:
            return
        attachment.expiry = None
        record = self.registry.get(session_id)
        if record is None or record.status is not SessionStatus.DISCONNECTED:
            return
        logger.info("Expiring disconnected session", extra={"session_id": session_id})
        await self.remove(session_id)

    async def _publish_transition(
        self, record: SessionRecord, event: LifecycleEvent
    ) -> None:
        if isinstance(event, QrIssued):
            try:
                qr = self.qr_renderer.to_data_url(event.challenge)
            except Exception:
                logger.exception(
                    "Failed to render QR code", extra={"session_id": record.id}
                )
                return
            await self.fanout.publish("session:qr", {"id": record.id, "qr": qr})
        elif isinstance(event, ClientReady):
            await self.fanout.publish("session:ready", {"id": record.id})
        elif isinstance(event, Authenticated):
            await self.fanout.publish("session:authenticated", {"id": record.id})
        elif isinstance(event, AuthFailed):
            await self.fanout.publish(
                "session:error", {"id": record.id, "error": event.reason}
            )
        elif isinstance(event, Disconnected):
            await self.fanout.publish(
                "session:disconnected", {"id": record.id, "reason": event.reason}
            )
        elif isinstance(event, StateChanged):
            await self.fanout.publish(
                "session:state", {"id": record.id, "state": event.state}
            )

    async def _dispatch_message(
        self, session_id: str, client: WhatsAppClient, message: RawMessage
    ) -> None:
        event = await self.dispatcher.dispatch(session_id, client, message)
        if event is not None:
            self.touch(session_id)

    async def _teardown(self, session_id: str) -> bool:
        """Detach synchronously, then destroy the client best-effort."""
        record = self.registry.pop(session_id)
        attachment = self._attachments.pop(session_id, None)
        if attachment is None:
            return record is not None
        current = asyncio.current_task()
        for task in attachment.tasks():
            if task is not current:
                task.cancel()
        try:
            await asyncio.wait_for(
                attachment.client.destroy(), timeout=self.destroy_timeout_seconds
            )
        except TimeoutError:
            logger.warning(
                "Timed out destroying client", extra={"session_id": session_id}
            )
        except Exception:
            logger.exception(
                "Failed to destroy client", extra={"session_id": session_id}
            )
        return True

    def _spawn(
        self, coro: Coroutine[Any, Any, None], attachment: _Attachment
    ) -> None:
        task = asyncio.create_task(coro)
        for tracked in (self._background, attachment.dispatches):
            tracked.add(task)
            task.add_done_callback(tracked.discard)
