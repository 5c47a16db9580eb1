"""Tests for realtime fan-out."""

import asyncio
from datetime import UTC, datetime

from tests.fakes import RecordingObserver
from whatsapp_gateway.domain.sessions import SessionRecord
from whatsapp_gateway.services.fanout import RealtimeFanout
from whatsapp_gateway.services.registry import SessionRegistry

NOW = datetime(2025, 1, 1, tzinfo=UTC)


def _fanout() -> RealtimeFanout:
    registry = SessionRegistry()
    registry.put(SessionRecord.initializing("s1", NOW))
    return RealtimeFanout(registry, clock=lambda: NOW)


def test_connect_sends_initial_state() -> None:
    fanout = _fanout()
    observer = RecordingObserver()

    asyncio.run(fanout.connect(observer))

    assert observer.events == ["connected", "sessions:update", "health:update"]
    connected, sessions, health = (frame["data"] for frame in observer.frames)
    assert connected == {"ok": True, "ts": int(NOW.timestamp() * 1000)}
    assert sessions == [
        {
            "id": "s1",
            "ready": False,
            "status": "initializing",
            "clientState": None,
            "error": None,
            "createdAt": NOW.isoformat(),
            "lastActivity": NOW.isoformat(),
            "uptime": 0,
        }
    ]
    assert health["summary"]["total"] == 1
    assert fanout.observer_count == 1


def test_publish_reaches_every_observer() -> None:
    fanout = _fanout()
    first, second = RecordingObserver(), RecordingObserver()

    async def scenario() -> None:
        await fanout.connect(first)
        await fanout.connect(second)
        await fanout.publish("session:ready", {"id": "s1"})

    asyncio.run(scenario())

    assert first.frames[-1] == {"event": "session:ready", "data": {"id": "s1"}}
    assert second.frames[-1] == {"event": "session:ready", "data": {"id": "s1"}}


def test_failing_observer_is_dropped() -> None:
    fanout = _fanout()
    healthy = RecordingObserver()
    broken = RecordingObserver()

    async def scenario() -> None:
        await fanout.connect(healthy)
        await fanout.connect(broken)
        broken.fail = True
        await fanout.publish("session:ready", {"id": "s1"})
        await fanout.publish_sessions()

    asyncio.run(scenario())

    assert fanout.observer_count == 1
    assert healthy.events[-2:] == ["session:ready", "sessions:update"]


def test_observer_failing_on_connect_is_not_kept() -> None:
    fanout = _fanout()

    asyncio.run(fanout.connect(RecordingObserver(fail=True)))

    assert fanout.observer_count == 0


def test_disconnect_unknown_observer_is_noop() -> None:
    fanout = _fanout()

    fanout.disconnect(RecordingObserver())

    assert fanout.observer_count == 0


def test_stalled_observer_does_not_hold_up_others() -> None:
    fanout = RealtimeFanout(
        SessionRegistry(), clock=lambda: NOW, send_timeout_seconds=0.05
    )
    stalled = RecordingObserver()
    healthy = RecordingObserver()

    async def scenario() -> float:
        await fanout.connect(stalled)
        await fanout.connect(healthy)
        stalled.stall = True
        loop = asyncio.get_running_loop()
        started = loop.time()
        await fanout.publish("session:ready", {"id": "s1"})
        return loop.time() - started

    elapsed = asyncio.run(scenario())

    assert elapsed < 1.0
    assert healthy.frames[-1] == {"event": "session:ready", "data": {"id": "s1"}}
    assert stalled.events[-1] == "health:update"
    assert fanout.observer_count == 1
