"""Tests for the outbound message service."""

import asyncio

import pytest

from tests.fakes import ControllerHarness, make_controller, settle
from whatsapp_gateway.domain.events import ClientReady
from whatsapp_gateway.domain.messages import NumberId
from whatsapp_gateway.services.chatwoot import ChatwootSyncService
from whatsapp_gateway.services.messaging import (
    InvalidRequestError,
    MessageService,
    SessionNotReadyError,
    TransportFailure,
)


async def _ready_harness() -> tuple[ControllerHarness, MessageService]:
    harness = make_controller()
    await harness.controller.create("s1")
    await settle()
    client = harness.factory.latest("s1")
    client.numbers["628111222333"] = NumberId(
        user="628111222333", serialized="628111222333@c.us"
    )
    client.fire(ClientReady())
    await harness.controller.drain("s1")
    service = MessageService(
        controller=harness.controller,
        chatwoot=ChatwootSyncService(client=harness.chatwoot, inbox_id=7),
    )
    return harness, service


def test_send_resolves_phone_number() -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()

        result = await service.send_message("s1", "+62 811-1222-333", " hi ")
        await service.flush()

        assert result["success"] is True
        assert result["to"] == "628111222333@c.us"
        assert harness.factory.latest("s1").sent == [("628111222333@c.us", "hi")]
        assert harness.chatwoot.messages[0][1:] == ("hi", "outgoing")
        await harness.controller.shutdown()

    asyncio.run(scenario())


def test_send_passes_chat_ids_through() -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()

        await service.send_message("s1", "120363000@g.us", "team update")

        assert harness.factory.latest("s1").sent == [("120363000@g.us", "team update")]
        await service.flush()
        await harness.controller.shutdown()

    asyncio.run(scenario())


def test_send_requires_ready_session() -> None:
    async def scenario() -> None:
        harness = make_controller()
        await harness.controller.create("s1")
        service = MessageService(
            controller=harness.controller,
            chatwoot=ChatwootSyncService(client=None),
        )

        with pytest.raises(SessionNotReadyError):
            await service.send_message("s1", "628111222333", "hi")
        with pytest.raises(SessionNotReadyError):
            await service.validate_number("missing", "628111222333")
        await harness.controller.shutdown()

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("to", "message", "error"),
    [
        (None, "hi", "to & message required"),
        ("628111222333", "", "to & message required"),
        ("   ", "hi", "invalid to or message"),
        ("abc", "hi", "invalid phone number"),
        ("628000000000", "hi", "number not on WhatsApp"),
    ],
)
def test_send_rejects_bad_input(to: str | None, message: str, error: str) -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()

        with pytest.raises(InvalidRequestError) as excinfo:
            await service.send_message("s1", to, message)

        assert excinfo.value.to_payload()["error"] == error
        assert harness.factory.latest("s1").sent == []
        await harness.controller.shutdown()

    asyncio.run(scenario())


def test_send_failure_adds_hint_for_evaluation_errors() -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()
        harness.factory.latest("s1").send_error = RuntimeError(
            "Evaluation failed: TypeError"
        )

        with pytest.raises(TransportFailure) as excinfo:
            await service.send_message("s1", "628111222333@c.us", "hi")

        assert excinfo.value.status_code == 500
        payload = excinfo.value.to_payload()
        assert payload["details"] == "Evaluation failed: TypeError"
        assert payload["error"] != payload["details"]
        await harness.controller.shutdown()

    asyncio.run(scenario())


def test_validate_number() -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()

        known = await service.validate_number("s1", "628111222333")
        unknown = await service.validate_number("s1", "628000000000")

        assert known == {
            "exists": True,
            "number": "628111222333",
            "chatId": "628111222333@c.us",
        }
        assert unknown == {"exists": False}
        with pytest.raises(InvalidRequestError):
            await service.validate_number("s1", "")
        await harness.controller.shutdown()

    asyncio.run(scenario())


def test_validate_lookup_failure_is_transport_error() -> None:
    async def scenario() -> None:
        harness, service = await _ready_harness()
        harness.factory.latest("s1").lookup_error = RuntimeError("bridge offline")

        with pytest.raises(TransportFailure) as excinfo:
            await service.validate_number("s1", "628111222333")

        assert excinfo.value.to_payload()["error"] == "bridge offline"
        await harness.controller.shutdown()

    asyncio.run(scenario())
