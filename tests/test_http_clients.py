"""Tests for HTTP-based adapters."""

import asyncio
import json

import httpx
import pytest

from tests.fakes import raw_message
from whatsapp_gateway.adapters.chatwoot_client import HttpxChatwootClient
from whatsapp_gateway.adapters.webhook_client import USER_AGENT, HttpxWebhookClient
from whatsapp_gateway.adapters.whatsapp_client import (
    BridgeClientFactory,
    BridgeError,
    HttpxBridgeClient,
)
from whatsapp_gateway.domain.messages import NumberId


def _bridge_client(handler) -> HttpxBridgeClient:  # type: ignore[no-untyped-def]
    factory = BridgeClientFactory(
        base_url="http://bridge.test",
        token="secret",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return factory("s1", "client-1")


def test_bridge_client_lifecycle_calls() -> None:
    seen: list[tuple[str, str, str | None]] = []
    bodies: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(
            (request.method, request.url.path, request.headers.get("Authorization"))
        )
        bodies.append(request.content)
        if request.method == "DELETE":
            return httpx.Response(404)
        return httpx.Response(200, json={"ok": True})

    client = _bridge_client(handler)

    asyncio.run(client.initialize())
    asyncio.run(client.destroy())

    assert seen == [
        ("POST", "/sessions/s1", "Bearer secret"),
        ("DELETE", "/sessions/s1", "Bearer secret"),
    ]
    assert json.loads(bodies[0].decode()) == {"clientId": "client-1"}


def test_bridge_client_send_and_resolve() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sessions/s1/messages":
            payload = json.loads(request.content.decode())
            assert payload == {"chatId": "628111222333@c.us", "text": "hi"}
            return httpx.Response(200, json={"id": {"_serialized": "abc"}})
        if request.url.path == "/sessions/s1/numbers/628111222333":
            return httpx.Response(
                200, json={"user": "628111222333", "_serialized": "628111222333@c.us"}
            )
        return httpx.Response(404, json={"error": "not registered"})

    client = _bridge_client(handler)

    result = asyncio.run(client.send_message("628111222333@c.us", "hi"))
    known = asyncio.run(client.get_number_id("628111222333"))
    unknown = asyncio.run(client.get_number_id("628000000000"))

    assert result == {"id": {"_serialized": "abc"}}
    assert known == NumberId(user="628111222333", serialized="628111222333@c.us")
    assert unknown is None


def test_bridge_client_surfaces_bridge_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Evaluation failed: oops"})

    client = _bridge_client(handler)

    with pytest.raises(BridgeError, match="Evaluation failed"):
        asyncio.run(client.send_message("1@c.us", "hi"))


def test_bridge_client_message_details() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/contact"):
            return httpx.Response(
                200, json={"pushname": "Alice", "number": "628111222333"}
            )
        if path.endswith("/chat"):
            return httpx.Response(
                200,
                json={"name": "Team", "isGroup": True, "participants": [{}, {}, {}]},
            )
        if path.endswith("/quoted"):
            return httpx.Response(
                200, json={"id": "q1", "body": "earlier", "from": "x@c.us"}
            )
        return httpx.Response(404)

    client = _bridge_client(handler)
    message = raw_message(has_quoted_message=True)

    contact = asyncio.run(client.get_contact(message))
    chat = asyncio.run(client.get_chat(message))
    quoted = asyncio.run(client.get_quoted_message(message))

    assert contact.name == "Alice"
    assert contact.is_my_contact is False
    assert chat.participant_count == 3
    assert quoted is not None
    assert quoted.body == "earlier"
    assert quoted.timestamp == 0


def test_bridge_factory_strips_trailing_slash() -> None:
    factory = BridgeClientFactory.create("http://bridge.test/", token=None)

    client = factory("s1", "client-1")

    assert client.base_url == "http://bridge.test"
    asyncio.run(factory.close())


def test_webhook_client_posts_envelope() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    client = HttpxWebhookClient(
        url="https://hooks.test/in",
        secret="shh",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    asyncio.run(client.send("message_received", {"body": "hi"}))

    request = captured[0]
    payload = json.loads(request.content.decode())
    assert payload["event"] == "message_received"
    assert payload["data"] == {"body": "hi"}
    assert "timestamp" in payload
    assert request.headers["User-Agent"] == USER_AGENT
    assert request.headers["X-Webhook-Secret"] == "shh"


def test_webhook_client_skips_without_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = HttpxWebhookClient(
        url=None,
        secret=None,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    asyncio.run(client.send("message_received", {}))

    assert client.enabled is False


def test_webhook_client_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    client = HttpxWebhookClient(
        url="https://hooks.test/in",
        secret=None,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send("message_received", {}))


def test_chatwoot_client_calls() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["api_access_token"] == "cw-token"
        seen.append((request.method, request.url.path))
        path = request.url.path
        if path.endswith("/contacts/search"):
            assert request.url.params["q"] == "628111222333"
            return httpx.Response(200, json={"payload": []})
        if path.endswith("/contacts"):
            return httpx.Response(
                200, json={"payload": {"contact": {"id": 9, "name": "Alice"}}}
            )
        if path.endswith("/conversations") and request.method == "GET":
            return httpx.Response(
                200,
                json={
                    "data": {
                        "payload": [
                            {"id": 1, "meta": {"sender": {"id": 8}}},
                            {"id": 2, "meta": {"sender": {"id": 9}}},
                        ]
                    }
                },
            )
        if path.endswith("/messages"):
            payload = json.loads(request.content.decode())
            assert payload == {
                "content": "hi",
                "message_type": "incoming",
                "private": False,
            }
        return httpx.Response(200, json={"id": 77})

    client = HttpxChatwootClient(
        base_url="https://chat.test",
        token="cw-token",
        account_id="3",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    async def scenario() -> None:
        assert await client.search_contact("628111222333") is None
        contact = await client.create_contact(name="Alice", phone="628111222333")
        assert contact["id"] == 9
        conversation = await client.find_open_conversation(inbox_id=4, contact_id=9)
        assert conversation is not None
        assert conversation["id"] == 2
        created = await client.create_conversation(4, 10, source_id="whatsapp_10_1")
        assert created["id"] == 77
        await client.create_message(2, "hi", "incoming")

    asyncio.run(scenario())

    assert seen[0] == ("GET", "/api/v1/accounts/3/contacts/search")
    assert seen[-1] == ("POST", "/api/v1/accounts/3/conversations/2/messages")
