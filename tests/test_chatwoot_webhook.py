"""Tests for the Chatwoot agent-reply relay."""

from fastapi.testclient import TestClient

from tests.fakes import FakeClientFactory, bring_session_ready
from whatsapp_gateway.api.app import create_app
from whatsapp_gateway.containers import AppContainer

SECRET_HEADERS = {"X-Webhook-Secret": "chatwoot-secret"}


def _agent_reply(content: str | None = "Thanks for reaching out") -> dict[str, object]:
    return {
        "event_type": "message_created",
        "event_data": {
            "id": 12345,
            "content": content,
            "message_type": "outgoing",
            "sender_type": "User",
            "conversation": {
                "id": 1001,
                "contact_inbox": {"source_id": "+62 811-1222-333"},
            },
        },
    }


def test_agent_reply_is_sent_to_whatsapp(
    container: AppContainer, client_factory: FakeClientFactory
) -> None:
    with TestClient(create_app(container)) as client:
        bring_session_ready(client, "s1")

        response = client.post(
            "/chatwoot/webhook", json=_agent_reply(), headers=SECRET_HEADERS
        )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {
        "sessionId": "s1",
        "whatsappId": "628111222333@c.us",
        "conversationId": 1001,
        "messageId": "true_628111222333@c.us_1",
    }
    assert client_factory.latest("s1").sent == [
        ("628111222333@c.us", "Thanks for reaching out")
    ]


def test_secret_is_checked(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        missing = client.post("/chatwoot/webhook", json=_agent_reply())
        wrong = client.post(
            "/chatwoot/webhook",
            json=_agent_reply(),
            headers={"X-Webhook-Secret": "nope"},
        )
        via_authorization = client.post(
            "/chatwoot/webhook",
            json=_agent_reply(),
            headers={"Authorization": "chatwoot-secret"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert missing.json() == {"error": "Invalid webhook secret"}
    assert via_authorization.status_code == 503


def test_irrelevant_events_are_ignored(container: AppContainer) -> None:
    incoming = _agent_reply()
    incoming["event_data"]["message_type"] = "incoming"  # type: ignore[index]
    bot = _agent_reply()
    bot["event_data"]["sender_type"] = "AgentBot"  # type: ignore[index]

    with TestClient(create_app(container)) as client:
        other_event = client.post(
            "/chatwoot/webhook",
            json={"event_type": "conversation_created", "event_data": {}},
            headers=SECRET_HEADERS,
        )
        not_outgoing = client.post(
            "/chatwoot/webhook", json=incoming, headers=SECRET_HEADERS
        )
        not_human = client.post("/chatwoot/webhook", json=bot, headers=SECRET_HEADERS)

    assert other_event.json() == {"message": "Event ignored"}
    assert not_outgoing.json() == {"message": "Non-outgoing message ignored"}
    assert not_human.json() == {"message": "Non-human message ignored"}
    assert {r.status_code for r in (other_event, not_outgoing, not_human)} == {200}


def test_missing_content_is_bad_request(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.post(
            "/chatwoot/webhook", json=_agent_reply(content=None), headers=SECRET_HEADERS
        )

    assert response.status_code == 400


def test_no_ready_session(container: AppContainer, api_headers: dict[str, str]) -> None:
    with TestClient(create_app(container)) as client:
        client.post("/api/sessions", json={"id": "s1"}, headers=api_headers)
        response = client.post(
            "/chatwoot/webhook", json=_agent_reply(), headers=SECRET_HEADERS
        )

    assert response.status_code == 503
    assert response.json() == {"error": "No ready WhatsApp session available"}


def test_send_failure(
    container: AppContainer, client_factory: FakeClientFactory
) -> None:
    with TestClient(create_app(container)) as client:
        bring_session_ready(client, "s1")
        client_factory.latest("s1").send_error = RuntimeError("page crashed")

        response = client.post(
            "/chatwoot/webhook", json=_agent_reply(), headers=SECRET_HEADERS
        )

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to send WhatsApp message",
        "details": "page crashed",
    }


def test_relay_health(container: AppContainer) -> None:
    with TestClient(create_app(container)) as client:
        response = client.get("/chatwoot/health")

    assert response.status_code == 200
    body = response.json()
    assert body["chatwoot_configured"] is True
    assert body["supported_events"] == ["message_created"]
    assert body["requirements"]["sender_type"] == "User"
