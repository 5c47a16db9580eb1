"""Chatwoot agent-reply relay.

Chatwoot cannot attach custom API-key headers to its webhooks, so these
routes live outside ``/api`` and are gated by the shared webhook secret.
"""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from whatsapp_gateway.api.chatwoot_models import ChatwootWebhookEvent
from whatsapp_gateway.domain.sessions import SessionStatus
from whatsapp_gateway.services.chatwoot import clean_phone_number

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chatwoot", tags=["chatwoot"])

WEBHOOK_PATH = "/chatwoot/webhook"


def _secret_matches(provided: str | None, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def _ignored(message: str) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content={"message": message})


@router.post("/webhook")
async def chatwoot_webhook(
    event: ChatwootWebhookEvent, request: Request
) -> JSONResponse:
    """Relay a human agent reply from Chatwoot to the WhatsApp contact."""
    container: AppContainer = request.app.state.container
    secret = container.settings.chatwoot_webhook_secret
    if secret:
        provided = request.headers.get("x-webhook-secret") or request.headers.get(
            "authorization"
        )
        if not _secret_matches(provided, secret):
            logger.warning("Invalid Chatwoot webhook secret")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Invalid webhook secret"},
            )

    if event.event_type != "message_created":
        return _ignored("Event ignored")
    data = event.event_data
    if data.message_type != "outgoing":
        return _ignored("Non-outgoing message ignored")
    if data.sender_type != "User":
        return _ignored("Non-human message ignored")

    phone = clean_phone_number(event.source_id or "")
    if not data.content or not phone:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing message content or contact phone"},
        )
    whatsapp_id = f"{phone}@c.us"

    controller = container.controller
    session = next(
        (
            record
            for record in controller.list_sessions()
            if record.ready and record.status is SessionStatus.READY
        ),
        None,
    )
    client = controller.client_for(session.id) if session else None
    if session is None or client is None:
        logger.error("No ready WhatsApp session for Chatwoot reply")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "No ready WhatsApp session available"},
        )

    try:
        result = await client.send_message(whatsapp_id, data.content)
    except Exception as exc:
        logger.exception(
            "Failed to relay Chatwoot reply", extra={"session_id": session.id}
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to send WhatsApp message", "details": str(exc)},
        )
    logger.info("Relayed Chatwoot reply", extra={"session_id": session.id})
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "success": True,
            "message": "Agent reply sent to WhatsApp",
            "data": {
                "sessionId": session.id,
                "whatsappId": whatsapp_id,
                "conversationId": event.conversation_id,
                "messageId": _message_id(result),
            },
        },
    )


@router.get("/health")
async def chatwoot_health(request: Request) -> dict[str, object]:
    """Report relay configuration and the events it accepts."""
    container: AppContainer = request.app.state.container
    return {
        "status": "healthy",
        "chatwoot_configured": container.chatwoot_service.enabled,
        "webhook_endpoint": WEBHOOK_PATH,
        "supported_events": ["message_created"],
        "requirements": {
            "event_type": "message_created",
            "message_type": "outgoing",
            "sender_type": "User",
        },
    }


def _message_id(result: dict[str, object]) -> object:
    message_id = result.get("id")
    if isinstance(message_id, dict):
        return message_id.get("_serialized")
    return message_id
