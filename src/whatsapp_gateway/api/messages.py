"""Outbound messaging endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request

from whatsapp_gateway.api.auth import enforce_rate_limit, require_api_key
from whatsapp_gateway.api.models import SendMessageRequest, ValidateNumberRequest

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

router = APIRouter(
    prefix="/api/messages",
    tags=["messages"],
    dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)],
)


@router.post("/{session_id}/validate")
async def validate_number(
    session_id: str, body: ValidateNumberRequest, request: Request
) -> dict[str, object]:
    """Check whether a phone number is registered on WhatsApp."""
    container: AppContainer = request.app.state.container
    to = None if body.to is None else str(body.to)
    return await container.message_service.validate_number(session_id, to)


@router.post("/{session_id}/send")
async def send_message(
    session_id: str, body: SendMessageRequest, request: Request
) -> dict[str, object]:
    """Send a text message through a ready session."""
    container: AppContainer = request.app.state.container
    to = None if body.to is None else str(body.to)
    return await container.message_service.send_message(
        session_id, to, body.message
    )
