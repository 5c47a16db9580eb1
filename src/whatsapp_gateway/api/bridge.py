"""Ingress for lifecycle events pushed by the WhatsApp bridge sidecar."""

from __future__ import annotations

import hmac
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Header, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from whatsapp_gateway.api.bridge_models import bridge_event_adapter
from whatsapp_gateway.services.lifecycle import Delivery

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal/bridge", tags=["bridge"])


def _token_matches(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


@router.post("/events", response_model=None)
async def bridge_event(
    request: Request,
    payload: dict[str, Any] = Body(...),
    x_bridge_token: str | None = Header(default=None),
) -> dict[str, bool] | JSONResponse:
    """Queue a bridge event on its session and wait until it is applied."""
    container: AppContainer = request.app.state.container
    if not _token_matches(x_bridge_token, container.settings.bridge_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        event = bridge_event_adapter.validate_python(payload)
    except ValidationError as exc:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "invalid bridge event",
                "details": jsonable_encoder(exc.errors(include_context=False)),
            },
        )
    controller = container.controller
    delivery = controller.deliver(event.session_id, event.client_id, event.to_domain())
    if delivery is Delivery.UNKNOWN_SESSION:
        logger.info(
            "Bridge event for unknown session",
            extra={"session_id": event.session_id, "type": event.type},
        )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )
    if delivery is Delivery.STALE_CLIENT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Client is no longer attached"
        )
    await controller.drain(event.session_id)
    return {"success": True}
