"""Realtime WebSocket endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from whatsapp_gateway.api.auth import verify_api_key

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def realtime(websocket: WebSocket, token: str | None = None) -> None:
    """Push session state changes and inbound messages to observers."""
    container: AppContainer = websocket.app.state.container
    provided = token or websocket.headers.get("x-api-key")
    code = verify_api_key(provided, container.settings.api_key_hash)
    if code is not None:
        host = websocket.client.host if websocket.client else "unknown"
        logger.warning(
            "Rejected realtime connection", extra={"client": host, "code": code}
        )
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    fanout = container.fanout
    await fanout.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Realtime observer disconnected")
    finally:
        fanout.disconnect(websocket)
