"""Session management endpoints."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from whatsapp_gateway.api.auth import enforce_rate_limit, require_api_key
from whatsapp_gateway.api.models import CreateSessionRequest

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/sessions",
    tags=["sessions"],
    dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)],
)


def _not_found() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Session not found"},
    )


@router.post("", response_model=None)
async def create_session(
    body: CreateSessionRequest, request: Request
) -> dict[str, object] | JSONResponse:
    """Create a session, or return the existing one with the same id."""
    container: AppContainer = request.app.state.container
    session_id = (body.id or "").strip()
    if not session_id:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "id required"},
        )
    await container.controller.create(session_id)
    return {"success": True, "id": session_id}


@router.get("")
async def list_sessions(request: Request) -> list[dict[str, object]]:
    """Return summaries of all sessions."""
    container: AppContainer = request.app.state.container
    return container.fanout.sessions_snapshot()


@router.get("/health")
async def sessions_health(request: Request) -> JSONResponse:
    """Aggregate health across all sessions; 503 when below threshold."""
    container: AppContainer = request.app.state.container
    aggregate = container.controller.health_all()
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK
            if aggregate.overall_healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=aggregate.to_payload(),
    )


@router.get("/{session_id}/qr", response_model=None)
async def session_qr(
    session_id: str, request: Request
) -> dict[str, str | None] | JSONResponse:
    """Return the pending QR challenge as a PNG data URL."""
    container: AppContainer = request.app.state.container
    record = container.controller.get(session_id)
    if record is None:
        return _not_found()
    if record.qr is None:
        return {"qr": None}
    return {"qr": container.qr_renderer.to_data_url(record.qr)}


@router.get("/{session_id}/health")
async def session_health(session_id: str, request: Request) -> JSONResponse:
    """Health of one session; 503 when unhealthy."""
    container: AppContainer = request.app.state.container
    snapshot = container.controller.health(session_id)
    if snapshot is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": "not_found", "healthy": False},
        )
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK
            if snapshot.healthy
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=snapshot.to_payload(),
    )


@router.post("/{session_id}/restart", response_model=None)
async def restart_session(
    session_id: str, request: Request
) -> dict[str, object] | JSONResponse:
    """Replace the client of a session with a fresh one."""
    container: AppContainer = request.app.state.container
    try:
        record = await container.controller.restart(session_id)
    except Exception as exc:
        logger.exception("Failed to restart session", extra={"session_id": session_id})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc), "timestamp": _timestamp()},
        )
    if record is None:
        return _not_found()
    return {
        "success": True,
        "message": "Session restarted successfully",
        "sessionId": session_id,
        "timestamp": _timestamp(),
    }


@router.delete("/{session_id}", response_model=None)
async def delete_session(
    session_id: str, request: Request
) -> dict[str, object] | JSONResponse:
    """Tear down and forget a session."""
    container: AppContainer = request.app.state.container
    if not await container.controller.remove(session_id):
        return _not_found()
    return {"success": True, "id": session_id}


def _timestamp() -> str:
    return datetime.now(tz=UTC).isoformat()
