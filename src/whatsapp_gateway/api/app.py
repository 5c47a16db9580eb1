"""FastAPI application factory."""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from importlib.metadata import PackageNotFoundError, version

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from whatsapp_gateway.api.auth import ApiKeyRejected, RateLimitExceeded
from whatsapp_gateway.api.bridge import router as bridge_router
from whatsapp_gateway.api.chatwoot import router as chatwoot_router
from whatsapp_gateway.api.messages import router as messages_router
from whatsapp_gateway.api.realtime import router as realtime_router
from whatsapp_gateway.api.sessions import router as sessions_router
from whatsapp_gateway.app_logging import configure_logging
from whatsapp_gateway.config import parse_cors_origins
from whatsapp_gateway.containers import AppContainer
from whatsapp_gateway.services.messaging import MessagingError

try:
    _VERSION = version("whatsapp-gateway")
except PackageNotFoundError:
    _VERSION = "0.0.0"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Gateway started", extra={"environment": container.settings.environment}
        )
        yield
        state_container: AppContainer = app.state.container
        await state_container.controller.shutdown()
        await state_container.message_service.flush()
        await state_container.close_resources()

    app = FastAPI(title=container.settings.service_name, lifespan=lifespan)
    app.state.container = container

    origins = parse_cors_origins(container.settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_api_access(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path.startswith("/api"):
            logger.info(
                "API access",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "has_api_key": "x-api-key" in request.headers,
                },
            )
        return await call_next(request)

    @app.exception_handler(ApiKeyRejected)
    async def api_key_rejected(_: Request, exc: ApiKeyRejected) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content=exc.to_payload()
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(_: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=exc.to_payload(),
            headers={"Retry-After": str(exc.retry_after_seconds)},
        )

    @app.exception_handler(MessagingError)
    async def messaging_error(_: Request, exc: MessagingError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def invalid_request(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    app.include_router(sessions_router)
    app.include_router(messages_router)
    app.include_router(realtime_router)
    app.include_router(bridge_router)
    app.include_router(chatwoot_router)

    @app.get("/health")
    async def health() -> dict[str, object]:
        """Public liveness check."""
        return {
            "status": "healthy",
            "service": container.settings.service_name,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "uptime": int(time.monotonic() - started_at),
            "version": _VERSION,
        }

    return app
