"""API key authentication and rate limiting dependencies."""

from __future__ import annotations

import hmac
import logging
import re
from typing import TYPE_CHECKING

from fastapi import Header, Request

from whatsapp_gateway.config import hash_api_key

if TYPE_CHECKING:
    from whatsapp_gateway.containers import AppContainer

logger = logging.getLogger(__name__)

_API_KEY_FORMAT = re.compile(r"^[a-f0-9]{32}$")

MISSING_API_KEY = "MISSING_API_KEY"
INVALID_API_KEY_FORMAT = "INVALID_API_KEY_FORMAT"
INVALID_API_KEY = "INVALID_API_KEY"

_REJECTIONS = {
    MISSING_API_KEY: (
        "Missing X-API-Key header",
        "API key is required for authentication",
    ),
    INVALID_API_KEY_FORMAT: (
        "Invalid X-API-Key format",
        "API key must be a valid UUID4 without dashes (32 hex characters)",
    ),
    INVALID_API_KEY: (
        "Invalid X-API-Key",
        "The provided API key is invalid",
    ),
}


class ApiKeyRejected(Exception):
    """The request did not carry a valid API key."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code

    def to_payload(self) -> dict[str, object]:
        error, message = _REJECTIONS[self.code]
        return {"success": False, "error": error, "message": message, "code": self.code}


class RateLimitExceeded(Exception):
    """The client sent too many requests in the current window."""

    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__(retry_after_seconds)
        self.retry_after_seconds = retry_after_seconds

    def to_payload(self) -> dict[str, object]:
        return {
            "success": False,
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please try again later.",
            "code": "RATE_LIMIT_EXCEEDED",
            "retryAfter": self.retry_after_seconds,
        }


def verify_api_key(provided: str | None, expected_hash: str) -> str | None:
    """Return a rejection code, or None when the key matches the stored hash."""
    if not provided:
        return MISSING_API_KEY
    if not _API_KEY_FORMAT.match(provided):
        return INVALID_API_KEY_FORMAT
    if not hmac.compare_digest(hash_api_key(provided), expected_hash):
        return INVALID_API_KEY
    return None


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
) -> None:
    """Ensure requests include a valid API key."""
    container: AppContainer = request.app.state.container
    code = verify_api_key(x_api_key, container.settings.api_key_hash)
    if code is not None:
        logger.warning(
            "Unauthorized API access attempt",
            extra={"client": client_host(request), "code": code},
        )
        raise ApiKeyRejected(code)


async def enforce_rate_limit(request: Request) -> None:
    """Reject clients that exceed the per-minute request budget."""
    container: AppContainer = request.app.state.container
    host = client_host(request)
    decision = container.rate_limiter.check(host)
    if not decision.allowed:
        logger.warning("Rate limit exceeded", extra={"client": host})
        raise RateLimitExceeded(decision.retry_after_seconds)
