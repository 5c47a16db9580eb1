"""Application configuration."""

import hashlib
import os
import re
import uuid

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
_SHA512_HEX = re.compile(r"^[a-f0-9]{128}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    api_key_hash: str
    environment: str = _ENVIRONMENT
    service_name: str = "WhatsApp Multi-Session Gateway"
    log_level: str = "INFO"
    bridge_url: str = "http://localhost:3100"
    bridge_token: str | None = None
    webhook_url: str | None = None
    webhook_secret: str | None = None
    chatwoot_url: str | None = None
    chatwoot_token: str | None = None
    chatwoot_account_id: str | None = None
    chatwoot_inbox_id: int | None = None
    chatwoot_conversation_id: int | None = None
    chatwoot_auto_provision: bool = True
    chatwoot_webhook_secret: str | None = None
    cors_origins: str = "*"
    rate_limit_per_minute: int = 100

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @field_validator("api_key_hash")
    @classmethod
    def _validate_api_key_hash(cls, value: str) -> str:
        cleaned = value.strip().lower().removeprefix("sha512:")
        if not _SHA512_HEX.match(cleaned):
            raise ValueError(
                "API_KEY_HASH must be a SHA-512 hex digest (128 hex characters)"
            )
        return cleaned

    @property
    def chatwoot_configured(self) -> bool:
        return bool(
            self.chatwoot_url and self.chatwoot_token and self.chatwoot_account_id
        )


def parse_cors_origins(raw: str | None) -> list[str]:
    """Parse allowed CORS origins from env."""
    if raw is None:
        return ["*"]
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


def hash_api_key(raw_key: str) -> str:
    """Return the SHA-512 hex digest stored server-side for a raw key."""
    return hashlib.sha512(raw_key.encode()).hexdigest()


def generate_api_key() -> tuple[str, str]:
    """Generate a raw client key and the digest to configure on the server."""
    raw_key = uuid.uuid4().hex
    return raw_key, hash_api_key(raw_key)
