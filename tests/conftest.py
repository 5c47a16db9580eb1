"""Shared test fixtures."""

import pytest

from tests.fakes import (
    BRIDGE_TOKEN,
    RAW_API_KEY,
    FakeChatwootClient,
    FakeClientFactory,
    RecordingWebhook,
)
from whatsapp_gateway.adapters.qr import SegnoQrRenderer
from whatsapp_gateway.config import Settings, hash_api_key
from whatsapp_gateway.containers import AppContainer, wire_container
from whatsapp_gateway.services.chatwoot import ChatwootSyncService


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key_hash=hash_api_key(RAW_API_KEY),
        bridge_token=BRIDGE_TOKEN,
        chatwoot_webhook_secret="chatwoot-secret",
        log_level="WARNING",
    )


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def webhook() -> RecordingWebhook:
    return RecordingWebhook()


@pytest.fixture
def chatwoot_client() -> FakeChatwootClient:
    return FakeChatwootClient()


@pytest.fixture
def container(
    settings: Settings,
    client_factory: FakeClientFactory,
    webhook: RecordingWebhook,
    chatwoot_client: FakeChatwootClient,
) -> AppContainer:
    return wire_container(
        settings=settings,
        client_factory=client_factory,
        webhook=webhook,
        chatwoot_service=ChatwootSyncService(client=chatwoot_client, inbox_id=7),
        qr_renderer=SegnoQrRenderer(),
    )


@pytest.fixture
def api_headers() -> dict[str, str]:
    return {"X-API-Key": RAW_API_KEY}


@pytest.fixture
def bridge_headers() -> dict[str, str]:
    return {"X-Bridge-Token": BRIDGE_TOKEN}
