"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from whatsapp_gateway.adapters.chatwoot_client import HttpxChatwootClient
from whatsapp_gateway.adapters.qr import QrRenderer, SegnoQrRenderer
from whatsapp_gateway.adapters.webhook_client import (
    HttpxWebhookClient,
    WebhookSink,
)
from whatsapp_gateway.adapters.whatsapp_client import (
    BridgeClientFactory,
    ClientFactory,
)
from whatsapp_gateway.config import Settings
from whatsapp_gateway.services.chatwoot import ChatwootSyncService
from whatsapp_gateway.services.dispatcher import InboundMessageDispatcher
from whatsapp_gateway.services.fanout import RealtimeFanout
from whatsapp_gateway.services.lifecycle import SessionLifecycleController
from whatsapp_gateway.services.messaging import MessageService
from whatsapp_gateway.services.rate_limit import InMemoryRateLimiter
from whatsapp_gateway.services.registry import SessionRegistry


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    registry: SessionRegistry
    fanout: RealtimeFanout
    controller: SessionLifecycleController
    message_service: MessageService
    chatwoot_service: ChatwootSyncService
    qr_renderer: QrRenderer
    rate_limiter: InMemoryRateLimiter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    bridge_factory = BridgeClientFactory.create(
        base_url=resolved_settings.bridge_url,
        token=resolved_settings.bridge_token,
    )
    webhook_client = HttpxWebhookClient.create(
        url=resolved_settings.webhook_url,
        secret=resolved_settings.webhook_secret,
    )
    chatwoot_client = None
    if resolved_settings.chatwoot_configured:
        chatwoot_client = HttpxChatwootClient.create(
            base_url=str(resolved_settings.chatwoot_url),
            token=str(resolved_settings.chatwoot_token),
            account_id=str(resolved_settings.chatwoot_account_id),
        )
    chatwoot_service = ChatwootSyncService(
        client=chatwoot_client,
        inbox_id=resolved_settings.chatwoot_inbox_id,
        conversation_id=resolved_settings.chatwoot_conversation_id,
        auto_provision=resolved_settings.chatwoot_auto_provision,
    )
    container = wire_container(
        settings=resolved_settings,
        client_factory=bridge_factory,
        webhook=webhook_client,
        chatwoot_service=chatwoot_service,
        qr_renderer=SegnoQrRenderer(),
    )

    async def close_resources() -> None:
        await bridge_factory.close()
        await webhook_client.close()
        if chatwoot_client is not None:
            await chatwoot_client.close()

    container.close_resources = close_resources
    return container


def wire_container(
    settings: Settings,
    client_factory: ClientFactory,
    webhook: WebhookSink,
    chatwoot_service: ChatwootSyncService,
    qr_renderer: QrRenderer,
) -> AppContainer:
    """Wire the core services around the given collaborators."""
    registry = SessionRegistry()
    fanout = RealtimeFanout(registry)
    dispatcher = InboundMessageDispatcher(
        fanout=fanout,
        webhook=webhook,
        chatwoot=chatwoot_service,
    )
    controller = SessionLifecycleController(
        registry=registry,
        client_factory=client_factory,
        fanout=fanout,
        dispatcher=dispatcher,
        qr_renderer=qr_renderer,
    )
    message_service = MessageService(
        controller=controller,
        chatwoot=chatwoot_service,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        registry=registry,
        fanout=fanout,
        controller=controller,
        message_service=message_service,
        chatwoot_service=chatwoot_service,
        qr_renderer=qr_renderer,
        rate_limiter=InMemoryRateLimiter(
            max_requests=settings.rate_limit_per_minute
        ),
        close_resources=close_resources,
    )
