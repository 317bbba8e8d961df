from __future__ import annotations

from amberdist.core.config import get_settings
from amberdist.core.errors import ProviderConfigError
from amberdist.providers.messaging.fake import FakeMessagingGateway
from amberdist.providers.messaging.http_relay import HttpRelayGateway


def get_messaging_gateway(channel: str):
    settings = get_settings()
    provider = (settings.messaging_provider or "fake").lower()

    if provider == "fake":
        return FakeMessagingGateway(channel)
    if provider == "http":
        return HttpRelayGateway(channel)

    raise ProviderConfigError(f"Unsupported messaging provider: {provider}")
