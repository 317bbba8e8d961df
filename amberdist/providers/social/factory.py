from __future__ import annotations

from amberdist.core.config import get_settings
from amberdist.core.errors import ProviderConfigError
from amberdist.providers.social.fake import FakeSocialPostingClient


def get_social_client():
    settings = get_settings()
    provider = (settings.social_provider or "fake").lower()

    if provider == "fake":
        return FakeSocialPostingClient()

    raise ProviderConfigError(f"Unsupported social provider: {provider}")
