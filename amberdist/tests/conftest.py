from __future__ import annotations

import pytest

from amberdist.core.config import get_settings
from amberdist.domain.distribution import PartnerOrganization
from amberdist.tests.utils.distribution import FakeClock, make_alert


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    # Settings are lru_cached; tests that patch env must not leak into each other.
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alert():
    return make_alert()


@pytest.fixture
def api_partners() -> list[PartnerOrganization]:
    # Two API-enabled partners and one without API access.
    return [
        PartnerOrganization(
            id="p-transit",
            name="Transit Authority",
            province="ON",
            contact_email="ops@transit.example.org",
            can_access_api=True,
            webhook_url="https://transit.example.org/hooks/amber",
            webhook_secret="transit-secret",
        ),
        PartnerOrganization(
            id="p-retail",
            name="Retail Network",
            province="ON",
            contact_email="alerts@retail.example.org",
            can_access_api=True,
            webhook_url="https://retail.example.org/amber",
        ),
        PartnerOrganization(
            id="p-library",
            name="Public Library",
            province="ON",
            contact_email="desk@library.example.org",
            can_access_api=False,
        ),
    ]
