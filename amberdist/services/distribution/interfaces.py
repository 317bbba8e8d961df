from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol

from amberdist.domain.distribution import (
    Alert,
    DistributionEvent,
    DistributionUnit,
    MediaContact,
    NewDistributionUnit,
    PartnerNotification,
    PartnerOrganization,
    SocialMediaAccount,
    Subscriber,
    WebhookDeliveryRecord,
)


class DistributionStore(Protocol):
    # Durable unit table plus append-only event log. Every status mutation is conditional
    # on the unit still being in one of the expected source statuses.
    async def create_units(
        self, units: Sequence[NewDistributionUnit], *, max_retries: int, now: datetime
    ) -> list[DistributionUnit]: ...

    async def get_unit(self, unit_id: str) -> DistributionUnit | None: ...

    async def list_units(self, alert_id: str) -> list[DistributionUnit]: ...

    async def select_due(self, *, now: datetime, limit: int) -> list[DistributionUnit]: ...

    async def claim(self, unit_id: str, *, now: datetime) -> DistributionUnit | None: ...

    async def transition(
        self,
        unit_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        now: datetime,
        changes: dict[str, Any] | None = None,
    ) -> DistributionUnit | None: ...

    async def cancel_units(self, alert_id: str, *, reason: str, now: datetime) -> int: ...

    async def count_by_status_and_channel(self, alert_id: str) -> list[tuple[str, str, int]]: ...

    async def append_event(self, event: DistributionEvent) -> None: ...

    async def list_events(self, alert_id: str) -> list[DistributionEvent]: ...


class TargetDirectory(Protocol):
    # Read-only view of the alert and the recipient registries the resolver fans out over.
    async def get_alert(self, alert_id: str) -> Alert | None: ...

    async def get_partner(self, partner_id: str) -> PartnerOrganization | None: ...

    async def list_partners(
        self,
        *,
        partner_ids: Sequence[str] = (),
        provinces: Sequence[str] = (),
        api_access_only: bool = False,
    ) -> list[PartnerOrganization]: ...

    async def list_media_contacts(
        self, *, media_ids: Sequence[str] = (), provinces: Sequence[str] = ()
    ) -> list[MediaContact]: ...

    async def list_social_accounts(self) -> list[SocialMediaAccount]: ...


class SubscriberDirectory(Protocol):
    async def list_subscribers(self, *, channel: str, provinces: Sequence[str] = ()) -> list[Subscriber]: ...


class PartnerNotifier(Protocol):
    async def notify(self, notification: PartnerNotification) -> str: ...


class WebhookDeliveryLog(Protocol):
    async def record(self, record: WebhookDeliveryRecord) -> None: ...
