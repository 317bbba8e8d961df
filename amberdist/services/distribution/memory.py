from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Any
from uuid import uuid4

from amberdist.core.errors import InvalidTransitionError
from amberdist.domain.distribution import (
    CANCELLABLE_STATUSES,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_SENDING,
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
    is_transition_allowed,
)


class InMemoryDistributionStore:
    # Process-local store with the same conditional-update semantics as the SQL store.
    # Returned units are copies so callers cannot mutate stored state behind the lock.
    def __init__(self) -> None:
        self._units: dict[str, DistributionUnit] = {}
        self._events: list[DistributionEvent] = []
        self._event_ids = count(1)
        self._lock = asyncio.Lock()

    async def create_units(
        self, units: Sequence[NewDistributionUnit], *, max_retries: int, now: datetime
    ) -> list[DistributionUnit]:
        created: list[DistributionUnit] = []
        async with self._lock:
            for new_unit in units:
                unit = DistributionUnit(
                    id=str(uuid4()),
                    alert_id=new_unit.alert_id,
                    channel=new_unit.channel,
                    status=STATUS_PENDING,
                    created_at=now,
                    updated_at=now,
                    channel_config=dict(new_unit.channel_config),
                    target_id=new_unit.target_id,
                    target_name=new_unit.target_name,
                    target_contact=new_unit.target_contact,
                    retry_count=0,
                    max_retries=max_retries,
                )
                self._units[unit.id] = unit
                created.append(replace(unit))
        return created

    async def get_unit(self, unit_id: str) -> DistributionUnit | None:
        unit = self._units.get(unit_id)
        return replace(unit) if unit is not None else None

    async def list_units(self, alert_id: str) -> list[DistributionUnit]:
        rows = [unit for unit in self._units.values() if unit.alert_id == alert_id]
        rows.sort(key=lambda unit: unit.created_at)
        return [replace(unit) for unit in rows]

    async def select_due(self, *, now: datetime, limit: int) -> list[DistributionUnit]:
        # dict preserves insertion order, so a stable sort keeps FIFO among equal timestamps.
        due = [unit for unit in self._units.values() if unit.is_due(now)]
        due.sort(key=lambda unit: unit.created_at)
        return [replace(unit) for unit in due[: max(0, limit)]]

    async def claim(self, unit_id: str, *, now: datetime) -> DistributionUnit | None:
        async with self._lock:
            unit = self._units.get(unit_id)
            if unit is None or not unit.is_due(now):
                return None
            unit.status = STATUS_SENDING
            unit.sent_at = now
            unit.updated_at = now
            return replace(unit)

    async def transition(
        self,
        unit_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        now: datetime,
        changes: dict[str, Any] | None = None,
    ) -> DistributionUnit | None:
        expected = frozenset(from_statuses)
        for source in expected:
            if not is_transition_allowed(source, to_status):
                raise InvalidTransitionError(f"{source} -> {to_status} is not allowed")
        async with self._lock:
            unit = self._units.get(unit_id)
            if unit is None or unit.status not in expected:
                return None
            for key, value in (changes or {}).items():
                setattr(unit, key, value)
            unit.status = to_status
            unit.updated_at = now
            return replace(unit)

    async def cancel_units(self, alert_id: str, *, reason: str, now: datetime) -> int:
        cancelled = 0
        async with self._lock:
            for unit in self._units.values():
                if unit.alert_id != alert_id or unit.status not in CANCELLABLE_STATUSES:
                    continue
                unit.status = STATUS_CANCELLED
                unit.status_message = reason
                unit.next_retry_at = None
                unit.updated_at = now
                cancelled += 1
        return cancelled

    async def count_by_status_and_channel(self, alert_id: str) -> list[tuple[str, str, int]]:
        counts: dict[tuple[str, str], int] = {}
        for unit in self._units.values():
            if unit.alert_id != alert_id:
                continue
            key = (unit.status, unit.channel)
            counts[key] = counts.get(key, 0) + 1
        return [(status, channel, total) for (status, channel), total in counts.items()]

    async def append_event(self, event: DistributionEvent) -> None:
        async with self._lock:
            self._events.append(replace(event, id=next(self._event_ids)))

    async def list_events(self, alert_id: str) -> list[DistributionEvent]:
        return [event for event in self._events if event.alert_id == alert_id]


class InMemoryTargetDirectory:
    # Returns every registered record; eligibility rules are applied by the resolver.
    def __init__(
        self,
        *,
        alerts: Iterable[Alert] = (),
        partners: Iterable[PartnerOrganization] = (),
        media_contacts: Iterable[MediaContact] = (),
        social_accounts: Iterable[SocialMediaAccount] = (),
    ) -> None:
        self.alerts = {alert.id: alert for alert in alerts}
        self.partners = {partner.id: partner for partner in partners}
        self.media_contacts = list(media_contacts)
        self.social_accounts = list(social_accounts)

    async def get_alert(self, alert_id: str) -> Alert | None:
        return self.alerts.get(alert_id)

    async def get_partner(self, partner_id: str) -> PartnerOrganization | None:
        return self.partners.get(partner_id)

    async def list_partners(
        self,
        *,
        partner_ids: Sequence[str] = (),
        provinces: Sequence[str] = (),
        api_access_only: bool = False,
    ) -> list[PartnerOrganization]:
        return list(self.partners.values())

    async def list_media_contacts(
        self, *, media_ids: Sequence[str] = (), provinces: Sequence[str] = ()
    ) -> list[MediaContact]:
        return list(self.media_contacts)

    async def list_social_accounts(self) -> list[SocialMediaAccount]:
        return list(self.social_accounts)


class InMemorySubscriberDirectory:
    def __init__(self, subscribers: Iterable[Subscriber] = ()) -> None:
        self.subscribers = list(subscribers)
        self.lookups = 0

    async def list_subscribers(self, *, channel: str, provinces: Sequence[str] = ()) -> list[Subscriber]:
        self.lookups += 1
        wanted = {province.lower() for province in provinces}
        return [
            subscriber
            for subscriber in self.subscribers
            if subscriber.channel == channel
            and subscriber.is_active
            and subscriber.amber_alerts_enabled
            and (not wanted or (subscriber.province or "").lower() in wanted)
        ]


class InMemoryPartnerNotifier:
    def __init__(self) -> None:
        self.notifications: list[PartnerNotification] = []

    async def notify(self, notification: PartnerNotification) -> str:
        self.notifications.append(notification)
        return f"partner_alert_{len(self.notifications)}"


class InMemoryWebhookDeliveryLog:
    def __init__(self) -> None:
        self.records: list[WebhookDeliveryRecord] = []

    async def record(self, record: WebhookDeliveryRecord) -> None:
        self.records.append(record)
