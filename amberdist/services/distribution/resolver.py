from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
import logging
import re

from amberdist.core.errors import UnknownChannelError
from amberdist.domain.distribution import (
    ALL_CHANNELS,
    BROADCAST_TARGET_NAMES,
    BULK_CHANNELS,
    CHANNEL_ALIASES,
    CHANNEL_MEDIA_OUTLET,
    CHANNEL_PARTNER,
    CHANNEL_REGULATED_BROADCAST,
    CHANNEL_SOCIAL_MEDIA,
    CHANNEL_WEBHOOK,
    REGULATED_BROADCAST_TYPES,
    Alert,
    MediaContact,
    NewDistributionUnit,
    PartnerOrganization,
    SocialMediaAccount,
)
from amberdist.services.distribution.interfaces import TargetDirectory


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelPlan:
    # Normalized request: which channels to resolve and which regulated sub-types were asked for.
    channels: tuple[str, ...]
    broadcast_types: tuple[str, ...]


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _normalize_token(token: str) -> str:
    # camelCase and kebab-case tokens map onto the snake_case channel names.
    return _CAMEL_BOUNDARY.sub("_", token.strip()).lower().replace("-", "_")


def plan_channels(requested: Iterable[str]) -> ChannelPlan:
    # Expand aliases and regulated sub-types, drop duplicates, keep request order.
    channels: list[str] = []
    broadcast_types: list[str] = []
    for raw in requested:
        token = _normalize_token(str(raw))
        if not token:
            continue
        if token in REGULATED_BROADCAST_TYPES:
            if token not in broadcast_types:
                broadcast_types.append(token)
            token = CHANNEL_REGULATED_BROADCAST
        elif token == CHANNEL_REGULATED_BROADCAST:
            for sub_type in REGULATED_BROADCAST_TYPES:
                if sub_type not in broadcast_types:
                    broadcast_types.append(sub_type)
        token = CHANNEL_ALIASES.get(token, token)
        if token not in ALL_CHANNELS:
            raise UnknownChannelError(f"Unknown distribution channel: {raw}")
        if token not in channels:
            channels.append(token)
    return ChannelPlan(channels=tuple(channels), broadcast_types=tuple(broadcast_types))


def _lowered(values: Iterable[str]) -> set[str]:
    return {value.strip().lower() for value in values if value and value.strip()}


def partner_is_eligible(
    partner: PartnerOrganization,
    *,
    partner_ids: Sequence[str],
    provinces: Sequence[str],
) -> bool:
    if partner.status != "active":
        return False
    # Explicit ids win over province targeting.
    if partner_ids:
        return partner.id in set(partner_ids)
    if provinces:
        return (partner.province or "").strip().lower() in _lowered(provinces)
    return True


def media_is_eligible(contact: MediaContact, *, media_ids: Sequence[str], provinces: Sequence[str]) -> bool:
    if not contact.is_active or not contact.accepts_amber_alerts:
        return False
    if media_ids and contact.id not in set(media_ids):
        return False
    if provinces:
        return bool(_lowered(contact.coverage_area) & _lowered(provinces))
    return True


def social_is_eligible(account: SocialMediaAccount) -> bool:
    return account.is_active and account.is_connected and account.auto_post_amber


def webhook_is_eligible(partner: PartnerOrganization) -> bool:
    return partner.status == "active" and partner.can_access_api


class TargetResolver:
    """Expands requested channels into concrete pending distribution units.

    Resolution only reads from the directory. A channel with no eligible targets
    contributes zero units; that is not an error.
    """

    def __init__(self, directory: TargetDirectory) -> None:
        self._directory = directory

    async def resolve(
        self,
        alert: Alert,
        channels: Iterable[str],
        *,
        target_provinces: Sequence[str] = (),
        partner_ids: Sequence[str] = (),
        media_ids: Sequence[str] = (),
    ) -> list[NewDistributionUnit]:
        plan = plan_channels(channels)
        provinces = list(dict.fromkeys(target_provinces))
        units: list[NewDistributionUnit] = []
        for channel in plan.channels:
            if channel == CHANNEL_PARTNER:
                resolved = await self._resolve_partners(alert, partner_ids=partner_ids, provinces=provinces)
            elif channel == CHANNEL_MEDIA_OUTLET:
                resolved = await self._resolve_media(alert, media_ids=media_ids, provinces=provinces)
            elif channel == CHANNEL_SOCIAL_MEDIA:
                resolved = await self._resolve_social(alert)
            elif channel == CHANNEL_WEBHOOK:
                resolved = await self._resolve_webhooks(alert)
            elif channel in BULK_CHANNELS:
                resolved = [
                    NewDistributionUnit(
                        alert_id=alert.id,
                        channel=channel,
                        target_name=BROADCAST_TARGET_NAMES[channel],
                        channel_config={"provinces": provinces},
                    )
                ]
            elif channel == CHANNEL_REGULATED_BROADCAST:
                resolved = self._resolve_regulated(alert, broadcast_types=plan.broadcast_types, provinces=provinces)
            else:
                raise UnknownChannelError(f"Unknown distribution channel: {channel}")
            if not resolved:
                logger.info("distribution_channel_no_targets alert_id=%s channel=%s", alert.id, channel)
            units.extend(resolved)
        return units

    async def _resolve_partners(
        self, alert: Alert, *, partner_ids: Sequence[str], provinces: Sequence[str]
    ) -> list[NewDistributionUnit]:
        partners = await self._directory.list_partners(partner_ids=partner_ids, provinces=provinces)
        return [
            NewDistributionUnit(
                alert_id=alert.id,
                channel=CHANNEL_PARTNER,
                target_id=partner.id,
                target_name=partner.name,
                target_contact=partner.contact_email,
            )
            for partner in partners
            if partner_is_eligible(partner, partner_ids=partner_ids, provinces=provinces)
        ]

    async def _resolve_media(
        self, alert: Alert, *, media_ids: Sequence[str], provinces: Sequence[str]
    ) -> list[NewDistributionUnit]:
        contacts = await self._directory.list_media_contacts(media_ids=media_ids, provinces=provinces)
        return [
            NewDistributionUnit(
                alert_id=alert.id,
                channel=CHANNEL_MEDIA_OUTLET,
                target_id=contact.id,
                target_name=contact.organization_name,
                target_contact=contact.contact_email,
            )
            for contact in contacts
            if media_is_eligible(contact, media_ids=media_ids, provinces=provinces)
        ]

    async def _resolve_social(self, alert: Alert) -> list[NewDistributionUnit]:
        accounts = await self._directory.list_social_accounts()
        return [
            NewDistributionUnit(
                alert_id=alert.id,
                channel=CHANNEL_SOCIAL_MEDIA,
                target_id=account.id,
                target_name=f"{account.platform}: {account.account_name}",
                channel_config={"platform": account.platform},
            )
            for account in accounts
            if social_is_eligible(account)
        ]

    async def _resolve_webhooks(self, alert: Alert) -> list[NewDistributionUnit]:
        partners = await self._directory.list_partners(api_access_only=True)
        return [
            NewDistributionUnit(
                alert_id=alert.id,
                channel=CHANNEL_WEBHOOK,
                target_id=partner.id,
                target_name=partner.name,
                channel_config={"type": "partner_webhook"},
            )
            for partner in partners
            if webhook_is_eligible(partner)
        ]

    def _resolve_regulated(
        self, alert: Alert, *, broadcast_types: Sequence[str], provinces: Sequence[str]
    ) -> list[NewDistributionUnit]:
        return [
            NewDistributionUnit(
                alert_id=alert.id,
                channel=CHANNEL_REGULATED_BROADCAST,
                target_name=REGULATED_BROADCAST_TYPES[broadcast_type],
                channel_config={
                    "broadcast_type": broadcast_type,
                    "provinces": list(provinces),
                    "requires_approval": True,
                },
            )
            for broadcast_type in broadcast_types
        ]
