from __future__ import annotations

from amberdist.core.errors import DeliveryError
from amberdist.domain.distribution import Alert, DistributionUnit, PartnerNotification
from amberdist.providers.messaging.base import EmailTransport
from amberdist.services.distribution.formatting import format_alert_message, format_press_release, public_alert_url
from amberdist.services.distribution.interfaces import PartnerNotifier, TargetDirectory
from amberdist.services.distribution.senders.base import SendOutcome


class PartnerAlertSender:
    def __init__(self, *, directory: TargetDirectory, notifier: PartnerNotifier) -> None:
        self._directory = directory
        self._notifier = notifier

    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        # Re-check the partner on every attempt; a deactivated partner exhausts retries.
        partner = await self._directory.get_partner(unit.target_id or "")
        if partner is None:
            raise DeliveryError(f"Partner {unit.target_id} no longer exists")
        if partner.status != "active":
            raise DeliveryError(f"Partner {partner.name} is not active")
        notification_id = await self._notifier.notify(
            PartnerNotification(
                partner_id=partner.id,
                case_id=alert.case_id,
                alert_id=alert.id,
                title=f"AMBER Alert: {alert.child_name}",
                message=format_alert_message(alert),
            )
        )
        return SendOutcome(message=f"Partner alert created for {partner.name}", external_id=notification_id)


class MediaOutletSender:
    def __init__(self, *, transport: EmailTransport, public_base_url: str) -> None:
        self._transport = transport
        self._public_base_url = public_base_url

    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        if not unit.target_contact:
            raise DeliveryError(f"Media outlet {unit.target_name or unit.target_id} has no contact address")
        release = format_press_release(alert, link=public_alert_url(alert, self._public_base_url))
        message_id = await self._transport.send_one(unit.target_contact, release)
        return SendOutcome(message=f"Press release sent to {unit.target_contact}", external_id=message_id or None)
