from __future__ import annotations

import logging

from amberdist.core.errors import DeliveryError
from amberdist.domain.distribution import (
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    CHANNEL_SMS,
    Alert,
    DistributionUnit,
    FormattedMessage,
)
from amberdist.providers.messaging.base import BulkMessagingGateway
from amberdist.services.distribution.formatting import (
    format_email_message,
    format_push_message,
    format_sms_message,
    public_alert_url,
)
from amberdist.services.distribution.interfaces import SubscriberDirectory
from amberdist.services.distribution.senders.base import SendOutcome


logger = logging.getLogger(__name__)


class BulkMessagingSender:
    # Broadcast unit for email, sms, or push; the subscriber fan-out happens here, not as units.
    def __init__(
        self,
        channel: str,
        *,
        gateway: BulkMessagingGateway,
        subscribers: SubscriberDirectory,
        public_base_url: str,
    ) -> None:
        if channel not in {CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_PUSH}:
            raise ValueError(f"BulkMessagingSender does not handle channel {channel}")
        self.channel = channel
        self._gateway = gateway
        self._subscribers = subscribers
        self._public_base_url = public_base_url

    def format_message(self, alert: Alert) -> FormattedMessage:
        link = public_alert_url(alert, self._public_base_url)
        if self.channel == CHANNEL_SMS:
            return format_sms_message(alert, link=link)
        if self.channel == CHANNEL_PUSH:
            return format_push_message(alert)
        return format_email_message(alert, link=link)

    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        provinces = [str(item) for item in (unit.channel_config.get("provinces") or [])]
        subscribers = await self._subscribers.list_subscribers(channel=self.channel, provinces=provinces)
        recipients = [subscriber.address for subscriber in subscribers]
        if not recipients:
            logger.info("bulk_send_no_recipients unit_id=%s channel=%s", unit.id, self.channel)
            return SendOutcome(message="No matching subscribers", details={"sent": 0, "failed": 0})

        # Gateway errors (transport unavailable) propagate and fail the unit for retry.
        result = await self._gateway.send_bulk(recipients, self.format_message(alert))
        details = {"sent": result.sent, "failed": result.failed, "errors": list(result.errors)}
        if result.sent == 0 and result.failed > 0:
            raise DeliveryError(
                f"{self.channel} bulk send failed for all {result.failed} recipients: "
                + "; ".join(result.errors[:3])
            )
        if result.failed > 0:
            logger.warning(
                "bulk_send_partial_failure unit_id=%s channel=%s sent=%s failed=%s",
                unit.id,
                self.channel,
                result.sent,
                result.failed,
            )
        return SendOutcome(message=f"Sent to {result.sent} recipients, {result.failed} failed", details=details)
