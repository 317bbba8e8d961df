from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import httpx

from amberdist.core.config import Settings
from amberdist.domain.distribution import (
    CHANNEL_EMAIL,
    CHANNEL_MEDIA_OUTLET,
    CHANNEL_PARTNER,
    CHANNEL_PUSH,
    CHANNEL_REGULATED_BROADCAST,
    CHANNEL_SMS,
    CHANNEL_SOCIAL_MEDIA,
    CHANNEL_WEBHOOK,
)
from amberdist.providers.messaging.base import BulkMessagingGateway, EmailTransport
from amberdist.providers.social.base import SocialPostingClient
from amberdist.services.distribution.interfaces import (
    PartnerNotifier,
    SubscriberDirectory,
    TargetDirectory,
    WebhookDeliveryLog,
)
from amberdist.services.distribution.senders.base import (
    OUTCOME_QUEUED,
    OUTCOME_SENT,
    ChannelSender,
    SendOutcome,
    SenderRegistry,
)
from amberdist.services.distribution.senders.bulk import BulkMessagingSender
from amberdist.services.distribution.senders.direct import MediaOutletSender, PartnerAlertSender
from amberdist.services.distribution.senders.regulated import RegulatedBroadcastSender
from amberdist.services.distribution.senders.social import SocialMediaSender
from amberdist.services.distribution.senders.webhook import WebhookSender


def build_sender_registry(
    *,
    settings: Settings,
    directory: TargetDirectory,
    subscribers: SubscriberDirectory,
    email: EmailTransport,
    sms: BulkMessagingGateway,
    push: BulkMessagingGateway,
    social: SocialPostingClient,
    partner_notifier: PartnerNotifier,
    webhook_log: WebhookDeliveryLog,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SenderRegistry:
    # Wire one strategy per channel from the injected collaborators.
    base_url = settings.public_alert_base_url
    return SenderRegistry(
        {
            CHANNEL_PARTNER: PartnerAlertSender(directory=directory, notifier=partner_notifier),
            CHANNEL_MEDIA_OUTLET: MediaOutletSender(transport=email, public_base_url=base_url),
            CHANNEL_EMAIL: BulkMessagingSender(
                CHANNEL_EMAIL, gateway=email, subscribers=subscribers, public_base_url=base_url
            ),
            CHANNEL_SMS: BulkMessagingSender(CHANNEL_SMS, gateway=sms, subscribers=subscribers, public_base_url=base_url),
            CHANNEL_PUSH: BulkMessagingSender(
                CHANNEL_PUSH, gateway=push, subscribers=subscribers, public_base_url=base_url
            ),
            CHANNEL_SOCIAL_MEDIA: SocialMediaSender(client=social, public_base_url=base_url),
            CHANNEL_REGULATED_BROADCAST: RegulatedBroadcastSender(),
            CHANNEL_WEBHOOK: WebhookSender(
                directory=directory,
                delivery_log=webhook_log,
                timeout_s=settings.webhook_timeout_s,
                user_agent=settings.webhook_user_agent,
                transport=webhook_transport,
                clock=clock,
            ),
        }
    )


__all__ = [
    "OUTCOME_QUEUED",
    "OUTCOME_SENT",
    "BulkMessagingSender",
    "ChannelSender",
    "MediaOutletSender",
    "PartnerAlertSender",
    "RegulatedBroadcastSender",
    "SendOutcome",
    "SenderRegistry",
    "SocialMediaSender",
    "WebhookSender",
    "build_sender_registry",
]
