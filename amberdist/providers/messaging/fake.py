from __future__ import annotations

import logging
from typing import Sequence

from amberdist.core.errors import DeliveryError, TransportUnavailableError
from amberdist.providers.messaging.base import BulkSendResult
from amberdist.domain.distribution import FormattedMessage


logger = logging.getLogger(__name__)


class FakeMessagingGateway:
    # Records every message in memory; recipients listed in failing_recipients are reported
    # as per-recipient failures so partial-failure paths can be exercised.
    def __init__(
        self,
        channel: str,
        *,
        failing_recipients: Sequence[str] = (),
        available: bool = True,
    ) -> None:
        self.channel = channel
        self.failing_recipients = set(failing_recipients)
        self.available = available
        self.sent: list[tuple[str, FormattedMessage]] = []

    async def send_bulk(self, recipients: Sequence[str], message: FormattedMessage) -> BulkSendResult:
        if not self.available:
            raise TransportUnavailableError(f"{self.channel} transport unavailable")
        sent = 0
        errors: list[str] = []
        for recipient in recipients:
            if recipient in self.failing_recipients:
                errors.append(f"{recipient}: rejected")
                continue
            self.sent.append((recipient, message))
            sent += 1
        logger.info("fake_bulk_send channel=%s sent=%s failed=%s", self.channel, sent, len(errors))
        return BulkSendResult(sent=sent, failed=len(errors), errors=errors[:10])

    async def send_one(self, recipient: str, message: FormattedMessage) -> str:
        if not self.available:
            raise TransportUnavailableError(f"{self.channel} transport unavailable")
        if recipient in self.failing_recipients:
            raise DeliveryError(f"{recipient}: rejected")
        self.sent.append((recipient, message))
        return f"fake-{self.channel}-{len(self.sent)}"
