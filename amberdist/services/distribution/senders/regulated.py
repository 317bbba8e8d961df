from __future__ import annotations

from amberdist.domain.distribution import AWAITING_APPROVAL_MESSAGE, Alert, DistributionUnit
from amberdist.services.distribution.senders.base import OUTCOME_QUEUED, SendOutcome


class RegulatedBroadcastSender:
    # WEA, EAS, and highway signage need a human approval step outside this engine.
    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        return SendOutcome(
            status=OUTCOME_QUEUED,
            message=AWAITING_APPROVAL_MESSAGE,
            details={"broadcast_type": unit.channel_config.get("broadcast_type")},
        )
