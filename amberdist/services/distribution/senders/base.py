from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from amberdist.core.errors import SenderConfigError
from amberdist.domain.distribution import ALL_CHANNELS, Alert, DistributionUnit


OUTCOME_SENT = "sent"
OUTCOME_QUEUED = "queued"


@dataclass(frozen=True)
class SendOutcome:
    status: str = OUTCOME_SENT
    message: str | None = None
    external_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class ChannelSender(Protocol):
    # Deliver one unit or raise DeliveryError. Implementations never touch unit state.
    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        ...


class SenderRegistry:
    # Maps every channel to exactly one sender; construction fails if any channel is missing
    # so a newly added channel cannot be dispatched without a strategy.
    def __init__(self, senders: Mapping[str, ChannelSender]) -> None:
        missing = [channel for channel in ALL_CHANNELS if channel not in senders]
        if missing:
            raise SenderConfigError(f"No sender registered for channels: {', '.join(missing)}")
        unknown = [channel for channel in senders if channel not in ALL_CHANNELS]
        if unknown:
            raise SenderConfigError(f"Senders registered for unknown channels: {', '.join(unknown)}")
        self._senders = dict(senders)

    def for_channel(self, channel: str) -> ChannelSender:
        try:
            return self._senders[channel]
        except KeyError as exc:
            raise SenderConfigError(f"No sender registered for channel: {channel}") from exc

    def channels(self) -> list[str]:
        return list(self._senders)
