from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from amberdist.domain.distribution import FormattedMessage


@dataclass(frozen=True)
class BulkSendResult:
    sent: int
    failed: int
    errors: list[str] = field(default_factory=list)


class BulkMessagingGateway(Protocol):
    # One gateway per medium (email, sms, push). Raises TransportUnavailableError when
    # the bulk operation as a whole cannot be attempted.
    async def send_bulk(self, recipients: Sequence[str], message: FormattedMessage) -> BulkSendResult:
        ...


class EmailTransport(BulkMessagingGateway, Protocol):
    # Directed single-recipient send used for media outlets; returns a provider message id.
    async def send_one(self, recipient: str, message: FormattedMessage) -> str:
        ...
