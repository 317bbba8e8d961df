from __future__ import annotations


class AmberDistError(Exception):
    """Base error for amberdist."""


class ProviderConfigError(AmberDistError):
    """Missing or invalid provider configuration."""


class SenderConfigError(AmberDistError):
    """Channel sender registry is incomplete or misconfigured."""


class AlertNotFoundError(AmberDistError):
    """Requested alert does not exist."""


class AlertInactiveError(AmberDistError):
    """Requested alert is not active and cannot be distributed."""


class UnknownChannelError(AmberDistError):
    """Requested channel is not part of the channel enumeration."""


class DistributionNotFoundError(AmberDistError):
    """Distribution unit does not exist."""


class InvalidTransitionError(AmberDistError):
    """Status change is not allowed by the distribution state machine."""


class DeliveryError(AmberDistError):
    """A channel sender could not deliver a distribution unit."""


class TransportUnavailableError(DeliveryError):
    """Bulk transport could not be reached, so no send was attempted."""


class WebhookDeliveryError(DeliveryError):
    """Partner webhook rejected the delivery or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
