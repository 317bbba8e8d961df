from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal


Channel = Literal[
    "partner",
    "media_outlet",
    "email",
    "push",
    "social_media",
    "sms",
    "regulated_broadcast",
    "webhook",
]
DistributionStatus = Literal["pending", "sending", "queued", "sent", "delivered", "failed", "cancelled"]

CHANNEL_PARTNER = "partner"
CHANNEL_MEDIA_OUTLET = "media_outlet"
CHANNEL_EMAIL = "email"
CHANNEL_PUSH = "push"
CHANNEL_SOCIAL_MEDIA = "social_media"
CHANNEL_SMS = "sms"
CHANNEL_REGULATED_BROADCAST = "regulated_broadcast"
CHANNEL_WEBHOOK = "webhook"

ALL_CHANNELS: tuple[str, ...] = (
    CHANNEL_PARTNER,
    CHANNEL_MEDIA_OUTLET,
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    CHANNEL_SOCIAL_MEDIA,
    CHANNEL_SMS,
    CHANNEL_REGULATED_BROADCAST,
    CHANNEL_WEBHOOK,
)
BULK_CHANNELS = frozenset({CHANNEL_EMAIL, CHANNEL_PUSH, CHANNEL_SMS})

STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_QUEUED = "queued"
STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"

ALL_STATUSES: tuple[str, ...] = (
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_QUEUED,
    STATUS_SENT,
    STATUS_DELIVERED,
    STATUS_FAILED,
    STATUS_CANCELLED,
)
CLAIMABLE_STATUSES = frozenset({STATUS_PENDING, STATUS_FAILED})
CANCELLABLE_STATUSES = frozenset({STATUS_PENDING, STATUS_QUEUED})

# Source status -> statuses it may move to. Terminal statuses have no outgoing edges
# except sent -> delivered, which is an external confirmation.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_SENDING, STATUS_CANCELLED}),
    STATUS_FAILED: frozenset({STATUS_SENDING, STATUS_CANCELLED}),
    STATUS_SENDING: frozenset({STATUS_SENT, STATUS_QUEUED, STATUS_FAILED}),
    STATUS_QUEUED: frozenset({STATUS_CANCELLED}),
    STATUS_SENT: frozenset({STATUS_DELIVERED}),
    STATUS_DELIVERED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}

# Regulated broadcast sub-types and the display names operators see for them.
REGULATED_BROADCAST_TYPES: dict[str, str] = {
    "wea": "Wireless Emergency Alert System",
    "eas": "Emergency Alert System",
    "highway_signs": "Highway Digital Signage",
}

BROADCAST_TARGET_NAMES: dict[str, str] = {
    CHANNEL_EMAIL: "Email Subscribers",
    CHANNEL_PUSH: "Mobile App Users",
    CHANNEL_SMS: "SMS Subscribers",
}

# Legacy request tokens accepted for compatibility with older callers.
CHANNEL_ALIASES: dict[str, str] = {
    "partner_alert": CHANNEL_PARTNER,
    "push_notification": CHANNEL_PUSH,
    "api_webhook": CHANNEL_WEBHOOK,
    "media": CHANNEL_MEDIA_OUTLET,
    "social": CHANNEL_SOCIAL_MEDIA,
}

AWAITING_APPROVAL_MESSAGE = "Awaiting manual approval"


def is_transition_allowed(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


@dataclass(frozen=True)
class Alert:
    id: str
    case_id: str
    alert_number: str
    alert_status: str
    child_name: str
    child_age: int | None = None
    child_gender: str | None = None
    child_description: str | None = None
    child_photo_url: str | None = None
    abduction_date: str | None = None
    abduction_time: str | None = None
    abduction_location: str | None = None
    abduction_city: str | None = None
    abduction_province: str | None = None
    abduction_circumstances: str | None = None
    suspect_name: str | None = None
    suspect_description: str | None = None
    suspect_photo_url: str | None = None
    suspect_relationship: str | None = None
    vehicle_involved: bool = False
    vehicle_make: str | None = None
    vehicle_model: str | None = None
    vehicle_year: int | None = None
    vehicle_color: str | None = None
    vehicle_license_plate: str | None = None
    vehicle_license_province: str | None = None
    target_provinces: tuple[str, ...] = ()
    distribution_channels: tuple[str, ...] = ()
    requesting_officer_name: str | None = None
    requesting_officer_badge: str | None = None
    requesting_officer_phone: str | None = None
    requesting_officer_agency: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class PartnerOrganization:
    id: str
    name: str
    status: str = "active"
    contact_email: str | None = None
    province: str | None = None
    can_access_api: bool = False
    webhook_url: str | None = None
    webhook_secret: str | None = None


@dataclass(frozen=True)
class MediaContact:
    id: str
    organization_name: str
    contact_email: str | None = None
    coverage_area: tuple[str, ...] = ()
    is_active: bool = True
    accepts_amber_alerts: bool = True


@dataclass(frozen=True)
class SocialMediaAccount:
    id: str
    platform: str
    account_name: str
    is_active: bool = True
    is_connected: bool = True
    auto_post_amber: bool = True


@dataclass(frozen=True)
class Subscriber:
    id: str
    channel: str
    address: str
    province: str | None = None
    amber_alerts_enabled: bool = True
    is_active: bool = True


@dataclass(frozen=True)
class NewDistributionUnit:
    alert_id: str
    channel: str
    channel_config: dict[str, Any] = field(default_factory=dict)
    target_id: str | None = None
    target_name: str | None = None
    target_contact: str | None = None


@dataclass
class DistributionUnit:
    id: str
    alert_id: str
    channel: str
    status: str
    created_at: datetime
    updated_at: datetime
    channel_config: dict[str, Any] = field(default_factory=dict)
    target_id: str | None = None
    target_name: str | None = None
    target_contact: str | None = None
    status_message: str | None = None
    retry_count: int = 0
    max_retries: int = 3
    next_retry_at: datetime | None = None
    queued_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    external_id: str | None = None
    external_response: dict[str, Any] | None = None

    def is_due(self, now: datetime) -> bool:
        # Due means claimable right now: eligible status, retry budget left, backoff elapsed.
        if self.status not in CLAIMABLE_STATUSES:
            return False
        if self.retry_count >= self.max_retries:
            return False
        return self.next_retry_at is None or self.next_retry_at <= now


@dataclass(frozen=True)
class DistributionEvent:
    alert_id: str
    event_type: str
    message: str
    created_at: datetime
    distribution_id: str | None = None
    channel: str | None = None
    target_name: str | None = None
    old_status: str | None = None
    new_status: str | None = None
    actor_type: str = "system"
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None


@dataclass(frozen=True)
class DistributionSummary:
    alert_id: str
    total: int
    by_status: dict[str, int]
    by_channel: dict[str, int]

    def as_dict(self) -> dict[str, Any]:
        return {
            "alert_id": self.alert_id,
            "total": self.total,
            "by_status": dict(self.by_status),
            "by_channel": dict(self.by_channel),
        }


@dataclass(frozen=True)
class DistributionRequest:
    alert_id: str
    channels: tuple[str, ...] = ()
    target_provinces: tuple[str, ...] = ()
    partner_ids: tuple[str, ...] = ()
    media_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class DistributionResult:
    success: bool
    alert_id: str
    distributions_created: int
    summary: DistributionSummary


@dataclass(frozen=True)
class PartnerNotification:
    partner_id: str
    case_id: str
    alert_id: str
    title: str
    message: str
    alert_type: str = "amber_alert"
    priority: str = "critical"
    delivery_method: str = "in_app"


@dataclass(frozen=True)
class WebhookDeliveryRecord:
    partner_id: str | None
    distribution_id: str
    url: str
    event_type: str
    success: bool
    response_status: int | None
    error: str | None
    payload_sha256: str
    duration_ms: int
    created_at: datetime


@dataclass(frozen=True)
class FormattedMessage:
    subject: str
    body: str
    tag: str | None = None
