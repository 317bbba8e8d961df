from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class AmberAlertRow(Base):
    __tablename__ = "amber_alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    case_id: Mapped[str] = mapped_column(String, index=True)
    alert_number: Mapped[str] = mapped_column(String, unique=True)
    # active | cancelled | resolved; only active alerts can be distributed.
    alert_status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    child_name: Mapped[str] = mapped_column(String)
    child_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    child_gender: Mapped[str | None] = mapped_column(String, nullable=True)
    child_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    child_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    abduction_date: Mapped[str | None] = mapped_column(String, nullable=True)
    abduction_time: Mapped[str | None] = mapped_column(String, nullable=True)
    abduction_location: Mapped[str | None] = mapped_column(Text, nullable=True)
    abduction_city: Mapped[str | None] = mapped_column(String, nullable=True)
    abduction_province: Mapped[str | None] = mapped_column(String, nullable=True)
    abduction_circumstances: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspect_name: Mapped[str | None] = mapped_column(String, nullable=True)
    suspect_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspect_photo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    suspect_relationship: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_involved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    vehicle_make: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_model: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    vehicle_color: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_license_plate: Mapped[str | None] = mapped_column(String, nullable=True)
    vehicle_license_province: Mapped[str | None] = mapped_column(String, nullable=True)
    target_provinces: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    distribution_channels: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    requesting_officer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    requesting_officer_badge: Mapped[str | None] = mapped_column(String, nullable=True)
    requesting_officer_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    requesting_officer_agency: Mapped[str | None] = mapped_column(String, nullable=True)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AmberDistributionRow(Base):
    __tablename__ = "amber_distributions"
    __table_args__ = (
        # Due-unit selection scans by status and retry time.
        Index("ix_amber_distributions_status_next_retry", "status", "next_retry_at"),
        Index("ix_amber_distributions_alert_status", "amber_alert_id", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    amber_alert_id: Mapped[str] = mapped_column(String, ForeignKey("amber_alerts.id"), nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    channel_config: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, nullable=False)
    target_id: Mapped[str | None] = mapped_column(String, nullable=True)
    target_name: Mapped[str | None] = mapped_column(String, nullable=True)
    target_contact: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, default="pending", nullable=False)
    status_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    next_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    queued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String, nullable=True)
    external_response: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AmberDistributionLogRow(Base):
    __tablename__ = "amber_distribution_log"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    amber_alert_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    distribution_id: Mapped[str | None] = mapped_column(String, nullable=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    channel: Mapped[str | None] = mapped_column(String, nullable=True)
    target_name: Mapped[str | None] = mapped_column(String, nullable=True)
    old_status: Mapped[str | None] = mapped_column(String, nullable=True)
    new_status: Mapped[str | None] = mapped_column(String, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSONB, default=dict, nullable=False)
    actor_type: Mapped[str] = mapped_column(String, default="system", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PartnerOrganizationRow(Base):
    __tablename__ = "partner_organizations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    province: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    can_access_api: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    webhook_url: Mapped[str | None] = mapped_column(String, nullable=True)
    # Shared HMAC secret for webhook signatures; never echoed back through the API.
    webhook_secret: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MediaContactRow(Base):
    __tablename__ = "media_contacts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    organization_name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    coverage_area: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    accepts_amber_alerts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SocialMediaAccountRow(Base):
    __tablename__ = "social_media_accounts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    platform: Mapped[str] = mapped_column(String, nullable=False)
    account_name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_connected: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_post_amber: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AlertSubscriberRow(Base):
    __tablename__ = "alert_subscribers"
    __table_args__ = (Index("ix_alert_subscribers_channel_province", "channel", "province"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # email | sms | push
    channel: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str] = mapped_column(String, nullable=False)
    province: Mapped[str | None] = mapped_column(String, nullable=True)
    amber_alerts_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PartnerAlertRow(Base):
    __tablename__ = "partner_alerts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    partner_id: Mapped[str] = mapped_column(String, ForeignKey("partner_organizations.id"), index=True)
    case_id: Mapped[str] = mapped_column(String, nullable=False)
    amber_alert_id: Mapped[str] = mapped_column(String, nullable=False)
    alert_type: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String, nullable=False)
    delivery_method: Mapped[str] = mapped_column(String, nullable=False)
    delivery_status: Mapped[str] = mapped_column(String, default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class WebhookDeliveryRow(Base):
    __tablename__ = "webhook_deliveries"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    partner_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    distribution_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    url: Mapped[str] = mapped_column(String, nullable=False)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload_sha256: Mapped[str] = mapped_column(String, nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
