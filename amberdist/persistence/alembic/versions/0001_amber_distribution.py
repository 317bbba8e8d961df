"""amber alert distribution units, audit log, and recipient directories

Revision ID: 0001_amber_distribution
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_amber_distribution"
down_revision = None
branch_labels = None
depends_on = None


def _jsonb() -> postgresql.JSONB:
    return postgresql.JSONB(astext_type=sa.Text())


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    op.create_table(
        "amber_alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("case_id", sa.String(), nullable=False),
        sa.Column("alert_number", sa.String(), nullable=False),
        sa.Column("alert_status", sa.String(), nullable=False, server_default="active"),
        sa.Column("child_name", sa.String(), nullable=False),
        sa.Column("child_age", sa.Integer(), nullable=True),
        sa.Column("child_gender", sa.String(), nullable=True),
        sa.Column("child_description", sa.Text(), nullable=True),
        sa.Column("child_photo_url", sa.String(), nullable=True),
        sa.Column("abduction_date", sa.String(), nullable=True),
        sa.Column("abduction_time", sa.String(), nullable=True),
        sa.Column("abduction_location", sa.Text(), nullable=True),
        sa.Column("abduction_city", sa.String(), nullable=True),
        sa.Column("abduction_province", sa.String(), nullable=True),
        sa.Column("abduction_circumstances", sa.Text(), nullable=True),
        sa.Column("suspect_name", sa.String(), nullable=True),
        sa.Column("suspect_description", sa.Text(), nullable=True),
        sa.Column("suspect_photo_url", sa.String(), nullable=True),
        sa.Column("suspect_relationship", sa.String(), nullable=True),
        sa.Column("vehicle_involved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("vehicle_make", sa.String(), nullable=True),
        sa.Column("vehicle_model", sa.String(), nullable=True),
        sa.Column("vehicle_year", sa.Integer(), nullable=True),
        sa.Column("vehicle_color", sa.String(), nullable=True),
        sa.Column("vehicle_license_plate", sa.String(), nullable=True),
        sa.Column("vehicle_license_province", sa.String(), nullable=True),
        sa.Column("target_provinces", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("distribution_channels", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("requesting_officer_name", sa.String(), nullable=True),
        sa.Column("requesting_officer_badge", sa.String(), nullable=True),
        sa.Column("requesting_officer_phone", sa.String(), nullable=True),
        sa.Column("requesting_officer_agency", sa.String(), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("alert_number", name="uq_amber_alerts_alert_number"),
    )
    op.create_index("ix_amber_alerts_case_id", "amber_alerts", ["case_id"])

    op.create_table(
        "amber_distributions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("amber_alert_id", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("channel_config", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("target_id", sa.String(), nullable=True),
        sa.Column("target_name", sa.String(), nullable=True),
        sa.Column("target_contact", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("status_message", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("queued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("external_response", _jsonb(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["amber_alert_id"], ["amber_alerts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    # Due-unit selection filters on status and next_retry_at.
    op.create_index(
        "ix_amber_distributions_status_next_retry",
        "amber_distributions",
        ["status", "next_retry_at"],
    )
    op.create_index(
        "ix_amber_distributions_alert_status",
        "amber_distributions",
        ["amber_alert_id", "status"],
    )

    op.create_table(
        "amber_distribution_log",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("amber_alert_id", sa.String(), nullable=False),
        sa.Column("distribution_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=True),
        sa.Column("target_name", sa.String(), nullable=True),
        sa.Column("old_status", sa.String(), nullable=True),
        sa.Column("new_status", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata_json", _jsonb(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("actor_type", sa.String(), nullable=False, server_default="system"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_amber_distribution_log_amber_alert_id", "amber_distribution_log", ["amber_alert_id"])

    op.create_table(
        "partner_organizations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("province", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("can_access_api", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("webhook_url", sa.String(), nullable=True),
        sa.Column("webhook_secret", sa.String(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_partner_organizations_province", "partner_organizations", ["province"])

    op.create_table(
        "media_contacts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_name", sa.String(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("coverage_area", _jsonb(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("accepts_amber_alerts", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "social_media_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("account_name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_connected", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("auto_post_amber", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "alert_subscribers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("province", sa.String(), nullable=True),
        sa.Column("amber_alerts_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alert_subscribers_channel_province", "alert_subscribers", ["channel", "province"])

    op.create_table(
        "partner_alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("partner_id", sa.String(), nullable=False),
        sa.Column("case_id", sa.String(), nullable=False),
        sa.Column("amber_alert_id", sa.String(), nullable=False),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False),
        sa.Column("delivery_method", sa.String(), nullable=False),
        sa.Column("delivery_status", sa.String(), nullable=False, server_default="pending"),
        _created_at(),
        sa.ForeignKeyConstraint(["partner_id"], ["partner_organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_partner_alerts_partner_id", "partner_alerts", ["partner_id"])

    op.create_table(
        "webhook_deliveries",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("partner_id", sa.String(), nullable=True),
        sa.Column("distribution_id", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("response_status", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("payload_sha256", sa.String(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_webhook_deliveries_partner_id", "webhook_deliveries", ["partner_id"])
    op.create_index("ix_webhook_deliveries_distribution_id", "webhook_deliveries", ["distribution_id"])


def downgrade() -> None:
    op.drop_index("ix_webhook_deliveries_distribution_id", table_name="webhook_deliveries")
    op.drop_index("ix_webhook_deliveries_partner_id", table_name="webhook_deliveries")
    op.drop_table("webhook_deliveries")
    op.drop_index("ix_partner_alerts_partner_id", table_name="partner_alerts")
    op.drop_table("partner_alerts")
    op.drop_index("ix_alert_subscribers_channel_province", table_name="alert_subscribers")
    op.drop_table("alert_subscribers")
    op.drop_table("social_media_accounts")
    op.drop_table("media_contacts")
    op.drop_index("ix_partner_organizations_province", table_name="partner_organizations")
    op.drop_table("partner_organizations")
    op.drop_index("ix_amber_distribution_log_amber_alert_id", table_name="amber_distribution_log")
    op.drop_table("amber_distribution_log")
    op.drop_index("ix_amber_distributions_alert_status", table_name="amber_distributions")
    op.drop_index("ix_amber_distributions_status_next_retry", table_name="amber_distributions")
    op.drop_table("amber_distributions")
    op.drop_index("ix_amber_alerts_case_id", table_name="amber_alerts")
    op.drop_table("amber_alerts")
