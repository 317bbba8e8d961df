from __future__ import annotations

import asyncio
import sys

from amberdist.domain.models import (
    AlertSubscriberRow,
    AmberAlertRow,
    MediaContactRow,
    PartnerOrganizationRow,
    SocialMediaAccountRow,
)
from amberdist.persistence.db import SessionLocal


DEMO_ALERT_ID = "demo-alert-1"


def build_demo_rows() -> list[object]:
    # Fixed ids so re-running the seed updates rows instead of duplicating them.
    return [
        AmberAlertRow(
            id=DEMO_ALERT_ID,
            case_id="demo-case-1",
            alert_number="AMB-DEMO-0001",
            alert_status="active",
            child_name="Jamie Doe",
            child_age=8,
            child_description="Red jacket, blue jeans",
            abduction_city="Toronto",
            abduction_province="ON",
            abduction_location="Queen St W & Spadina Ave",
            vehicle_involved=True,
            vehicle_make="Honda",
            vehicle_model="Civic",
            vehicle_color="Silver",
            vehicle_license_plate="ABCD 123",
            target_provinces=["ON"],
            distribution_channels=["partner", "email", "webhook", "regulated_broadcast"],
            requesting_officer_name="Sgt. R. Patel",
            requesting_officer_phone="555-0100",
            requesting_officer_agency="Demo Police Service",
        ),
        PartnerOrganizationRow(
            id="demo-partner-on",
            name="Ontario Transit Authority",
            contact_email="alerts@transit.example.org",
            province="ON",
            status="active",
            can_access_api=True,
            webhook_url="http://localhost:9001/webhook",
            webhook_secret="demo-secret",
        ),
        PartnerOrganizationRow(
            id="demo-partner-qc",
            name="Quebec Retail Network",
            contact_email="alerts@retail.example.org",
            province="QC",
            status="active",
        ),
        MediaContactRow(
            id="demo-media-1",
            organization_name="Toronto Evening News",
            contact_email="newsdesk@news.example.org",
            coverage_area=["ON"],
        ),
        SocialMediaAccountRow(
            id="demo-social-1",
            platform="twitter",
            account_name="@DemoAmberAlerts",
            is_connected=True,
            auto_post_amber=True,
        ),
        AlertSubscriberRow(id="demo-sub-email", channel="email", address="resident@example.org", province="ON"),
        AlertSubscriberRow(id="demo-sub-sms", channel="sms", address="+15550100", province="ON"),
    ]


async def seed_demo() -> int:
    async with SessionLocal() as session:
        rows = build_demo_rows()
        for row in rows:
            await session.merge(row)
        await session.commit()
    print(f"Seeded {len(rows)} demo rows (alert_id={DEMO_ALERT_ID}).")
    return 0


def main() -> int:
    try:
        return asyncio.run(seed_demo())
    except Exception as exc:  # noqa: BLE001 - surface any setup or DB errors
        print(f"seed_demo failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
