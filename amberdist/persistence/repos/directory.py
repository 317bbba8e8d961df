from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from amberdist.domain.distribution import (
    Alert,
    MediaContact,
    PartnerOrganization,
    SocialMediaAccount,
    Subscriber,
)
from amberdist.domain.models import (
    AlertSubscriberRow,
    AmberAlertRow,
    MediaContactRow,
    PartnerOrganizationRow,
    SocialMediaAccountRow,
)


def _to_alert(row: AmberAlertRow) -> Alert:
    return Alert(
        id=row.id,
        case_id=row.case_id,
        alert_number=row.alert_number,
        alert_status=row.alert_status,
        child_name=row.child_name,
        child_age=row.child_age,
        child_gender=row.child_gender,
        child_description=row.child_description,
        child_photo_url=row.child_photo_url,
        abduction_date=row.abduction_date,
        abduction_time=row.abduction_time,
        abduction_location=row.abduction_location,
        abduction_city=row.abduction_city,
        abduction_province=row.abduction_province,
        abduction_circumstances=row.abduction_circumstances,
        suspect_name=row.suspect_name,
        suspect_description=row.suspect_description,
        suspect_photo_url=row.suspect_photo_url,
        suspect_relationship=row.suspect_relationship,
        vehicle_involved=bool(row.vehicle_involved),
        vehicle_make=row.vehicle_make,
        vehicle_model=row.vehicle_model,
        vehicle_year=row.vehicle_year,
        vehicle_color=row.vehicle_color,
        vehicle_license_plate=row.vehicle_license_plate,
        vehicle_license_province=row.vehicle_license_province,
        target_provinces=tuple(row.target_provinces or ()),
        distribution_channels=tuple(row.distribution_channels or ()),
        requesting_officer_name=row.requesting_officer_name,
        requesting_officer_badge=row.requesting_officer_badge,
        requesting_officer_phone=row.requesting_officer_phone,
        requesting_officer_agency=row.requesting_officer_agency,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
    )


def _to_partner(row: PartnerOrganizationRow) -> PartnerOrganization:
    return PartnerOrganization(
        id=row.id,
        name=row.name,
        status=row.status,
        contact_email=row.contact_email,
        province=row.province,
        can_access_api=bool(row.can_access_api),
        webhook_url=row.webhook_url,
        webhook_secret=row.webhook_secret,
    )


class SqlTargetDirectory:
    # Pushes the cheap filters into SQL; the resolver re-applies the full eligibility rules.
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_alert(self, alert_id: str) -> Alert | None:
        async with self._session_factory() as session:
            row = await session.get(AmberAlertRow, alert_id)
            return _to_alert(row) if row is not None else None

    async def get_partner(self, partner_id: str) -> PartnerOrganization | None:
        async with self._session_factory() as session:
            row = await session.get(PartnerOrganizationRow, partner_id)
            return _to_partner(row) if row is not None else None

    async def list_partners(
        self,
        *,
        partner_ids: Sequence[str] = (),
        provinces: Sequence[str] = (),
        api_access_only: bool = False,
    ) -> list[PartnerOrganization]:
        stmt = select(PartnerOrganizationRow).where(PartnerOrganizationRow.status == "active")
        if api_access_only:
            stmt = stmt.where(PartnerOrganizationRow.can_access_api.is_(True))
        elif partner_ids:
            stmt = stmt.where(PartnerOrganizationRow.id.in_(list(partner_ids)))
        elif provinces:
            lowered = [province.strip().lower() for province in provinces]
            stmt = stmt.where(func.lower(PartnerOrganizationRow.province).in_(lowered))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt.order_by(PartnerOrganizationRow.name.asc()))).scalars().all()
        return [_to_partner(row) for row in rows]

    async def list_media_contacts(
        self, *, media_ids: Sequence[str] = (), provinces: Sequence[str] = ()
    ) -> list[MediaContact]:
        stmt = select(MediaContactRow).where(
            MediaContactRow.is_active.is_(True),
            MediaContactRow.accepts_amber_alerts.is_(True),
        )
        if media_ids:
            stmt = stmt.where(MediaContactRow.id.in_(list(media_ids)))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt.order_by(MediaContactRow.organization_name.asc()))).scalars().all()
        return [
            MediaContact(
                id=row.id,
                organization_name=row.organization_name,
                contact_email=row.contact_email,
                coverage_area=tuple(row.coverage_area or ()),
                is_active=bool(row.is_active),
                accepts_amber_alerts=bool(row.accepts_amber_alerts),
            )
            for row in rows
        ]

    async def list_social_accounts(self) -> list[SocialMediaAccount]:
        stmt = select(SocialMediaAccountRow).where(
            SocialMediaAccountRow.is_active.is_(True),
            SocialMediaAccountRow.is_connected.is_(True),
            SocialMediaAccountRow.auto_post_amber.is_(True),
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt.order_by(SocialMediaAccountRow.platform.asc()))).scalars().all()
        return [
            SocialMediaAccount(
                id=row.id,
                platform=row.platform,
                account_name=row.account_name,
                is_active=bool(row.is_active),
                is_connected=bool(row.is_connected),
                auto_post_amber=bool(row.auto_post_amber),
            )
            for row in rows
        ]


class SqlSubscriberDirectory:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_subscribers(self, *, channel: str, provinces: Sequence[str] = ()) -> list[Subscriber]:
        stmt = select(AlertSubscriberRow).where(
            AlertSubscriberRow.channel == channel,
            AlertSubscriberRow.is_active.is_(True),
            AlertSubscriberRow.amber_alerts_enabled.is_(True),
        )
        if provinces:
            lowered = [province.strip().lower() for province in provinces]
            stmt = stmt.where(func.lower(AlertSubscriberRow.province).in_(lowered))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [
            Subscriber(
                id=row.id,
                channel=row.channel,
                address=row.address,
                province=row.province,
                amber_alerts_enabled=bool(row.amber_alerts_enabled),
                is_active=bool(row.is_active),
            )
            for row in rows
        ]
