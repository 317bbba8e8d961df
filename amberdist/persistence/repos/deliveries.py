from __future__ import annotations

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from amberdist.domain.distribution import PartnerNotification, WebhookDeliveryRecord
from amberdist.domain.models import PartnerAlertRow, WebhookDeliveryRow


class SqlPartnerNotifier:
    # Directed in-app partner notifications land in partner_alerts for the partner portal.
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def notify(self, notification: PartnerNotification) -> str:
        row = PartnerAlertRow(
            id=str(uuid4()),
            partner_id=notification.partner_id,
            case_id=notification.case_id,
            amber_alert_id=notification.alert_id,
            alert_type=notification.alert_type,
            title=notification.title,
            message=notification.message,
            priority=notification.priority,
            delivery_method=notification.delivery_method,
            delivery_status="pending",
        )
        async with self._session_factory() as session:
            session.add(row)
            await session.commit()
        return row.id


class SqlWebhookDeliveryLog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, record: WebhookDeliveryRecord) -> None:
        async with self._session_factory() as session:
            session.add(
                WebhookDeliveryRow(
                    partner_id=record.partner_id,
                    distribution_id=record.distribution_id,
                    url=record.url,
                    event_type=record.event_type,
                    success=record.success,
                    response_status=record.response_status,
                    error=record.error,
                    payload_sha256=record.payload_sha256,
                    duration_ms=record.duration_ms,
                    created_at=record.created_at,
                )
            )
            await session.commit()
