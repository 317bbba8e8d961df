from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from amberdist.core.errors import InvalidTransitionError
from amberdist.domain.distribution import (
    CANCELLABLE_STATUSES,
    CLAIMABLE_STATUSES,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_SENDING,
    DistributionEvent,
    DistributionUnit,
    NewDistributionUnit,
    is_transition_allowed,
)
from amberdist.domain.models import AmberDistributionLogRow, AmberDistributionRow


# Unit fields the processor and engine are allowed to change through transition().
_MUTABLE_FIELDS = frozenset(
    {
        "status_message",
        "retry_count",
        "next_retry_at",
        "queued_at",
        "sent_at",
        "delivered_at",
        "failed_at",
        "external_id",
        "external_response",
    }
)


def _to_unit(row: AmberDistributionRow) -> DistributionUnit:
    return DistributionUnit(
        id=row.id,
        alert_id=row.amber_alert_id,
        channel=row.channel,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        channel_config=dict(row.channel_config or {}),
        target_id=row.target_id,
        target_name=row.target_name,
        target_contact=row.target_contact,
        status_message=row.status_message,
        retry_count=int(row.retry_count),
        max_retries=int(row.max_retries),
        next_retry_at=row.next_retry_at,
        queued_at=row.queued_at,
        sent_at=row.sent_at,
        delivered_at=row.delivered_at,
        failed_at=row.failed_at,
        external_id=row.external_id,
        external_response=row.external_response,
    )


def _to_event(row: AmberDistributionLogRow) -> DistributionEvent:
    return DistributionEvent(
        id=row.id,
        alert_id=row.amber_alert_id,
        event_type=row.event_type,
        message=row.message,
        created_at=row.created_at,
        distribution_id=row.distribution_id,
        channel=row.channel,
        target_name=row.target_name,
        old_status=row.old_status,
        new_status=row.new_status,
        actor_type=row.actor_type,
        metadata=dict(row.metadata_json or {}),
    )


def _due_predicates(now: datetime) -> list[Any]:
    return [
        AmberDistributionRow.status.in_(tuple(CLAIMABLE_STATUSES)),
        AmberDistributionRow.retry_count < AmberDistributionRow.max_retries,
        or_(AmberDistributionRow.next_retry_at.is_(None), AmberDistributionRow.next_retry_at <= now),
    ]


class SqlDistributionStore:
    # One short-lived AsyncSession per operation so concurrent sends never share a session.
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_units(
        self, units: Sequence[NewDistributionUnit], *, max_retries: int, now: datetime
    ) -> list[DistributionUnit]:
        rows = [
            AmberDistributionRow(
                id=str(uuid4()),
                amber_alert_id=unit.alert_id,
                channel=unit.channel,
                channel_config=dict(unit.channel_config),
                target_id=unit.target_id,
                target_name=unit.target_name,
                target_contact=unit.target_contact,
                status=STATUS_PENDING,
                retry_count=0,
                max_retries=max_retries,
                created_at=now,
                updated_at=now,
            )
            for unit in units
        ]
        if not rows:
            return []
        async with self._session_factory() as session:
            session.add_all(rows)
            await session.commit()
        return [_to_unit(row) for row in rows]

    async def get_unit(self, unit_id: str) -> DistributionUnit | None:
        async with self._session_factory() as session:
            row = await session.get(AmberDistributionRow, unit_id)
            return _to_unit(row) if row is not None else None

    async def list_units(self, alert_id: str) -> list[DistributionUnit]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(AmberDistributionRow)
                    .where(AmberDistributionRow.amber_alert_id == alert_id)
                    .order_by(AmberDistributionRow.created_at.asc(), AmberDistributionRow.id.asc())
                )
            ).scalars().all()
            return [_to_unit(row) for row in rows]

    async def select_due(self, *, now: datetime, limit: int) -> list[DistributionUnit]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(AmberDistributionRow)
                    .where(*_due_predicates(now))
                    .order_by(AmberDistributionRow.created_at.asc(), AmberDistributionRow.id.asc())
                    .limit(max(0, int(limit)))
                )
            ).scalars().all()
            return [_to_unit(row) for row in rows]

    async def claim(self, unit_id: str, *, now: datetime) -> DistributionUnit | None:
        # Single conditional UPDATE: only one worker can move a due row into sending.
        stmt = (
            update(AmberDistributionRow)
            .where(AmberDistributionRow.id == unit_id, *_due_predicates(now))
            .values(status=STATUS_SENDING, sent_at=now, updated_at=now)
            .returning(AmberDistributionRow)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            unit = _to_unit(row) if row is not None else None
            await session.commit()
        return unit

    async def transition(
        self,
        unit_id: str,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        now: datetime,
        changes: dict[str, Any] | None = None,
    ) -> DistributionUnit | None:
        expected = tuple(sorted(set(from_statuses)))
        for source in expected:
            if not is_transition_allowed(source, to_status):
                raise InvalidTransitionError(f"{source} -> {to_status} is not allowed")
        values = dict(changes or {})
        unknown = set(values) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported distribution fields: {', '.join(sorted(unknown))}")
        values.update(status=to_status, updated_at=now)
        stmt = (
            update(AmberDistributionRow)
            .where(AmberDistributionRow.id == unit_id, AmberDistributionRow.status.in_(expected))
            .values(**values)
            .returning(AmberDistributionRow)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            unit = _to_unit(row) if row is not None else None
            await session.commit()
        return unit

    async def cancel_units(self, alert_id: str, *, reason: str, now: datetime) -> int:
        stmt = (
            update(AmberDistributionRow)
            .where(
                AmberDistributionRow.amber_alert_id == alert_id,
                AmberDistributionRow.status.in_(tuple(CANCELLABLE_STATUSES)),
            )
            .values(status=STATUS_CANCELLED, status_message=reason, next_retry_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return int(result.rowcount or 0)

    async def count_by_status_and_channel(self, alert_id: str) -> list[tuple[str, str, int]]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(AmberDistributionRow.status, AmberDistributionRow.channel, func.count())
                    .where(AmberDistributionRow.amber_alert_id == alert_id)
                    .group_by(AmberDistributionRow.status, AmberDistributionRow.channel)
                )
            ).all()
        return [(str(status), str(channel), int(total)) for status, channel, total in rows]

    async def append_event(self, event: DistributionEvent) -> None:
        async with self._session_factory() as session:
            session.add(
                AmberDistributionLogRow(
                    amber_alert_id=event.alert_id,
                    distribution_id=event.distribution_id,
                    event_type=event.event_type,
                    channel=event.channel,
                    target_name=event.target_name,
                    old_status=event.old_status,
                    new_status=event.new_status,
                    message=event.message,
                    metadata_json=dict(event.metadata),
                    actor_type=event.actor_type,
                    created_at=event.created_at,
                )
            )
            await session.commit()

    async def list_events(self, alert_id: str) -> list[DistributionEvent]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(AmberDistributionLogRow)
                    .where(AmberDistributionLogRow.amber_alert_id == alert_id)
                    .order_by(AmberDistributionLogRow.id.asc())
                )
            ).scalars().all()
            return [_to_event(row) for row in rows]
