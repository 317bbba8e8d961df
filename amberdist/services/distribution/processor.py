from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
import logging

from amberdist.core.errors import DeliveryError
from amberdist.domain.distribution import (
    AWAITING_APPROVAL_MESSAGE,
    CHANNEL_REGULATED_BROADCAST,
    STATUS_FAILED,
    STATUS_QUEUED,
    STATUS_SENDING,
    STATUS_SENT,
    Alert,
    DistributionUnit,
)
from amberdist.services.distribution.interfaces import DistributionStore, TargetDirectory
from amberdist.services.distribution.reporter import (
    EVENT_UNIT_FAILED,
    EVENT_UNIT_QUEUED,
    EVENT_UNIT_RETRY_SCHEDULED,
    EVENT_UNIT_SENT,
    DistributionReporter,
)
from amberdist.services.distribution.senders.base import OUTCOME_QUEUED, SendOutcome, SenderRegistry


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    # Keep retry bookkeeping in UTC so due comparisons are stable across processes.
    return datetime.now(timezone.utc)


def compute_next_retry_at(now: datetime, retry_count: int, *, base_minutes: int = 1) -> datetime:
    # Exponential backoff: base * 2^retry_count minutes; max_retries bounds the total attempts.
    return now + timedelta(minutes=max(1, int(base_minutes)) * (2 ** max(0, int(retry_count))))


class DispatchProcessor:
    def __init__(
        self,
        *,
        store: DistributionStore,
        directory: TargetDirectory,
        senders: SenderRegistry,
        reporter: DistributionReporter,
        batch_size: int = 50,
        max_concurrency: int = 10,
        retry_base_minutes: int = 1,
        channel_timeouts_s: Mapping[str, float] | None = None,
        default_timeout_s: float = 60.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._senders = senders
        self._reporter = reporter
        self._batch_size = max(1, int(batch_size))
        self._max_concurrency = max(1, int(max_concurrency))
        self._retry_base_minutes = max(1, int(retry_base_minutes))
        self._channel_timeouts_s = dict(channel_timeouts_s or {})
        self._default_timeout_s = float(default_timeout_s)
        self._clock = clock or _utc_now

    def timeout_for(self, channel: str) -> float:
        return float(self._channel_timeouts_s.get(channel, self._default_timeout_s))

    async def run_sweep(self, limit: int | None = None) -> int:
        """Claim and dispatch due units; returns how many units this sweep claimed and processed."""
        batch = self._batch_size if limit is None else max(0, int(limit))
        if batch == 0:
            return 0
        due = await self._store.select_due(now=self._clock(), limit=batch)
        if not due:
            return 0

        alerts = await self._load_alerts(dict.fromkeys(unit.alert_id for unit in due))

        semaphore = asyncio.Semaphore(self._max_concurrency)
        results = await asyncio.gather(
            *(self._process_unit(unit, alerts.get(unit.alert_id), semaphore) for unit in due),
            return_exceptions=True,
        )
        processed = 0
        for unit, result in zip(due, results):
            if isinstance(result, BaseException):
                # Store errors after a claim leave the unit in sending; surface them loudly.
                logger.error(
                    "distribution_unit_processing_error unit_id=%s channel=%s",
                    unit.id,
                    unit.channel,
                    exc_info=result,
                )
            elif result:
                processed += 1
        logger.info("distribution_sweep_complete selected=%s processed=%s", len(due), processed)
        return processed

    async def _load_alerts(self, alert_ids: Iterable[str]) -> dict[str, Alert | Exception | None]:
        # A failed lookup is kept per alert so only that alert's units fail this sweep.
        alerts: dict[str, Alert | Exception | None] = {}
        for alert_id in alert_ids:
            try:
                alerts[alert_id] = await self._directory.get_alert(alert_id)
            except Exception as exc:  # noqa: BLE001 - recorded on the affected units instead.
                logger.warning("distribution_alert_lookup_failed alert_id=%s", alert_id, exc_info=True)
                alerts[alert_id] = exc
        return alerts

    async def _process_unit(
        self,
        unit: DistributionUnit,
        alert: Alert | Exception | None,
        semaphore: asyncio.Semaphore,
    ) -> bool:
        async with semaphore:
            # Conditional claim; losing the race to another worker means someone else owns it.
            claimed = await self._store.claim(unit.id, now=self._clock())
            if claimed is None:
                return False
            timeout_s = self.timeout_for(claimed.channel)
            try:
                if claimed.channel == CHANNEL_REGULATED_BROADCAST and not isinstance(alert, Alert):
                    # Regulated units queue for approval even when the alert cannot be loaded.
                    outcome = SendOutcome(
                        status=OUTCOME_QUEUED,
                        message=AWAITING_APPROVAL_MESSAGE,
                        details={"broadcast_type": claimed.channel_config.get("broadcast_type")},
                    )
                elif isinstance(alert, Exception):
                    raise DeliveryError(f"Alert {claimed.alert_id} lookup failed: {alert}") from alert
                elif alert is None:
                    raise DeliveryError(f"Alert {claimed.alert_id} not found")
                else:
                    sender = self._senders.for_channel(claimed.channel)
                    outcome = await asyncio.wait_for(sender.send(claimed, alert), timeout=timeout_s)
            except asyncio.TimeoutError:
                await self._record_failure(claimed, f"Send timed out after {timeout_s:g}s")
            except Exception as exc:  # noqa: BLE001 - one unit's failure never aborts the sweep.
                await self._record_failure(claimed, str(exc) or exc.__class__.__name__)
            else:
                if outcome.status == OUTCOME_QUEUED or claimed.channel == CHANNEL_REGULATED_BROADCAST:
                    await self._record_queued(claimed, outcome)
                else:
                    await self._record_sent(claimed, outcome)
            return True

    async def _record_sent(self, unit: DistributionUnit, outcome: SendOutcome) -> None:
        now = self._clock()
        updated = await self._store.transition(
            unit.id,
            from_statuses={STATUS_SENDING},
            to_status=STATUS_SENT,
            now=now,
            changes={
                "sent_at": now,
                "status_message": outcome.message,
                "next_retry_at": None,
                "external_id": outcome.external_id,
                "external_response": dict(outcome.details) or None,
            },
        )
        if updated is None:
            logger.warning("distribution_unit_sent_lost unit_id=%s", unit.id)
            return
        await self._reporter.log_event(
            unit.alert_id,
            EVENT_UNIT_SENT,
            outcome.message or f"Sent via {unit.channel}",
            unit.id,
            channel=unit.channel,
            target_name=unit.target_name,
            old_status=STATUS_SENDING,
            new_status=STATUS_SENT,
            metadata={"external_id": outcome.external_id, **outcome.details},
        )

    async def _record_queued(self, unit: DistributionUnit, outcome: SendOutcome) -> None:
        if unit.channel != CHANNEL_REGULATED_BROADCAST:
            # Only regulated broadcasts may park in queued; anything else is a sender bug.
            await self._record_failure(unit, f"Sender for {unit.channel} returned a queued outcome")
            return
        now = self._clock()
        updated = await self._store.transition(
            unit.id,
            from_statuses={STATUS_SENDING},
            to_status=STATUS_QUEUED,
            now=now,
            changes={
                "queued_at": now,
                "status_message": AWAITING_APPROVAL_MESSAGE,
                "next_retry_at": None,
            },
        )
        if updated is None:
            logger.warning("distribution_unit_queue_lost unit_id=%s", unit.id)
            return
        await self._reporter.log_event(
            unit.alert_id,
            EVENT_UNIT_QUEUED,
            f"{unit.target_name or unit.channel}: {AWAITING_APPROVAL_MESSAGE}",
            unit.id,
            channel=unit.channel,
            target_name=unit.target_name,
            old_status=STATUS_SENDING,
            new_status=STATUS_QUEUED,
            metadata=dict(outcome.details),
        )

    async def _record_failure(self, unit: DistributionUnit, message: str) -> None:
        now = self._clock()
        retry_count = min(unit.retry_count + 1, unit.max_retries)
        retries_remain = retry_count < unit.max_retries
        next_retry_at = (
            compute_next_retry_at(now, retry_count, base_minutes=self._retry_base_minutes) if retries_remain else None
        )
        updated = await self._store.transition(
            unit.id,
            from_statuses={STATUS_SENDING},
            to_status=STATUS_FAILED,
            now=now,
            changes={
                "retry_count": retry_count,
                "status_message": message,
                "failed_at": now,
                "next_retry_at": next_retry_at,
            },
        )
        if updated is None:
            logger.warning("distribution_unit_failure_lost unit_id=%s", unit.id)
            return
        if retries_remain:
            logger.info(
                "distribution_unit_retry_scheduled unit_id=%s channel=%s retry_count=%s next_retry_at=%s",
                unit.id,
                unit.channel,
                retry_count,
                next_retry_at.isoformat() if next_retry_at else None,
            )
            event_type = EVENT_UNIT_RETRY_SCHEDULED
        else:
            logger.warning(
                "distribution_unit_failed unit_id=%s channel=%s retry_count=%s error=%s",
                unit.id,
                unit.channel,
                retry_count,
                message,
            )
            event_type = EVENT_UNIT_FAILED
        await self._reporter.log_event(
            unit.alert_id,
            event_type,
            message,
            unit.id,
            channel=unit.channel,
            target_name=unit.target_name,
            old_status=STATUS_SENDING,
            new_status=STATUS_FAILED,
            metadata={
                "retry_count": retry_count,
                "next_retry_at": next_retry_at.isoformat() if next_retry_at else None,
            },
        )
