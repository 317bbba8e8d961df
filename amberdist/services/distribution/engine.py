from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
import logging
from typing import Any

from amberdist.core.config import Settings, get_settings
from amberdist.core.errors import (
    AlertInactiveError,
    AlertNotFoundError,
    DistributionNotFoundError,
    InvalidTransitionError,
)
from amberdist.domain.distribution import (
    CHANNEL_EMAIL,
    CHANNEL_PUSH,
    CHANNEL_SMS,
    CHANNEL_WEBHOOK,
    STATUS_DELIVERED,
    STATUS_SENT,
    DistributionEvent,
    DistributionRequest,
    DistributionResult,
    DistributionSummary,
    DistributionUnit,
)
from amberdist.services.distribution.interfaces import DistributionStore, TargetDirectory
from amberdist.services.distribution.processor import DispatchProcessor
from amberdist.services.distribution.reporter import (
    EVENT_DISTRIBUTION_STARTED,
    EVENT_DISTRIBUTIONS_CANCELLED,
    EVENT_UNIT_DELIVERED,
    DistributionReporter,
)
from amberdist.services.distribution.resolver import TargetResolver
from amberdist.services.distribution.senders.base import SenderRegistry


logger = logging.getLogger(__name__)

SweepTrigger = Callable[[str], Awaitable[Any]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DistributionEngine:
    """Entry point for alert distribution.

    Every collaborator is injected: the store, the target directory, and the sender
    registry. ``sweep_trigger`` is awaited with the alert id after units are created;
    when omitted, inline execution mode runs a sweep in-process and queue mode enqueues
    one onto the dispatch queue.
    """

    def __init__(
        self,
        *,
        store: DistributionStore,
        directory: TargetDirectory,
        senders: SenderRegistry,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        sweep_trigger: SweepTrigger | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store
        self.directory = directory
        self._clock = clock or _utc_now
        self.reporter = DistributionReporter(store, clock=self._clock)
        self.resolver = TargetResolver(directory)
        bulk_timeout = self.settings.bulk_send_timeout_s
        self.processor = DispatchProcessor(
            store=store,
            directory=directory,
            senders=senders,
            reporter=self.reporter,
            batch_size=self.settings.dispatch_batch_size,
            max_concurrency=self.settings.dispatch_max_concurrency,
            retry_base_minutes=self.settings.retry_base_minutes,
            channel_timeouts_s={
                CHANNEL_WEBHOOK: self.settings.webhook_timeout_s,
                CHANNEL_EMAIL: bulk_timeout,
                CHANNEL_SMS: bulk_timeout,
                CHANNEL_PUSH: bulk_timeout,
            },
            default_timeout_s=self.settings.send_timeout_s,
            clock=self._clock,
        )
        self._sweep_trigger = sweep_trigger

    async def distribute(self, request: DistributionRequest) -> DistributionResult:
        alert = await self.directory.get_alert(request.alert_id)
        if alert is None:
            raise AlertNotFoundError(f"Alert {request.alert_id} not found")
        if alert.alert_status != "active":
            raise AlertInactiveError(f"Alert {alert.alert_number} is {alert.alert_status}")

        channels = request.channels or alert.distribution_channels
        provinces = request.target_provinces or alert.target_provinces
        # Resolution raises before anything is written, so a bad request creates no units.
        new_units = await self.resolver.resolve(
            alert,
            channels,
            target_provinces=provinces,
            partner_ids=request.partner_ids,
            media_ids=request.media_ids,
        )
        created = await self.store.create_units(
            new_units,
            max_retries=self.settings.dispatch_max_retries,
            now=self._clock(),
        )
        resolved_channels = sorted({unit.channel for unit in created})
        await self.reporter.log_event(
            alert.id,
            EVENT_DISTRIBUTION_STARTED,
            f"Distribution initiated to {len(created)} channels",
            actor_type="user",
            metadata={
                "requested_channels": list(channels),
                "channels": resolved_channels,
                "target_provinces": list(provinces),
                "units": len(created),
            },
        )
        logger.info(
            "distribution_started alert_id=%s units=%s channels=%s",
            alert.id,
            len(created),
            ",".join(resolved_channels),
        )
        if created:
            await self._trigger_sweep(alert.id)
        return DistributionResult(
            success=True,
            alert_id=alert.id,
            distributions_created=len(created),
            summary=await self.summarize(alert.id),
        )

    async def _trigger_sweep(self, alert_id: str) -> None:
        # Immediate sweep is an optimization; the recurring sweep picks up anything missed.
        try:
            if self._sweep_trigger is not None:
                await self._sweep_trigger(alert_id)
            elif self.settings.dispatch_execution_mode == "inline":
                await self.process_due()
            else:
                from amberdist.services.distribution.worker import enqueue_distribution_sweep

                await enqueue_distribution_sweep(alert_id=alert_id)
        except Exception:  # noqa: BLE001 - a failed trigger must not fail an accepted request.
            logger.warning("distribution_sweep_trigger_failed alert_id=%s", alert_id, exc_info=True)

    async def process_due(self, limit: int | None = None) -> int:
        return await self.processor.run_sweep(limit=limit)

    async def summarize(self, alert_id: str) -> DistributionSummary:
        return await self.reporter.summarize(alert_id)

    async def cancel(self, alert_id: str, reason: str) -> int:
        # In-flight (sending) and completed units are untouched; this only prevents future sends.
        cancelled = await self.store.cancel_units(alert_id, reason=reason, now=self._clock())
        await self.reporter.log_event(
            alert_id,
            EVENT_DISTRIBUTIONS_CANCELLED,
            f"{cancelled} distributions cancelled: {reason}",
            actor_type="user",
            metadata={"cancelled": cancelled, "reason": reason},
        )
        logger.info("distributions_cancelled alert_id=%s cancelled=%s", alert_id, cancelled)
        return cancelled

    async def confirm_delivery(
        self,
        unit_id: str,
        *,
        external_id: str | None = None,
        confirmation: dict[str, Any] | None = None,
    ) -> DistributionUnit:
        unit = await self.store.get_unit(unit_id)
        if unit is None:
            raise DistributionNotFoundError(f"Distribution {unit_id} not found")
        if unit.status != STATUS_SENT:
            raise InvalidTransitionError(f"Distribution {unit_id} is {unit.status}, not sent")
        now = self._clock()
        response = dict(unit.external_response or {})
        if confirmation:
            response["delivery_confirmation"] = confirmation
        updated = await self.store.transition(
            unit_id,
            from_statuses={STATUS_SENT},
            to_status=STATUS_DELIVERED,
            now=now,
            changes={
                "delivered_at": now,
                "external_id": external_id or unit.external_id,
                "external_response": response or None,
            },
        )
        if updated is None:
            raise InvalidTransitionError(f"Distribution {unit_id} changed state before confirmation")
        await self.reporter.log_event(
            unit.alert_id,
            EVENT_UNIT_DELIVERED,
            f"Delivery confirmed for {unit.target_name or unit.channel}",
            unit_id,
            channel=unit.channel,
            target_name=unit.target_name,
            old_status=STATUS_SENT,
            new_status=STATUS_DELIVERED,
            actor_type="webhook",
            metadata={"external_id": updated.external_id},
        )
        return updated

    async def list_units(self, alert_id: str) -> list[DistributionUnit]:
        return await self.store.list_units(alert_id)

    async def list_events(self, alert_id: str) -> list[DistributionEvent]:
        return await self.store.list_events(alert_id)
