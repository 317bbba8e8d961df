from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging
from typing import Any

from amberdist.domain.distribution import (
    ALL_CHANNELS,
    ALL_STATUSES,
    DistributionEvent,
    DistributionSummary,
)
from amberdist.services.distribution.interfaces import DistributionStore


logger = logging.getLogger(__name__)

EVENT_DISTRIBUTION_STARTED = "distribution_started"
EVENT_DISTRIBUTIONS_CANCELLED = "distributions_cancelled"
EVENT_UNIT_SENT = "distribution_sent"
EVENT_UNIT_QUEUED = "distribution_queued"
EVENT_UNIT_RETRY_SCHEDULED = "distribution_retry_scheduled"
EVENT_UNIT_FAILED = "distribution_failed"
EVENT_UNIT_DELIVERED = "distribution_delivered"

_SENSITIVE_KEY_PATTERNS = ["secret", "token", "password", "authorization", "signature", "api_key"]
_REDACTED_VALUE = "[REDACTED]"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(pattern in lowered for pattern in _SENSITIVE_KEY_PATTERNS)


def sanitize_metadata(value: Any) -> Any:
    # Recursively scrub secret-looking keys before metadata lands in the audit log.
    if isinstance(value, dict):
        sanitized: dict[str, Any] = {}
        for raw_key, raw_value in value.items():
            key = str(raw_key)
            sanitized[key] = _REDACTED_VALUE if _is_sensitive_key(key) else sanitize_metadata(raw_value)
        return sanitized
    if isinstance(value, list):
        return [sanitize_metadata(item) for item in value]
    return value


class DistributionReporter:
    def __init__(self, store: DistributionStore, *, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or _utc_now

    async def summarize(self, alert_id: str) -> DistributionSummary:
        # Every status and channel appears in the result; absent ones count as zero.
        by_status = {status: 0 for status in ALL_STATUSES}
        by_channel = {channel: 0 for channel in ALL_CHANNELS}
        total = 0
        for status, channel, count in await self._store.count_by_status_and_channel(alert_id):
            by_status[status] = by_status.get(status, 0) + count
            by_channel[channel] = by_channel.get(channel, 0) + count
            total += count
        return DistributionSummary(alert_id=alert_id, total=total, by_status=by_status, by_channel=by_channel)

    async def log_event(
        self,
        alert_id: str,
        event_type: str,
        message: str,
        unit_id: str | None = None,
        *,
        channel: str | None = None,
        target_name: str | None = None,
        old_status: str | None = None,
        new_status: str | None = None,
        actor_type: str = "system",
        metadata: dict[str, Any] | None = None,
    ) -> None:
        # Best-effort: audit failures are logged locally and never reach the dispatch loop.
        event = DistributionEvent(
            alert_id=alert_id,
            event_type=event_type,
            message=message,
            created_at=self._clock(),
            distribution_id=unit_id,
            channel=channel,
            target_name=target_name,
            old_status=old_status,
            new_status=new_status,
            actor_type=actor_type,
            metadata=sanitize_metadata(metadata or {}),
        )
        try:
            await self._store.append_event(event)
        except Exception:  # noqa: BLE001 - audit writes must never break distribution flows.
            logger.warning(
                "distribution_event_write_failed alert_id=%s event_type=%s unit_id=%s",
                alert_id,
                event_type,
                unit_id,
                exc_info=True,
            )
