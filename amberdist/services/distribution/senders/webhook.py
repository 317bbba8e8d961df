from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging
import time

import httpx

from amberdist.core.errors import DeliveryError, WebhookDeliveryError
from amberdist.domain.distribution import Alert, DistributionUnit, WebhookDeliveryRecord
from amberdist.services.distribution.interfaces import TargetDirectory, WebhookDeliveryLog
from amberdist.services.distribution.senders.base import SendOutcome
from amberdist.services.distribution.webhook_contract import (
    WEBHOOK_EVENT,
    build_webhook_headers,
    build_webhook_payload,
    payload_sha256,
    serialize_payload,
)


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WebhookSender:
    def __init__(
        self,
        *,
        directory: TargetDirectory,
        delivery_log: WebhookDeliveryLog,
        timeout_s: float = 30.0,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._directory = directory
        self._delivery_log = delivery_log
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        # Injected transport lets tests route requests to MockTransport or an ASGI receiver.
        self._transport = transport
        self._clock = clock or _utc_now

    async def send(self, unit: DistributionUnit, alert: Alert) -> SendOutcome:
        # Endpoint and secret are looked up per attempt so rotated secrets apply to retries.
        partner = await self._directory.get_partner(unit.target_id or "")
        payload = build_webhook_payload(alert, timestamp=self._clock())
        raw_body = serialize_payload(payload)
        rejection: str | None = None
        if partner is None or partner.status != "active":
            rejection = f"Partner {unit.target_id} is not active"
        elif not partner.webhook_url:
            rejection = f"Partner {partner.name} has no webhook endpoint configured"
        if rejection is not None:
            # Nothing is sent, but the attempt still lands in the delivery log.
            await self._record(
                unit=unit,
                partner_id=unit.target_id,
                url=(partner.webhook_url if partner is not None else None) or "",
                success=False,
                status_code=None,
                error=rejection,
                raw_body=raw_body,
                duration_ms=0,
            )
            raise DeliveryError(rejection)

        headers = build_webhook_headers(
            payload=payload,
            raw_body=raw_body,
            secret=partner.webhook_secret,
            user_agent=self._user_agent,
        )
        start = time.monotonic()
        status_code: int | None = None
        error: str | None = None
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.post(partner.webhook_url, content=raw_body, headers=headers)
            status_code = int(response.status_code)
            if not 200 <= status_code < 300:
                error = f"Webhook returned {status_code}"
                raise WebhookDeliveryError(error, status_code=status_code)
        except httpx.HTTPError as exc:
            error = f"Webhook transport error: {exc.__class__.__name__}: {exc}"
            raise WebhookDeliveryError(error) from exc
        finally:
            await self._record(
                unit=unit,
                partner_id=partner.id,
                url=partner.webhook_url,
                success=error is None and status_code is not None,
                status_code=status_code,
                error=error or (None if status_code is not None else "Webhook request did not complete"),
                raw_body=raw_body,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        return SendOutcome(
            message=f"Webhook delivered to {partner.name} ({status_code})",
            details={"response_status": status_code},
        )

    async def _record(
        self,
        *,
        unit: DistributionUnit,
        partner_id: str | None,
        url: str,
        success: bool,
        status_code: int | None,
        error: str | None,
        raw_body: bytes,
        duration_ms: int,
    ) -> None:
        record = WebhookDeliveryRecord(
            partner_id=partner_id,
            distribution_id=unit.id,
            url=url,
            event_type=WEBHOOK_EVENT,
            success=success,
            response_status=status_code,
            error=error,
            payload_sha256=payload_sha256(raw_body),
            duration_ms=duration_ms,
            created_at=self._clock(),
        )
        try:
            await self._delivery_log.record(record)
        except Exception:  # noqa: BLE001 - delivery audit is best-effort and must not mask the send outcome.
            logger.warning(
                "webhook_delivery_log_failed unit_id=%s partner_id=%s",
                unit.id,
                partner_id,
                exc_info=True,
            )
