from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from amberdist.core.config import get_settings
from amberdist.core.errors import DeliveryError, ProviderConfigError, TransportUnavailableError
from amberdist.providers.messaging.base import BulkSendResult
from amberdist.domain.distribution import FormattedMessage


logger = logging.getLogger(__name__)

# Relay APIs accept at most this many recipients per request.
BATCH_SIZE = 100
MAX_REPORTED_ERRORS = 10


class HttpRelayGateway:
    # Posts messages to an HTTP messaging relay that fronts the SMTP/carrier/push vendors.
    def __init__(self, channel: str, client: httpx.AsyncClient | None = None) -> None:
        self.channel = channel
        self._settings = get_settings()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        # Reuse a single client per gateway for connection pooling.
        self._client = httpx.AsyncClient(timeout=self._settings.send_timeout_s)
        return self._client

    def _endpoint(self, suffix: str) -> str:
        base = self._settings.messaging_relay_url
        if not base:
            raise ProviderConfigError("MESSAGING_RELAY_URL is required for the http messaging provider")
        return f"{base.rstrip('/')}/{self.channel}/{suffix}"

    def _headers(self) -> dict[str, str]:
        token = self._settings.messaging_relay_token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._get_client().post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise TransportUnavailableError(f"{self.channel} relay unreachable: {exc}") from exc
        if response.status_code >= 500:
            raise TransportUnavailableError(f"{self.channel} relay error: {response.status_code}")
        if response.status_code >= 400:
            raise DeliveryError(f"{self.channel} relay rejected request: {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            # The relay accepted the request but its reply is unreadable; count the batch as failed.
            raise DeliveryError(f"{self.channel} relay returned a non-JSON reply: {response.status_code}") from exc
        return body if isinstance(body, dict) else {}

    async def send_bulk(self, recipients: Sequence[str], message: FormattedMessage) -> BulkSendResult:
        url = self._endpoint("bulk")
        sent = 0
        failed = 0
        errors: list[str] = []
        for start in range(0, len(recipients), BATCH_SIZE):
            batch = list(recipients[start : start + BATCH_SIZE])
            try:
                body = await self._post(
                    url,
                    {"recipients": batch, "subject": message.subject, "body": message.body, "tag": message.tag},
                )
            except TransportUnavailableError:
                # Only the first batch decides whether the transport is reachable at all.
                if start == 0:
                    raise
                failed += len(batch)
                errors.append(f"batch {start // BATCH_SIZE}: relay unavailable")
                continue
            except DeliveryError as exc:
                failed += len(batch)
                errors.append(str(exc))
                continue
            sent += int(body.get("sent", len(batch)))
            failed += int(body.get("failed", 0))
            errors.extend(str(item) for item in body.get("errors", []) or [])
        return BulkSendResult(sent=sent, failed=failed, errors=errors[:MAX_REPORTED_ERRORS])

    async def send_one(self, recipient: str, message: FormattedMessage) -> str:
        body = await self._post(
            self._endpoint("send"),
            {"recipient": recipient, "subject": message.subject, "body": message.body},
        )
        return str(body.get("id") or "")
