from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
import os
from threading import Lock
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from amberdist.services.distribution.webhook_contract import (
    HEADER_ALERT_NUMBER,
    HEADER_EVENT,
    HEADER_SIGNATURE,
    HEADER_TIMESTAMP,
    WEBHOOK_EVENT,
    verify_signature,
)


logger = logging.getLogger("amberdist.partner_receiver")


@dataclass(frozen=True)
class ReceiverSettings:
    shared_secret: str | None
    require_signature: bool
    fail_mode: str
    fail_n: int
    port: int


class ReceiverHealth(BaseModel):
    status: str
    require_signature: bool
    fail_mode: str
    fail_n: int


class ReceiverError(BaseModel):
    accepted: bool = False
    reason: str


class ReceiverWebhookResponse(BaseModel):
    accepted: bool
    duplicate: bool = False
    alert_number: str | None = None
    payload_sha256: str | None = None


class ReceiptItem(BaseModel):
    alert_number: str | None
    event: str | None
    timestamp: str | None
    received_at: str
    payload_sha256: str
    signature_present: bool
    signature_valid: bool
    response_status: int
    failure_reason: str | None = None
    duplicate: bool = False


class ReceivedResponse(BaseModel):
    items: list[ReceiptItem]


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(value: str | None, default: int, *, minimum: int = 0) -> int:
    try:
        parsed = int(value or str(default))
    except (TypeError, ValueError):
        parsed = default
    return max(minimum, parsed)


def load_receiver_settings() -> ReceiverSettings:
    fail_mode = (os.getenv("RECEIVER_FAIL_MODE") or "never").strip().lower()
    if fail_mode not in {"never", "always", "first_n"}:
        fail_mode = "never"
    return ReceiverSettings(
        shared_secret=(os.getenv("RECEIVER_SHARED_SECRET") or "").strip() or None,
        require_signature=_parse_bool(os.getenv("RECEIVER_REQUIRE_SIGNATURE"), default=False),
        fail_mode=fail_mode,
        fail_n=_parse_int(os.getenv("RECEIVER_FAIL_N"), default=0, minimum=0),
        port=_parse_int(os.getenv("RECEIVER_PORT"), default=9001, minimum=1),
    )


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _log_event(event: str, **fields: Any) -> None:
    payload = {"event": event, **fields, "ts": _utc_now_iso()}
    logger.info(json.dumps(payload, sort_keys=True))


def _status_for_reason(reason: str) -> int:
    # 401 for signature problems, 500 for receiver misconfiguration, 400 for the rest.
    if reason in {"missing_signature", "signature_mismatch"}:
        return 401
    if reason == "secret_missing":
        return 500
    return 400


class ReceiptLog:
    # In-process receipt ledger; duplicates are keyed by payload digest.
    def __init__(self) -> None:
        self._lock = Lock()
        self._items: list[ReceiptItem] = []
        self._seen: set[str] = set()
        self._forced_failures = 0

    def mark_seen(self, digest: str) -> bool:
        with self._lock:
            if digest in self._seen:
                return False
            self._seen.add(digest)
            return True

    def next_forced_failure(self) -> int:
        with self._lock:
            self._forced_failures += 1
            return self._forced_failures

    def append(self, item: ReceiptItem) -> None:
        with self._lock:
            self._items.append(item)

    def latest(self, limit: int) -> list[ReceiptItem]:
        with self._lock:
            return list(reversed(self._items))[: max(1, min(limit, 500))]


def create_app(settings: ReceiverSettings | None = None) -> FastAPI:
    """Reference partner endpoint for AMBER alert webhooks.

    Partners can run this to check signature handling end to end; ``fail_mode``
    forces 500 responses so the sender's retry path can be exercised.
    """
    resolved = settings or load_receiver_settings()
    receipts = ReceiptLog()
    app = FastAPI(title="AMBER Alert Partner Receiver", version="1.0.0")
    app.state.receipts = receipts

    @app.get("/health", response_model=ReceiverHealth)
    async def health() -> ReceiverHealth:
        return ReceiverHealth(
            status="ok",
            require_signature=resolved.require_signature,
            fail_mode=resolved.fail_mode,
            fail_n=resolved.fail_n,
        )

    @app.get("/received", response_model=ReceivedResponse)
    async def received(limit: int = 50) -> ReceivedResponse:
        return ReceivedResponse(items=receipts.latest(limit))

    @app.post(
        "/webhook",
        response_model=ReceiverWebhookResponse,
        responses={400: {"model": ReceiverError}, 401: {"model": ReceiverError}, 500: {"model": ReceiverError}},
    )
    async def webhook(request: Request) -> JSONResponse:
        # Hash and verify the exact bytes received, never a re-serialized copy.
        raw_body = await request.body()
        signature = request.headers.get(HEADER_SIGNATURE)
        alert_number = request.headers.get(HEADER_ALERT_NUMBER)
        event = request.headers.get(HEADER_EVENT)
        verification = verify_signature(raw_body, signature, resolved.shared_secret)

        def _receipt(status_code: int, *, reason: str | None = None, duplicate: bool = False) -> None:
            receipts.append(
                ReceiptItem(
                    alert_number=alert_number,
                    event=event,
                    timestamp=request.headers.get(HEADER_TIMESTAMP),
                    received_at=_utc_now_iso(),
                    payload_sha256=verification.payload_sha256,
                    signature_present=signature is not None,
                    signature_valid=verification.ok and signature is not None,
                    response_status=status_code,
                    failure_reason=reason,
                    duplicate=duplicate,
                )
            )

        if event != WEBHOOK_EVENT:
            reason = "unexpected_event"
            _receipt(400, reason=reason)
            _log_event("receiver.webhook.rejected", reason=reason, webhook_event=event)
            return JSONResponse(status_code=400, content=ReceiverError(reason=reason).model_dump())

        if not verification.ok or (resolved.require_signature and signature is None):
            reason = verification.reason if not verification.ok else "missing_signature"
            status_code = _status_for_reason(reason)
            _receipt(status_code, reason=reason)
            _log_event("receiver.webhook.rejected", reason=reason, alert_number=alert_number)
            return JSONResponse(status_code=status_code, content=ReceiverError(reason=reason).model_dump())

        if resolved.fail_mode == "always" or (
            resolved.fail_mode == "first_n" and receipts.next_forced_failure() <= resolved.fail_n
        ):
            _receipt(500, reason="forced_failure")
            _log_event("receiver.webhook.forced_failure", alert_number=alert_number)
            return JSONResponse(status_code=500, content=ReceiverError(reason="forced_failure").model_dump())

        duplicate = not receipts.mark_seen(verification.payload_sha256)
        _receipt(200, duplicate=duplicate)
        _log_event("receiver.webhook.accepted", alert_number=alert_number, duplicate=duplicate)
        return JSONResponse(
            status_code=200,
            content=ReceiverWebhookResponse(
                accepted=True,
                duplicate=duplicate,
                alert_number=alert_number,
                payload_sha256=verification.payload_sha256,
            ).model_dump(),
        )

    return app
