from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import hmac
import json
from typing import Any, Mapping

from amberdist.domain.distribution import Alert


WEBHOOK_EVENT = "amber_alert"
HEADER_EVENT = "X-Webhook-Event"
HEADER_TIMESTAMP = "X-Webhook-Timestamp"
HEADER_ALERT_NUMBER = "X-Alert-Number"
HEADER_SIGNATURE = "X-Webhook-Signature"


@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    reason: str
    payload_sha256: str


def _isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_alert_document(alert: Alert) -> dict[str, Any]:
    # Public alert fields only; officer badge numbers and internal ids stay out of partner payloads.
    return {
        "id": alert.id,
        "case_id": alert.case_id,
        "alert_number": alert.alert_number,
        "status": alert.alert_status,
        "child": {
            "name": alert.child_name,
            "age": alert.child_age,
            "gender": alert.child_gender,
            "description": alert.child_description,
            "photo_url": alert.child_photo_url,
        },
        "abduction": {
            "date": alert.abduction_date,
            "time": alert.abduction_time,
            "location": alert.abduction_location,
            "city": alert.abduction_city,
            "province": alert.abduction_province,
            "circumstances": alert.abduction_circumstances,
        },
        "vehicle": {
            "involved": alert.vehicle_involved,
            "make": alert.vehicle_make,
            "model": alert.vehicle_model,
            "year": alert.vehicle_year,
            "color": alert.vehicle_color,
            "license_plate": alert.vehicle_license_plate,
            "license_province": alert.vehicle_license_province,
        },
        "suspect": {
            "name": alert.suspect_name,
            "description": alert.suspect_description,
            "photo_url": alert.suspect_photo_url,
            "relationship": alert.suspect_relationship,
        },
        "contact": {
            "officer_name": alert.requesting_officer_name,
            "phone": alert.requesting_officer_phone,
            "agency": alert.requesting_officer_agency,
        },
        "issued_at": _isoformat(alert.issued_at),
    }


def build_webhook_payload(alert: Alert, *, timestamp: datetime) -> dict[str, Any]:
    return {
        "event": WEBHOOK_EVENT,
        "timestamp": _isoformat(timestamp),
        "alert_number": alert.alert_number,
        "alert": build_alert_document(alert),
    }


def serialize_payload(payload: Mapping[str, Any]) -> bytes:
    # Deterministic bytes so the signature covers exactly what is sent and retries sign identically.
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_hmac_sha256_hex(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def compute_signature(raw_body: bytes, secret: str) -> str:
    return f"sha256={compute_hmac_sha256_hex(secret, raw_body)}"


def payload_sha256(raw_body: bytes) -> str:
    return hashlib.sha256(raw_body).hexdigest()


def build_webhook_headers(
    *,
    payload: Mapping[str, Any],
    raw_body: bytes,
    secret: str | None,
    user_agent: str | None = None,
) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        HEADER_EVENT: str(payload["event"]),
        HEADER_TIMESTAMP: str(payload["timestamp"]),
        HEADER_ALERT_NUMBER: str(payload["alert_number"]),
    }
    if user_agent:
        headers["User-Agent"] = user_agent
    if secret:
        headers[HEADER_SIGNATURE] = compute_signature(raw_body, secret)
    return headers


def verify_signature(raw_body: bytes, signature_header: str | None, secret: str | None) -> VerificationResult:
    # Receiver-side check with stable reason codes; compare_digest keeps the check constant-time.
    digest = payload_sha256(raw_body)
    if not secret:
        if signature_header:
            return VerificationResult(ok=False, reason="secret_missing", payload_sha256=digest)
        return VerificationResult(ok=True, reason="unsigned_allowed", payload_sha256=digest)
    if not signature_header:
        return VerificationResult(ok=False, reason="missing_signature", payload_sha256=digest)
    algorithm, separator, provided = signature_header.strip().partition("=")
    provided = provided.strip().lower()
    if separator != "=" or algorithm.strip().lower() != "sha256" or len(provided) != 64:
        return VerificationResult(ok=False, reason="invalid_signature_format", payload_sha256=digest)
    expected = compute_hmac_sha256_hex(secret, raw_body)
    if not hmac.compare_digest(expected, provided):
        return VerificationResult(ok=False, reason="signature_mismatch", payload_sha256=digest)
    return VerificationResult(ok=True, reason="ok", payload_sha256=digest)
