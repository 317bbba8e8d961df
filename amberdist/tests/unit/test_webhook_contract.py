from __future__ import annotations

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

from amberdist.services.distribution.webhook_contract import (
    build_webhook_headers,
    build_webhook_payload,
    compute_signature,
    serialize_payload,
    verify_signature,
)
from amberdist.tests.utils.distribution import FIXED_NOW, make_alert


def test_signature_matches_independent_hmac() -> None:
    secret = "partner-secret"
    raw_body = serialize_payload(build_webhook_payload(make_alert(), timestamp=FIXED_NOW))

    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

    assert compute_signature(raw_body, secret) == f"sha256={expected}"
    assert compute_signature(raw_body, secret) == compute_signature(raw_body, secret)


def test_serialization_is_deterministic_and_compact() -> None:
    payload = build_webhook_payload(make_alert(child_name="Zoë"), timestamp=FIXED_NOW)

    raw_body = serialize_payload(payload)

    assert raw_body == serialize_payload(json.loads(raw_body))
    assert raw_body == json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    assert "Zoë".encode("utf-8") in raw_body
    assert raw_body.startswith(b'{"alert":{')


def test_payload_carries_public_alert_fields() -> None:
    alert = make_alert(issued_at=datetime(2024, 5, 1, 8, 0, tzinfo=timezone(timedelta(hours=-4))))

    payload = build_webhook_payload(alert, timestamp=FIXED_NOW)

    assert payload["event"] == "amber_alert"
    assert payload["timestamp"] == "2024-05-01T12:00:00Z"
    assert payload["alert_number"] == "AMB-2024-0001"
    document = payload["alert"]
    assert set(document) == {
        "id",
        "case_id",
        "alert_number",
        "status",
        "child",
        "abduction",
        "vehicle",
        "suspect",
        "contact",
        "issued_at",
    }
    assert document["issued_at"] == "2024-05-01T12:00:00Z"
    assert document["vehicle"]["license_plate"] == "ABCD 123"
    assert "badge" not in json.dumps(document)


def test_headers_include_signature_only_with_secret() -> None:
    payload = build_webhook_payload(make_alert(), timestamp=FIXED_NOW)
    raw_body = serialize_payload(payload)

    signed = build_webhook_headers(payload=payload, raw_body=raw_body, secret="s")
    unsigned = build_webhook_headers(payload=payload, raw_body=raw_body, secret=None)

    assert signed["X-Webhook-Signature"] == compute_signature(raw_body, "s")
    assert "X-Webhook-Signature" not in unsigned
    assert unsigned == {
        "Content-Type": "application/json",
        "X-Webhook-Event": "amber_alert",
        "X-Webhook-Timestamp": "2024-05-01T12:00:00Z",
        "X-Alert-Number": "AMB-2024-0001",
    }


def test_verify_signature_reason_codes() -> None:
    raw_body = b'{"event":"amber_alert"}'
    good = compute_signature(raw_body, "s")

    assert verify_signature(raw_body, good, "s").reason == "ok"
    assert verify_signature(raw_body, good.upper().replace("SHA256", "sha256"), "s").ok is True
    assert verify_signature(raw_body, None, None).reason == "unsigned_allowed"
    assert verify_signature(raw_body, good, None).reason == "secret_missing"
    assert verify_signature(raw_body, None, "s").reason == "missing_signature"
    assert verify_signature(raw_body, "md5=abc", "s").reason == "invalid_signature_format"
    assert verify_signature(raw_body, compute_signature(raw_body, "other"), "s").reason == "signature_mismatch"
    assert verify_signature(raw_body + b" ", good, "s").ok is False
