from __future__ import annotations

import httpx
import pytest

from amberdist.apps.partner_receiver.app import ReceiverSettings, create_app as create_receiver_app
from amberdist.domain.distribution import DistributionRequest, PartnerOrganization
from amberdist.tests.utils.distribution import MemoryHarness, build_memory_harness, make_alert


def _receiver_settings(
    *,
    shared_secret: str | None = "shared-secret",
    require_signature: bool = True,
    fail_mode: str = "never",
    fail_n: int = 0,
) -> ReceiverSettings:
    return ReceiverSettings(
        shared_secret=shared_secret,
        require_signature=require_signature,
        fail_mode=fail_mode,
        fail_n=fail_n,
        port=9001,
    )


def _partner(secret: str | None) -> PartnerOrganization:
    return PartnerOrganization(
        id="p-receiver",
        name="Receiver Partner",
        province="ON",
        can_access_api=True,
        webhook_url="http://receiver/webhook",
        webhook_secret=secret,
    )


async def _send_one_webhook(receiver, partner_secret: str | None) -> MemoryHarness:
    # Real WebhookSender, real receiver app, joined in-process through ASGITransport.
    harness = build_memory_harness(
        alerts=[make_alert()],
        partners=[_partner(partner_secret)],
        webhook_transport=httpx.ASGITransport(app=receiver),
    )
    await harness.engine.distribute(DistributionRequest(alert_id="alert-1", channels=("webhook",)))
    await harness.engine.process_due()
    return harness


@pytest.mark.asyncio
async def test_signed_webhook_is_accepted_by_receiver() -> None:
    receiver = create_receiver_app(_receiver_settings())

    harness = await _send_one_webhook(receiver, "shared-secret")

    [unit] = await harness.store.list_units("alert-1")
    assert unit.status == "sent"
    [receipt] = receiver.state.receipts.latest(10)
    assert receipt.response_status == 200
    assert receipt.signature_valid is True
    assert receipt.alert_number == "AMB-2024-0001"
    [record] = harness.webhook_log.records
    assert record.success is True
    assert record.response_status == 200
    assert record.payload_sha256 == receipt.payload_sha256


@pytest.mark.asyncio
async def test_wrong_secret_is_rejected_and_unit_scheduled_for_retry() -> None:
    receiver = create_receiver_app(_receiver_settings())

    harness = await _send_one_webhook(receiver, "rotated-elsewhere")

    [unit] = await harness.store.list_units("alert-1")
    assert unit.status == "failed"
    assert unit.status_message == "Webhook returned 401"
    assert unit.retry_count == 1
    assert unit.next_retry_at is not None
    [receipt] = receiver.state.receipts.latest(10)
    assert receipt.failure_reason == "signature_mismatch"
    assert harness.webhook_log.records[0].response_status == 401


@pytest.mark.asyncio
async def test_unsigned_delivery_rejected_when_signature_required() -> None:
    receiver = create_receiver_app(_receiver_settings())

    harness = await _send_one_webhook(receiver, None)

    [unit] = await harness.store.list_units("alert-1")
    assert unit.status_message == "Webhook returned 401"
    assert receiver.state.receipts.latest(10)[0].failure_reason == "missing_signature"


@pytest.mark.asyncio
async def test_receiver_forced_failure_surfaces_as_500() -> None:
    receiver = create_receiver_app(_receiver_settings(fail_mode="always"))

    harness = await _send_one_webhook(receiver, "shared-secret")

    [unit] = await harness.store.list_units("alert-1")
    assert unit.status == "failed"
    assert unit.status_message == "Webhook returned 500"
    assert receiver.state.receipts.latest(10)[0].failure_reason == "forced_failure"


@pytest.mark.asyncio
async def test_receiver_rejects_bad_requests_and_flags_duplicates() -> None:
    receiver = create_receiver_app(_receiver_settings())
    body = b'{"event":"amber_alert"}'
    headers = {"X-Webhook-Event": "amber_alert"}

    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=receiver), base_url="http://receiver") as client:
        unsigned = await client.post("/webhook", content=body, headers=headers)
        wrong_event = await client.post("/webhook", content=body, headers={"X-Webhook-Event": "other"})

    assert unsigned.status_code == 401
    assert wrong_event.status_code == 400
    assert wrong_event.json() == {"accepted": False, "reason": "unexpected_event"}

    open_receiver = create_receiver_app(_receiver_settings(shared_secret=None, require_signature=False))
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=open_receiver), base_url="http://receiver") as client:
        first = await client.post("/webhook", content=body, headers=headers)
        second = await client.post("/webhook", content=body, headers=headers)
        health = await client.get("/health")

    assert first.json()["duplicate"] is False
    assert second.json()["duplicate"] is True
    assert health.json()["fail_mode"] == "never"
