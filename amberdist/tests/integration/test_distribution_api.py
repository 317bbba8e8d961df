from __future__ import annotations

import httpx
import pytest

from amberdist.apps.api.deps import get_distribution_engine
from amberdist.apps.api.main import create_app
from amberdist.domain.distribution import Subscriber
from amberdist.tests.utils.distribution import MemoryHarness, build_memory_harness, make_alert


def _client(harness: MemoryHarness) -> httpx.AsyncClient:
    # Route the API at an in-memory engine; no database or Redis needed.
    app = create_app()
    app.dependency_overrides[get_distribution_engine] = lambda: harness.engine
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def harness(api_partners) -> MemoryHarness:
    return build_memory_harness(
        alerts=[make_alert(), make_alert(id="alert-closed", alert_status="resolved")],
        partners=api_partners,
        subscribers=[Subscriber(id="sub-1", channel="email", address="parent@example.org", province="ON")],
    )


@pytest.mark.asyncio
async def test_distribute_returns_created_envelope(harness) -> None:
    async with _client(harness) as client:
        response = await client.post(
            "/v1/alerts/alert-1/distributions",
            json={"channels": ["webhook", "email"], "target_provinces": ["ON"]},
            headers={"X-Request-Id": "req-123"},
        )

    assert response.status_code == 201
    body = response.json()
    assert body["meta"] == {"request_id": "req-123", "api_version": "v1"}
    assert response.headers["X-Request-Id"] == "req-123"
    assert body["data"]["success"] is True
    assert body["data"]["distributions_created"] == 3
    assert body["data"]["summary"]["by_status"]["pending"] == 3
    assert body["data"]["summary"]["by_channel"]["webhook"] == 2
    assert harness.triggered == ["alert-1"]


@pytest.mark.asyncio
async def test_distribute_maps_domain_errors(harness) -> None:
    async with _client(harness) as client:
        missing = await client.post("/v1/alerts/nope/distributions", json={})
        inactive = await client.post("/v1/alerts/alert-closed/distributions", json={})
        unknown = await client.post("/v1/alerts/alert-1/distributions", json={"channels": ["fax"]})

    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "ALERT_NOT_FOUND"
    assert inactive.status_code == 409
    assert inactive.json()["error"]["code"] == "ALERT_INACTIVE"
    assert unknown.status_code == 422
    assert unknown.json()["error"]["code"] == "UNKNOWN_CHANNEL"
    assert await harness.store.list_units("alert-1") == []


@pytest.mark.asyncio
async def test_process_then_confirm_delivery(harness) -> None:
    async with _client(harness) as client:
        await client.post("/v1/alerts/alert-1/distributions", json={"channels": ["webhook", "email"]})
        processed = await client.post("/v1/distributions/process")
        summary = await client.get("/v1/alerts/alert-1/distributions/summary")
        listing = await client.get("/v1/alerts/alert-1/distributions")
        unit_id = next(unit["id"] for unit in listing.json()["data"] if unit["channel"] == "webhook")
        delivered = await client.post(
            f"/v1/distributions/{unit_id}/delivered",
            json={"external_id": "partner-ack-1", "confirmation": {"read": True}},
        )
        again = await client.post(f"/v1/distributions/{unit_id}/delivered", json={})
        unknown = await client.post("/v1/distributions/does-not-exist/delivered", json={})
        events = await client.get("/v1/alerts/alert-1/distributions/events")

    assert processed.json()["data"] == {"processed": 3}
    assert summary.json()["data"]["by_status"]["sent"] == 3
    assert summary.json()["data"]["total"] == 3
    assert delivered.status_code == 200
    assert delivered.json()["data"]["status"] == "delivered"
    assert delivered.json()["data"]["external_id"] == "partner-ack-1"
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_TRANSITION"
    assert unknown.status_code == 404
    assert unknown.json()["error"]["code"] == "DISTRIBUTION_NOT_FOUND"
    event_types = [event["event_type"] for event in events.json()["data"]]
    assert event_types[0] == "distribution_started"
    assert event_types[-1] == "distribution_delivered"


@pytest.mark.asyncio
async def test_process_accepts_limit(harness) -> None:
    async with _client(harness) as client:
        await client.post("/v1/alerts/alert-1/distributions", json={"channels": ["webhook", "email"]})
        first = await client.post("/v1/distributions/process", json={"limit": 1})
        invalid = await client.post("/v1/distributions/process", json={"limit": -1})

    assert first.json()["data"] == {"processed": 1}
    assert invalid.status_code == 422
    assert invalid.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_cancel_counts_pending_units_and_validates_reason(harness) -> None:
    async with _client(harness) as client:
        await client.post("/v1/alerts/alert-1/distributions", json={"channels": ["webhook", "email"]})
        cancelled = await client.post("/v1/alerts/alert-1/distributions/cancel", json={"reason": "Child found"})
        empty = await client.post("/v1/alerts/alert-1/distributions/cancel", json={"reason": ""})
        summary = await client.get("/v1/alerts/alert-1/distributions/summary")

    assert cancelled.json()["data"] == {"alert_id": "alert-1", "cancelled": 3}
    assert empty.status_code == 422
    assert summary.json()["data"]["by_status"]["cancelled"] == 3


@pytest.mark.asyncio
async def test_health_is_bare_unversioned_and_enveloped_under_v1(harness) -> None:
    async with _client(harness) as client:
        bare = await client.get("/health")
        versioned = await client.get("/v1/health")

    assert bare.json() == {"status": "ok"}
    assert versioned.json()["data"] == {"status": "ok"}
    assert versioned.json()["meta"]["api_version"] == "v1"
