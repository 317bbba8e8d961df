from __future__ import annotations

import pytest

from amberdist.core.config import Settings
from amberdist.core.errors import (
    AlertInactiveError,
    AlertNotFoundError,
    DistributionNotFoundError,
    InvalidTransitionError,
    UnknownChannelError,
)
from amberdist.domain.distribution import (
    ALL_CHANNELS,
    ALL_STATUSES,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENDING,
    STATUS_SENT,
    DistributionRequest,
    NewDistributionUnit,
    PartnerOrganization,
    Subscriber,
)
from amberdist.services.distribution.reporter import DistributionReporter, sanitize_metadata
from amberdist.services.distribution.memory import InMemoryDistributionStore
from amberdist.tests.utils.distribution import FIXED_NOW, build_memory_harness, make_alert


@pytest.mark.asyncio
async def test_distribute_webhook_and_email_scenario(api_partners) -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert], partners=api_partners)

    result = await harness.engine.distribute(
        DistributionRequest(alert_id=alert.id, channels=("webhook", "email"))
    )

    assert result.success is True
    assert result.distributions_created == 3
    assert result.summary.total == 3
    assert result.summary.by_channel["webhook"] == 2
    assert result.summary.by_channel["email"] == 1
    assert result.summary.by_status[STATUS_PENDING] == 3
    assert harness.triggered == [alert.id]


@pytest.mark.asyncio
async def test_distribute_defaults_to_alert_channels_and_provinces() -> None:
    alert = make_alert(distribution_channels=("sms", "push"), target_provinces=("MB",))
    harness = build_memory_harness(alerts=[alert])

    result = await harness.engine.distribute(DistributionRequest(alert_id=alert.id))

    units = await harness.store.list_units(alert.id)
    assert result.distributions_created == 2
    assert {unit.channel for unit in units} == {"sms", "push"}
    assert all(unit.channel_config == {"provinces": ["MB"]} for unit in units)


@pytest.mark.asyncio
async def test_distribute_rejects_missing_and_inactive_alerts() -> None:
    resolved = make_alert(id="alert-resolved", alert_number="AMB-2024-0002", alert_status="resolved")
    harness = build_memory_harness(alerts=[resolved])

    with pytest.raises(AlertNotFoundError):
        await harness.engine.distribute(DistributionRequest(alert_id="nope", channels=("email",)))
    with pytest.raises(AlertInactiveError):
        await harness.engine.distribute(DistributionRequest(alert_id=resolved.id, channels=("email",)))

    assert await harness.store.list_units(resolved.id) == []
    assert harness.triggered == []


@pytest.mark.asyncio
async def test_unknown_channel_creates_nothing() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])

    with pytest.raises(UnknownChannelError):
        await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("email", "fax")))

    assert await harness.store.list_units(alert.id) == []


@pytest.mark.asyncio
async def test_zero_target_channel_still_succeeds_for_others() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])

    result = await harness.engine.distribute(
        DistributionRequest(alert_id=alert.id, channels=("partner", "media_outlet", "email"))
    )

    assert result.success is True
    assert result.distributions_created == 1
    assert result.summary.by_channel["partner"] == 0


@pytest.mark.asyncio
async def test_distribution_with_no_units_skips_the_sweep_trigger() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])

    result = await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("partner",)))

    assert result.distributions_created == 0
    assert harness.triggered == []


@pytest.mark.asyncio
async def test_inline_mode_sweeps_immediately() -> None:
    alert = make_alert()
    harness = build_memory_harness(
        alerts=[alert],
        subscribers=[Subscriber(id="s-1", channel="email", address="a@example.org", province="ON")],
        inline=True,
    )

    result = await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("email",)))

    assert result.summary.by_status[STATUS_SENT] == 1
    assert [recipient for recipient, _message in harness.email.sent] == ["a@example.org"]


@pytest.mark.asyncio
async def test_failing_sweep_trigger_does_not_fail_the_request() -> None:
    async def broken_trigger(alert_id: str) -> None:
        raise ConnectionError("redis down")

    alert = make_alert()
    harness = build_memory_harness(alerts=[alert], sweep_trigger=broken_trigger)

    result = await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("email",)))

    assert result.distributions_created == 1


@pytest.mark.asyncio
async def test_distribution_started_event_is_logged(api_partners) -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert], partners=api_partners)

    await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("webhook", "email")))

    [event] = await harness.engine.list_events(alert.id)
    assert event.event_type == "distribution_started"
    assert event.message == "Distribution initiated to 3 channels"
    assert event.actor_type == "user"
    assert event.metadata["channels"] == ["email", "webhook"]


async def _seed_cancel_scenario(harness, alert_id: str) -> dict[str, str]:
    # Two pending units and one already sent.
    created = await harness.store.create_units(
        [
            NewDistributionUnit(alert_id=alert_id, channel="email"),
            NewDistributionUnit(alert_id=alert_id, channel="sms"),
            NewDistributionUnit(alert_id=alert_id, channel="push"),
        ],
        max_retries=3,
        now=FIXED_NOW,
    )
    ids = {unit.channel: unit.id for unit in created}
    await harness.store.claim(ids["push"], now=FIXED_NOW)
    await harness.store.transition(
        ids["push"], from_statuses={STATUS_SENDING}, to_status=STATUS_SENT, now=FIXED_NOW
    )
    return ids


@pytest.mark.asyncio
async def test_cancel_superseded_leaves_sent_unit_alone() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])
    ids = await _seed_cancel_scenario(harness, alert.id)

    cancelled = await harness.engine.cancel(alert.id, "superseded")

    assert cancelled == 2
    units = {unit.channel: unit for unit in await harness.store.list_units(alert.id)}
    assert units["email"].status == STATUS_CANCELLED
    assert units["email"].status_message == "superseded"
    assert units["sms"].status == STATUS_CANCELLED
    assert units["push"].status == STATUS_SENT
    assert units["push"].id == ids["push"]
    events = await harness.engine.list_events(alert.id)
    assert events[-1].event_type == "distributions_cancelled"
    assert events[-1].message == "2 distributions cancelled: superseded"


@pytest.mark.asyncio
async def test_cancel_is_noop_for_sending_and_terminal_units() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])
    created = await harness.store.create_units(
        [NewDistributionUnit(alert_id=alert.id, channel=channel) for channel in ("email", "sms", "push", "webhook")],
        max_retries=1,
        now=FIXED_NOW,
    )
    email, sms, push, webhook = (unit.id for unit in created)
    for unit_id in (email, sms, push, webhook):
        await harness.store.claim(unit_id, now=FIXED_NOW)
    await harness.store.transition(sms, from_statuses={STATUS_SENDING}, to_status=STATUS_SENT, now=FIXED_NOW)
    await harness.store.transition(push, from_statuses={STATUS_SENDING}, to_status=STATUS_SENT, now=FIXED_NOW)
    await harness.store.transition(
        push, from_statuses={STATUS_SENT}, to_status=STATUS_DELIVERED, now=FIXED_NOW
    )
    await harness.store.transition(
        webhook,
        from_statuses={STATUS_SENDING},
        to_status=STATUS_FAILED,
        now=FIXED_NOW,
        changes={"retry_count": 1, "next_retry_at": None},
    )

    assert await harness.engine.cancel(alert.id, "resolved") == 0

    statuses = {unit.id: unit.status for unit in await harness.store.list_units(alert.id)}
    assert statuses == {email: STATUS_SENDING, sms: STATUS_SENT, push: STATUS_DELIVERED, webhook: STATUS_FAILED}


@pytest.mark.asyncio
async def test_cancel_includes_queued_regulated_units() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])
    await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("eas", "highway_signs")))
    await harness.engine.process_due()

    assert await harness.engine.cancel(alert.id, "child found") == 2
    assert await harness.engine.process_due() == 0


@pytest.mark.asyncio
async def test_confirm_delivery_moves_sent_to_delivered() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert], partners=[PartnerOrganization(id="p-1", name="Transit")])
    await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("partner",)))
    await harness.engine.process_due()
    [unit] = await harness.store.list_units(alert.id)

    delivered = await harness.engine.confirm_delivery(
        unit.id, external_id="receipt-9", confirmation={"read": True}
    )

    assert delivered.status == STATUS_DELIVERED
    assert delivered.delivered_at == harness.clock.now
    assert delivered.external_id == "receipt-9"
    assert delivered.external_response == {"delivery_confirmation": {"read": True}}
    events = await harness.engine.list_events(alert.id)
    assert events[-1].event_type == "distribution_delivered"
    assert events[-1].actor_type == "webhook"


@pytest.mark.asyncio
async def test_confirm_delivery_rejects_unknown_and_unsent_units() -> None:
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert])
    await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("email",)))
    [unit] = await harness.store.list_units(alert.id)

    with pytest.raises(DistributionNotFoundError):
        await harness.engine.confirm_delivery("missing")
    with pytest.raises(InvalidTransitionError):
        await harness.engine.confirm_delivery(unit.id)


@pytest.mark.asyncio
async def test_store_rejects_transitions_outside_the_state_machine() -> None:
    store = InMemoryDistributionStore()
    [unit] = await store.create_units(
        [NewDistributionUnit(alert_id="a", channel="email")], max_retries=3, now=FIXED_NOW
    )

    with pytest.raises(InvalidTransitionError):
        await store.transition(unit.id, from_statuses={STATUS_PENDING}, to_status=STATUS_SENT, now=FIXED_NOW)
    with pytest.raises(InvalidTransitionError):
        await store.transition(
            unit.id, from_statuses={STATUS_CANCELLED}, to_status=STATUS_PENDING, now=FIXED_NOW
        )


@pytest.mark.asyncio
async def test_summary_zero_fills_statuses_and_channels() -> None:
    reporter = DistributionReporter(InMemoryDistributionStore())

    summary = await reporter.summarize("no-units")

    assert summary.total == 0
    assert set(summary.by_status) == set(ALL_STATUSES)
    assert set(summary.by_channel) == set(ALL_CHANNELS)
    assert all(count == 0 for count in summary.by_status.values())


def test_sanitize_metadata_redacts_secret_keys() -> None:
    cleaned = sanitize_metadata(
        {"webhook_secret": "abc", "nested": [{"Authorization": "Bearer x", "status": 500}], "retry_count": 2}
    )

    assert cleaned == {
        "webhook_secret": "[REDACTED]",
        "nested": [{"Authorization": "[REDACTED]", "status": 500}],
        "retry_count": 2,
    }


@pytest.mark.asyncio
async def test_queue_mode_falls_back_to_enqueue(monkeypatch) -> None:
    calls: list[str | None] = []

    async def fake_enqueue(*, alert_id: str | None = None) -> bool:
        calls.append(alert_id)
        return True

    monkeypatch.setattr(
        "amberdist.services.distribution.worker.enqueue_distribution_sweep",
        fake_enqueue,
    )
    alert = make_alert()
    harness = build_memory_harness(alerts=[alert], settings=Settings(dispatch_execution_mode="queue"), inline=True)

    await harness.engine.distribute(DistributionRequest(alert_id=alert.id, channels=("email",)))

    assert calls == [alert.id]
