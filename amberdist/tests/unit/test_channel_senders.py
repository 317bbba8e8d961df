from __future__ import annotations

import hashlib
import hmac
import json
import logging

import httpx
import pytest

from amberdist.core.errors import DeliveryError, SenderConfigError, TransportUnavailableError, WebhookDeliveryError
from amberdist.domain.distribution import MediaContact, PartnerOrganization, Subscriber
from amberdist.providers.messaging.fake import FakeMessagingGateway
from amberdist.providers.social.fake import FakeSocialPostingClient
from amberdist.services.distribution.formatting import SMS_MAX_LENGTH, format_sms_message
from amberdist.services.distribution.memory import (
    InMemoryPartnerNotifier,
    InMemorySubscriberDirectory,
    InMemoryTargetDirectory,
    InMemoryWebhookDeliveryLog,
)
from amberdist.services.distribution.senders import (
    BulkMessagingSender,
    MediaOutletSender,
    PartnerAlertSender,
    RegulatedBroadcastSender,
    SenderRegistry,
    SocialMediaSender,
    WebhookSender,
)
from amberdist.tests.utils.distribution import FakeClock, RecordingSender, make_alert, make_unit


BASE_URL = "https://alerts.example.org/amber"


def _subscribers() -> InMemorySubscriberDirectory:
    return InMemorySubscriberDirectory(
        [
            Subscriber(id="s-1", channel="email", address="a@example.org", province="ON"),
            Subscriber(id="s-2", channel="email", address="b@example.org", province="ON"),
            Subscriber(id="s-3", channel="email", address="c@example.org", province="QC"),
            Subscriber(id="s-4", channel="email", address="d@example.org", province="ON", amber_alerts_enabled=False),
            Subscriber(id="s-5", channel="sms", address="+15550100", province="ON"),
        ]
    )


@pytest.mark.asyncio
async def test_bulk_sender_targets_matching_provinces_only() -> None:
    gateway = FakeMessagingGateway("email")
    sender = BulkMessagingSender("email", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    outcome = await sender.send(make_unit("email", channel_config={"provinces": ["ON"]}), make_alert())

    assert sorted(recipient for recipient, _message in gateway.sent) == ["a@example.org", "b@example.org"]
    assert outcome.details["sent"] == 2
    assert outcome.message == "Sent to 2 recipients, 0 failed"


@pytest.mark.asyncio
async def test_bulk_sender_without_provinces_reaches_everyone_opted_in() -> None:
    gateway = FakeMessagingGateway("email")
    sender = BulkMessagingSender("email", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    await sender.send(make_unit("email"), make_alert())

    assert len(gateway.sent) == 3


@pytest.mark.asyncio
async def test_bulk_sender_with_no_recipients_succeeds() -> None:
    gateway = FakeMessagingGateway("push")
    sender = BulkMessagingSender("push", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    outcome = await sender.send(make_unit("push"), make_alert())

    assert outcome.message == "No matching subscribers"
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_bulk_sender_partial_failure_logs_and_succeeds(caplog) -> None:
    gateway = FakeMessagingGateway("email", failing_recipients=["b@example.org"])
    sender = BulkMessagingSender("email", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    with caplog.at_level(logging.WARNING):
        outcome = await sender.send(make_unit("email", channel_config={"provinces": ["ON"]}), make_alert())

    assert outcome.details["sent"] == 1
    assert outcome.details["failed"] == 1
    assert any("bulk_send_partial_failure" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_bulk_sender_raises_when_every_recipient_fails() -> None:
    gateway = FakeMessagingGateway("email", failing_recipients=["a@example.org", "b@example.org"])
    sender = BulkMessagingSender("email", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    with pytest.raises(DeliveryError, match="failed for all 2 recipients"):
        await sender.send(make_unit("email", channel_config={"provinces": ["ON"]}), make_alert())


@pytest.mark.asyncio
async def test_bulk_sender_propagates_unavailable_transport() -> None:
    gateway = FakeMessagingGateway("sms", available=False)
    sender = BulkMessagingSender("sms", gateway=gateway, subscribers=_subscribers(), public_base_url=BASE_URL)

    with pytest.raises(TransportUnavailableError):
        await sender.send(make_unit("sms"), make_alert())


def test_sms_message_fits_length_limit_and_keeps_link() -> None:
    alert = make_alert(child_name="A" * 400)
    link = f"{BASE_URL}/AMB-2024-0001"

    message = format_sms_message(alert, link=link)

    assert len(message.body) == SMS_MAX_LENGTH
    assert message.body.endswith(f"... Details: {link}")


def test_short_sms_message_is_not_trimmed() -> None:
    link = f"{BASE_URL}/AMB-2024-0001"

    message = format_sms_message(make_alert(), link=link)

    assert "..." not in message.body
    assert message.body.startswith("AMBER ALERT: Jamie Doe missing from Toronto, ON.")
    assert message.body.endswith(f" Details: {link}")


@pytest.mark.asyncio
async def test_partner_sender_writes_directed_notification() -> None:
    directory = InMemoryTargetDirectory(partners=[PartnerOrganization(id="p-1", name="Transit")])
    notifier = InMemoryPartnerNotifier()
    sender = PartnerAlertSender(directory=directory, notifier=notifier)

    outcome = await sender.send(make_unit("partner", target_id="p-1"), make_alert())

    [notification] = notifier.notifications
    assert notification.partner_id == "p-1"
    assert notification.title == "AMBER Alert: Jamie Doe"
    assert notification.priority == "critical"
    assert outcome.external_id == "partner_alert_1"


@pytest.mark.asyncio
async def test_partner_sender_rejects_missing_or_inactive_partner() -> None:
    directory = InMemoryTargetDirectory(
        partners=[PartnerOrganization(id="p-off", name="Closed", status="inactive")]
    )
    sender = PartnerAlertSender(directory=directory, notifier=InMemoryPartnerNotifier())

    with pytest.raises(DeliveryError, match="no longer exists"):
        await sender.send(make_unit("partner", target_id="p-missing"), make_alert())
    with pytest.raises(DeliveryError, match="not active"):
        await sender.send(make_unit("partner", target_id="p-off"), make_alert())


@pytest.mark.asyncio
async def test_media_sender_sends_press_release_to_contact() -> None:
    transport = FakeMessagingGateway("email")
    sender = MediaOutletSender(transport=transport, public_base_url=BASE_URL)
    contact = MediaContact(id="m-1", organization_name="City News", contact_email="desk@city.example")

    outcome = await sender.send(
        make_unit("media_outlet", target_id=contact.id, target_contact=contact.contact_email),
        make_alert(),
    )

    [(recipient, message)] = transport.sent
    assert recipient == "desk@city.example"
    assert message.body.startswith("FOR IMMEDIATE RELEASE")
    assert f"{BASE_URL}/AMB-2024-0001" in message.body
    assert outcome.external_id == "fake-email-1"


@pytest.mark.asyncio
async def test_media_sender_requires_contact_address() -> None:
    sender = MediaOutletSender(transport=FakeMessagingGateway("email"), public_base_url=BASE_URL)

    with pytest.raises(DeliveryError):
        await sender.send(make_unit("media_outlet", target_id="m-1"), make_alert())


@pytest.mark.asyncio
async def test_social_sender_posts_with_hashtags_and_link() -> None:
    client = FakeSocialPostingClient()
    sender = SocialMediaSender(client=client, public_base_url=BASE_URL)

    outcome = await sender.send(
        make_unit("social_media", target_id="acct-1", channel_config={"platform": "twitter"}),
        make_alert(abduction_province="British Columbia"),
    )

    [post] = client.posts
    assert post["hashtags"] == ["AMBERAlert", "MissingChild", "HelpFindThem", "BritishColumbia"]
    assert post["link"] == f"{BASE_URL}/AMB-2024-0001"
    assert post["message"].startswith("AMBER ALERT: Jamie Doe, 8")
    assert outcome.external_id == "twitter-1"


@pytest.mark.asyncio
async def test_social_sender_surfaces_platform_failure() -> None:
    sender = SocialMediaSender(client=FakeSocialPostingClient(failing_accounts=["acct-1"]), public_base_url=BASE_URL)

    with pytest.raises(DeliveryError):
        await sender.send(make_unit("social_media", target_id="acct-1"), make_alert())


@pytest.mark.asyncio
async def test_regulated_sender_always_queues() -> None:
    outcome = await RegulatedBroadcastSender().send(
        make_unit("regulated_broadcast", channel_config={"broadcast_type": "eas"}),
        make_alert(),
    )

    assert outcome.status == "queued"
    assert outcome.details == {"broadcast_type": "eas"}


def _webhook_partner(**overrides) -> PartnerOrganization:
    values = {
        "id": "p-hook",
        "name": "Transit",
        "can_access_api": True,
        "webhook_url": "https://transit.example.org/hooks/amber",
        "webhook_secret": "transit-secret",
    }
    values.update(overrides)
    return PartnerOrganization(**values)


@pytest.mark.asyncio
async def test_webhook_sender_signs_body_verifiably() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202)

    log = InMemoryWebhookDeliveryLog()
    sender = WebhookSender(
        directory=InMemoryTargetDirectory(partners=[_webhook_partner()]),
        delivery_log=log,
        user_agent="amberdist-test",
        transport=httpx.MockTransport(handler),
        clock=FakeClock(),
    )

    outcome = await sender.send(make_unit("webhook", target_id="p-hook"), make_alert())

    [request] = captured
    body = request.content
    expected = hmac.new(b"transit-secret", body, hashlib.sha256).hexdigest()
    assert request.headers["X-Webhook-Signature"] == f"sha256={expected}"
    assert request.headers["X-Webhook-Event"] == "amber_alert"
    assert request.headers["X-Webhook-Timestamp"] == "2024-05-01T12:00:00Z"
    assert request.headers["X-Alert-Number"] == "AMB-2024-0001"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"] == "amberdist-test"
    payload = json.loads(body)
    assert payload["event"] == "amber_alert"
    assert payload["alert"]["child"]["name"] == "Jamie Doe"
    assert outcome.details == {"response_status": 202}
    [record] = log.records
    assert record.success is True
    assert record.response_status == 202
    assert record.payload_sha256 == hashlib.sha256(body).hexdigest()


@pytest.mark.asyncio
async def test_webhook_sender_omits_signature_without_secret() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200)

    sender = WebhookSender(
        directory=InMemoryTargetDirectory(partners=[_webhook_partner(webhook_secret=None)]),
        delivery_log=InMemoryWebhookDeliveryLog(),
        transport=httpx.MockTransport(handler),
    )

    await sender.send(make_unit("webhook", target_id="p-hook"), make_alert())

    assert "X-Webhook-Signature" not in captured[0].headers


@pytest.mark.asyncio
async def test_webhook_sender_raises_on_non_2xx_and_still_logs() -> None:
    log = InMemoryWebhookDeliveryLog()
    sender = WebhookSender(
        directory=InMemoryTargetDirectory(partners=[_webhook_partner()]),
        delivery_log=log,
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(WebhookDeliveryError) as excinfo:
        await sender.send(make_unit("webhook", target_id="p-hook"), make_alert())

    assert excinfo.value.status_code == 503
    [record] = log.records
    assert record.success is False
    assert record.response_status == 503
    assert record.error == "Webhook returned 503"


@pytest.mark.asyncio
async def test_webhook_sender_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    log = InMemoryWebhookDeliveryLog()
    sender = WebhookSender(
        directory=InMemoryTargetDirectory(partners=[_webhook_partner()]),
        delivery_log=log,
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(WebhookDeliveryError, match="ConnectError"):
        await sender.send(make_unit("webhook", target_id="p-hook"), make_alert())

    [record] = log.records
    assert record.success is False
    assert record.response_status is None


@pytest.mark.asyncio
async def test_webhook_sender_logs_rejected_partner_attempts() -> None:
    directory = InMemoryTargetDirectory(
        partners=[
            _webhook_partner(id="p-nourl", webhook_url=None),
            _webhook_partner(id="p-off", status="suspended"),
        ]
    )
    log = InMemoryWebhookDeliveryLog()
    sender = WebhookSender(directory=directory, delivery_log=log, transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    with pytest.raises(DeliveryError, match="no webhook endpoint"):
        await sender.send(make_unit("webhook", target_id="p-nourl"), make_alert())
    with pytest.raises(DeliveryError, match="not active"):
        await sender.send(make_unit("webhook", target_id="p-off"), make_alert())
    no_url, suspended = log.records
    assert (no_url.partner_id, no_url.url, no_url.response_status) == ("p-nourl", "", None)
    assert no_url.error == "Partner Transit has no webhook endpoint configured"
    assert suspended.success is False
    assert suspended.url == "https://transit.example.org/hooks/amber"
    assert suspended.error == "Partner p-off is not active"


@pytest.mark.asyncio
async def test_webhook_delivery_log_failure_does_not_mask_success() -> None:
    class BrokenLog:
        async def record(self, record) -> None:
            raise RuntimeError("log table missing")

    sender = WebhookSender(
        directory=InMemoryTargetDirectory(partners=[_webhook_partner()]),
        delivery_log=BrokenLog(),
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
    )

    outcome = await sender.send(make_unit("webhook", target_id="p-hook"), make_alert())

    assert outcome.details == {"response_status": 200}


def test_sender_registry_requires_every_channel() -> None:
    with pytest.raises(SenderConfigError, match="webhook"):
        SenderRegistry({"email": RecordingSender()})
