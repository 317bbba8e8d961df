from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from amberdist.core.config import Settings, get_settings
from amberdist.domain.distribution import CHANNEL_EMAIL, CHANNEL_PUSH, CHANNEL_SMS
from amberdist.persistence.repos.deliveries import SqlPartnerNotifier, SqlWebhookDeliveryLog
from amberdist.persistence.repos.directory import SqlSubscriberDirectory, SqlTargetDirectory
from amberdist.persistence.repos.distributions import SqlDistributionStore
from amberdist.providers.messaging.factory import get_messaging_gateway
from amberdist.providers.social.factory import get_social_client
from amberdist.services.distribution.engine import DistributionEngine, SweepTrigger
from amberdist.services.distribution.senders import build_sender_registry
from amberdist.services.distribution.subscribers import CachedSubscriberDirectory


def build_sql_engine(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    settings: Settings | None = None,
    sweep_trigger: SweepTrigger | None = None,
) -> DistributionEngine:
    # Production wiring: Postgres-backed store and directory, providers chosen by settings.
    settings = settings or get_settings()
    if session_factory is None:
        from amberdist.persistence.db import SessionLocal

        session_factory = SessionLocal
    directory = SqlTargetDirectory(session_factory)
    store = SqlDistributionStore(session_factory)
    senders = build_sender_registry(
        settings=settings,
        directory=directory,
        subscribers=CachedSubscriberDirectory(
            SqlSubscriberDirectory(session_factory),
            ttl_s=settings.subscriber_cache_ttl_s,
        ),
        email=get_messaging_gateway(CHANNEL_EMAIL),
        sms=get_messaging_gateway(CHANNEL_SMS),
        push=get_messaging_gateway(CHANNEL_PUSH),
        social=get_social_client(),
        partner_notifier=SqlPartnerNotifier(session_factory),
        webhook_log=SqlWebhookDeliveryLog(session_factory),
    )
    return DistributionEngine(
        store=store,
        directory=directory,
        senders=senders,
        settings=settings,
        sweep_trigger=sweep_trigger,
    )
