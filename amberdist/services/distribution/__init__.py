from amberdist.services.distribution.engine import DistributionEngine, SweepTrigger
from amberdist.services.distribution.memory import (
    InMemoryDistributionStore,
    InMemoryPartnerNotifier,
    InMemorySubscriberDirectory,
    InMemoryTargetDirectory,
    InMemoryWebhookDeliveryLog,
)
from amberdist.services.distribution.processor import DispatchProcessor, compute_next_retry_at
from amberdist.services.distribution.reporter import DistributionReporter, sanitize_metadata
from amberdist.services.distribution.resolver import TargetResolver, plan_channels
from amberdist.services.distribution.senders import SenderRegistry, build_sender_registry
from amberdist.services.distribution.subscribers import CachedSubscriberDirectory
from amberdist.services.distribution.webhook_contract import (
    build_webhook_payload,
    compute_signature,
    serialize_payload,
    verify_signature,
)

__all__ = [
    "CachedSubscriberDirectory",
    "DispatchProcessor",
    "DistributionEngine",
    "DistributionReporter",
    "InMemoryDistributionStore",
    "InMemoryPartnerNotifier",
    "InMemorySubscriberDirectory",
    "InMemoryTargetDirectory",
    "InMemoryWebhookDeliveryLog",
    "SenderRegistry",
    "SweepTrigger",
    "TargetResolver",
    "build_sender_registry",
    "build_webhook_payload",
    "compute_next_retry_at",
    "compute_signature",
    "plan_channels",
    "sanitize_metadata",
    "serialize_payload",
    "verify_signature",
]
