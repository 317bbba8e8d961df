from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from arq import create_pool
from arq.connections import RedisSettings
from sqlalchemy.exc import SQLAlchemyError

from amberdist.core.config import get_settings

if TYPE_CHECKING:
    from amberdist.services.distribution.engine import DistributionEngine


logger = logging.getLogger(__name__)

SWEEP_JOB_NAME = "run_distribution_sweep"

_dispatch_queue_pool = None
_dispatch_queue_pool_loop = None
_dispatch_queue_lock = asyncio.Lock()


def _is_missing_table_error(exc: Exception) -> bool:
    # Let the worker start before migrations by treating missing tables as an idle cycle.
    message = str(exc).lower()
    return "undefinedtableerror" in message or "does not exist" in message


async def get_dispatch_queue_pool():
    # Cache the ARQ Redis pool per event loop to avoid reconnect churn in API and worker paths.
    global _dispatch_queue_pool, _dispatch_queue_pool_loop
    current_loop = asyncio.get_running_loop()
    if _dispatch_queue_pool is not None and _dispatch_queue_pool_loop == current_loop:
        return _dispatch_queue_pool
    if _dispatch_queue_pool is not None and _dispatch_queue_pool_loop != current_loop:
        _dispatch_queue_pool = None
    async with _dispatch_queue_lock:
        if _dispatch_queue_pool is None:
            settings = get_settings()
            _dispatch_queue_pool = await create_pool(
                RedisSettings.from_dsn(settings.redis_url),
                default_queue_name=settings.dispatch_queue_name,
            )
            _dispatch_queue_pool_loop = current_loop
    return _dispatch_queue_pool


async def enqueue_distribution_sweep(*, alert_id: str | None = None) -> bool:
    # Publish an immediate sweep; the recurring scheduler covers anything this misses.
    settings = get_settings()
    try:
        redis = await get_dispatch_queue_pool()
        await redis.enqueue_job(
            SWEEP_JOB_NAME,
            alert_id,
            _queue_name=settings.dispatch_queue_name,
        )
        return True
    except Exception:  # noqa: BLE001 - keep enqueue best-effort and rely on the recurring sweep.
        logger.warning("distribution_sweep_enqueue_failed alert_id=%s", alert_id, exc_info=True)
        return False


async def run_distribution_sweep_cycle(engine: DistributionEngine, *, limit: int | None = None) -> int:
    try:
        return await engine.process_due(limit=limit)
    except SQLAlchemyError as exc:
        if _is_missing_table_error(exc):
            return 0
        raise


async def run_distribution_sweep_loop(engine: DistributionEngine) -> None:
    # Sweep on a fixed cadence and keep going after failures so retries are never stranded.
    interval = max(1, int(get_settings().dispatch_interval_s))
    while True:
        try:
            await run_distribution_sweep_cycle(engine)
        except Exception:  # noqa: BLE001 - keep loop alive while surfacing errors in logs.
            logger.exception("distribution sweep cycle failed")
        await asyncio.sleep(interval)
