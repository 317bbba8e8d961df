from __future__ import annotations

import asyncio
import logging

from arq.connections import RedisSettings

from amberdist.core.config import get_settings
from amberdist.core.logging import configure_logging
from amberdist.services.distribution.factory import build_sql_engine
from amberdist.services.distribution.worker import run_distribution_sweep_cycle, run_distribution_sweep_loop

logger = logging.getLogger(__name__)


async def run_distribution_sweep(ctx, alert_id: str | None = None) -> int:
    # Immediate sweep enqueued after a distribution request; alert_id is informational.
    processed = await run_distribution_sweep_cycle(ctx["engine"])
    logger.info("distribution_sweep_job alert_id=%s processed=%s", alert_id, processed)
    return processed


async def _startup(ctx) -> None:
    # Run the recurring sweep beside queued jobs so retries continue when no requests arrive.
    configure_logging()
    engine = build_sql_engine()
    ctx["engine"] = engine
    ctx["scheduler_task"] = asyncio.create_task(run_distribution_sweep_loop(engine))


async def _shutdown(ctx) -> None:
    task = ctx.get("scheduler_task")
    if task:
        task.cancel()


class WorkerSettings:
    # Class attributes so `arq amberdist.workers.distribution_worker.WorkerSettings` works.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.dispatch_queue_name
    max_tries = 1
    functions = [run_distribution_sweep]
    on_startup = _startup
    on_shutdown = _shutdown
