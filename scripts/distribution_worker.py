from __future__ import annotations

import asyncio

from amberdist.core.logging import configure_logging
from amberdist.services.distribution.factory import build_sql_engine
from amberdist.services.distribution.worker import run_distribution_sweep_loop


async def _main() -> None:
    # Standalone sweep loop for deployments that do not run the arq worker.
    configure_logging()
    await run_distribution_sweep_loop(build_sql_engine())


if __name__ == "__main__":
    asyncio.run(_main())
