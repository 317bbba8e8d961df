from __future__ import annotations

import argparse
import asyncio

from amberdist.core.logging import configure_logging
from amberdist.services.distribution.factory import build_sql_engine
from amberdist.services.distribution.worker import run_distribution_sweep_cycle


async def _main() -> None:
    parser = argparse.ArgumentParser(description="Run one distribution sweep and exit.")
    parser.add_argument("--limit", type=int, default=None, help="Maximum units to process (default: batch size)")
    args = parser.parse_args()

    configure_logging()
    processed = await run_distribution_sweep_cycle(build_sql_engine(), limit=args.limit)
    print(f"processed={processed}")


if __name__ == "__main__":
    asyncio.run(_main())
