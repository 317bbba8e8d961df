from __future__ import annotations

import argparse
import asyncio

from amberdist.core.logging import configure_logging
from amberdist.services.distribution.factory import build_sql_engine


async def _main() -> None:
    parser = argparse.ArgumentParser(description="Cancel pending and queued distributions for an alert.")
    parser.add_argument("alert_id")
    parser.add_argument("--reason", required=True)
    args = parser.parse_args()

    configure_logging()
    cancelled = await build_sql_engine().cancel(args.alert_id, args.reason)
    print(f"alert_id={args.alert_id} cancelled={cancelled}")


if __name__ == "__main__":
    asyncio.run(_main())
