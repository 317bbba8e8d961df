from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
import json
import os
from pathlib import Path
import sys
from typing import Any

from redis.asyncio import Redis
from sqlalchemy import func, select, text

from amberdist.core.config import get_settings
from amberdist.domain.distribution import STATUS_PENDING
from amberdist.domain.models import AmberDistributionRow
from amberdist.persistence.db import SessionLocal


def _latest_revision() -> str | None:
    # Resolve repository head revision directly from migration files.
    versions = sorted(Path("amberdist/persistence/alembic/versions").glob("*.py"))
    if not versions:
        return None
    for line in versions[-1].read_text(encoding="utf-8").splitlines():
        if line.startswith("revision ="):
            return line.split("=", 1)[1].strip().strip('"')
    return None


async def _db_revision() -> str | None:
    async with SessionLocal() as session:
        return (await session.execute(text("SELECT version_num FROM alembic_version LIMIT 1"))).scalar_one_or_none()


async def _check_redis() -> bool:
    # Redis only matters when post-request sweeps go through the queue.
    settings = get_settings()
    if settings.dispatch_execution_mode != "queue":
        return True
    client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    try:
        return bool(await client.ping())
    except Exception:  # noqa: BLE001 - an unreachable Redis is a failed check, not a crash.
        return False
    finally:
        await client.aclose()


async def _stale_pending_count(*, older_than_minutes: int) -> int:
    # Pending units older than a few sweep intervals mean no worker is draining the queue.
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
    async with SessionLocal() as session:
        return int(
            (
                await session.execute(
                    select(func.count())
                    .select_from(AmberDistributionRow)
                    .where(AmberDistributionRow.status == STATUS_PENDING, AmberDistributionRow.created_at < cutoff)
                )
            ).scalar_one()
        )


def _required_env_names() -> list[str]:
    names = ["DATABASE_URL"]
    settings = get_settings()
    if settings.dispatch_execution_mode == "queue":
        names.append("REDIS_URL")
    if settings.messaging_provider == "http":
        names.append("MESSAGING_RELAY_URL")
    return names


def _check_distribution_routes() -> bool:
    from amberdist.apps.api.routes.distributions import router as distributions_router

    route_paths = {route.path for route in distributions_router.routes}
    required = {"/alerts/{alert_id}/distributions", "/distributions/process"}
    return required.issubset(route_paths)


async def run_preflight(*, output_json: str | None) -> int:
    settings = get_settings()
    results: list[dict[str, Any]] = []

    db_rev = await _db_revision()
    head_rev = _latest_revision()
    results.append(
        {
            "check": "alembic_current_matches_head",
            "status": "pass" if db_rev == head_rev else "fail",
            "detail": {"db_revision": db_rev, "head_revision": head_rev},
        }
    )

    missing_env = [name for name in _required_env_names() if not os.environ.get(name)]
    results.append(
        {
            "check": "required_env_present",
            "status": "pass" if not missing_env else "fail",
            "detail": {"missing": missing_env},
        }
    )

    redis_ok = await _check_redis()
    results.append({"check": "redis_reachable", "status": "pass" if redis_ok else "fail", "detail": {}})

    stale_minutes = max(1, 3 * int(settings.dispatch_interval_s) // 60)
    stale = await _stale_pending_count(older_than_minutes=stale_minutes)
    results.append(
        {
            "check": "no_stale_pending_units",
            "status": "pass" if stale == 0 else "warn",
            "detail": {"stale_pending": stale, "older_than_minutes": stale_minutes},
        }
    )

    results.append(
        {
            "check": "distribution_routes_present",
            "status": "pass" if _check_distribution_routes() else "fail",
            "detail": {},
        }
    )

    failed = [row for row in results if row["status"] == "fail"]
    summary = {"status": "pass" if not failed else "fail", "checks": results}
    if output_json:
        output_path = Path(output_json)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(summary, indent=2, sort_keys=True), encoding="utf-8")
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0 if not failed else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Run deploy preflight checks for the distribution engine.")
    parser.add_argument("--output-json", default="var/ops/preflight.json")
    args = parser.parse_args()
    return asyncio.run(run_preflight(output_json=args.output_json))


if __name__ == "__main__":
    sys.exit(main())
