from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from amberdist.core.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    # SQLite (tests, local runs) keeps SQLAlchemy's default pool; Postgres gets a bounded one
    # so a burst of API calls cannot hold every connection the sweep worker needs.
    options: dict[str, Any] = {"pool_pre_ping": True}
    if settings.database_url.startswith("sqlite"):
        return options
    options.update(
        pool_size=max(1, int(settings.api_db_pool_size)),
        max_overflow=max(0, int(settings.api_db_max_overflow)),
        pool_timeout=30,
        pool_recycle=1800,
    )
    timeout_ms = int(settings.api_db_statement_timeout_ms)
    if timeout_ms > 0:
        options["connect_args"] = {"server_settings": {"statement_timeout": str(timeout_ms)}}
    return options


_settings = get_settings()
engine = create_async_engine(_settings.database_url, **engine_options(_settings))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
