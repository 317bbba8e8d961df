from __future__ import annotations

from functools import lru_cache

from amberdist.services.distribution.engine import DistributionEngine


@lru_cache
def get_distribution_engine() -> DistributionEngine:
    # One engine per process; tests override this dependency with an in-memory engine.
    from amberdist.services.distribution.factory import build_sql_engine

    return build_sql_engine()
