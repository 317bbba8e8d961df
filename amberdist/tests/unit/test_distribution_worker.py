from __future__ import annotations

import pytest
from sqlalchemy.exc import ProgrammingError

from amberdist.services.distribution.worker import run_distribution_sweep_cycle


class _Engine:
    def __init__(self, error: Exception | None = None, processed: int = 0) -> None:
        self.error = error
        self.processed = processed
        self.limits: list[int | None] = []

    async def process_due(self, limit: int | None = None) -> int:
        self.limits.append(limit)
        if self.error is not None:
            raise self.error
        return self.processed


@pytest.mark.asyncio
async def test_sweep_cycle_returns_processed_count() -> None:
    engine = _Engine(processed=4)

    assert await run_distribution_sweep_cycle(engine, limit=10) == 4
    assert engine.limits == [10]


@pytest.mark.asyncio
async def test_sweep_cycle_treats_missing_tables_as_idle() -> None:
    error = ProgrammingError("SELECT 1", {}, Exception('relation "amber_distributions" does not exist'))

    assert await run_distribution_sweep_cycle(_Engine(error=error)) == 0


@pytest.mark.asyncio
async def test_sweep_cycle_reraises_other_database_errors() -> None:
    error = ProgrammingError("SELECT 1", {}, Exception("permission denied for table amber_distributions"))

    with pytest.raises(ProgrammingError):
        await run_distribution_sweep_cycle(_Engine(error=error))
