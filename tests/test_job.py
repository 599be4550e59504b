# tests/test_job.py
import asyncio
from datetime import date, datetime

import pytest

from oee_api.aggregation import AggregationOrchestrator
from oee_api.utils import today_local
from oee_job import oee_aggregation_job as job


def test_target_date_from_argv_env_or_today():
    assert job.resolve_target_date(["job", "2025-09-28"], "2025-01-01") == date(2025, 9, 28)
    assert job.resolve_target_date(["job"], "2025-09-27") == date(2025, 9, 27)
    assert job.resolve_target_date(["job"], "  ") == today_local()


def test_target_date_rejects_garbage():
    with pytest.raises(ValueError):
        job.resolve_target_date(["job", "28-09-2025"], "")


def test_run_job_single_date(store, clock):
    store.add_machine("M1")
    store.add_interval("M1", datetime(2025, 9, 28, 8, 0), datetime(2025, 9, 28, 12, 0))
    orch = AggregationOrchestrator(store, clock=clock)

    results = asyncio.run(job.run_job(orch, date(2025, 9, 28)))

    assert len(results) == 1 and results[0].success
    assert results[0].processed_records == 2


def test_run_job_backfills_missing_dates(store, clock):
    store.add_machine("M1")
    orch = AggregationOrchestrator(store, clock=clock)

    results = asyncio.run(job.run_job(orch, None, backfill_missing=True, days_back=1))

    assert [r.date for r in results] == [date(2025, 9, 28), date(2025, 9, 29)]
    assert asyncio.run(orch.missing_dates(1)) == []


def test_run_job_nothing_to_backfill(store, clock):
    orch = AggregationOrchestrator(store, clock=clock)
    assert asyncio.run(job.run_job(orch, None, backfill_missing=True, days_back=3)) == []


def test_main_invalid_date_exit_code():
    assert job.main(["job", "not-a-date"]) == 2


def test_run_job_backfill_at_max_span(store, clock):
    store.add_machine("M1")
    orch = AggregationOrchestrator(store, clock=clock)

    results = asyncio.run(job.run_job(orch, None, backfill_missing=True, days_back=31))

    assert len(results) == 32 and all(r.success for r in results)
