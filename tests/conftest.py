# tests/conftest.py
"""
Shared fixtures:
- MemoryStore: in-memory OeeStore with switches to inject fetch/list failures
- FakeClock / FakeTimer: deterministic time for orchestrator, realtime and cache
- client: FastAPI TestClient with store/orchestrator/realtime dependencies overridden
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple
import pytest
from fastapi.testclient import TestClient

from oee_api.errors import FetchError, WriteError
from oee_api.models import (
    AggregationRun, Machine, MachineStateInterval, OeeMetricRecord, ProductionCount, Shift, ShiftWindow,
)
from oee_api.store import OeeStore

D = date(2025, 9, 28)
RUN = "NORMAL_OPERATION"


class MemoryStore(OeeStore):
    def __init__(self):
        self.machines: Dict[str, Machine] = {}
        self.inactive: set = set()
        self.intervals: List[MachineStateInterval] = []
        self.counts: Dict[Tuple[str, date, Shift], ProductionCount] = {}
        self.records: Dict[Tuple[str, date, Shift], OeeMetricRecord] = {}
        self.runs: Dict[int, AggregationRun] = {}
        self.run_writes: List[Tuple[int, str]] = []
        self.fail_fetch: set = set()       # {(machine_id, "day"|"night")}
        self.fail_list = False
        self.fail_run_reads = False
        self.fail_run_updates = 0        # number of upcoming run-row updates to fail
        self.fetch_calls = 0

    # helpers for tests
    def add_machine(self, machine_id: str, tact: float = 30.0, name: Optional[str] = None, active: bool = True):
        self.machines[machine_id] = Machine(id=machine_id, tact_time_sec=tact, name=name or machine_id)
        if not active:
            self.inactive.add(machine_id)

    def add_interval(self, machine_id: str, start: datetime, end: Optional[datetime], state: str = RUN):
        self.intervals.append(MachineStateInterval(machine_id, state, start, end))

    # OeeStore
    async def list_active_machines(self):
        if self.fail_list:
            raise FetchError("cannot list machines: connection refused")
        return [m for k, m in sorted(self.machines.items()) if k not in self.inactive]

    async def get_machine(self, machine_id):
        return self.machines.get(machine_id)

    async def fetch_state_intervals(self, machine_id, window: ShiftWindow):
        self.fetch_calls += 1
        if (machine_id, window.shift.value) in self.fail_fetch:
            raise FetchError(f"timeout reading logs of {machine_id}")
        return [iv for iv in self.intervals
                if iv.machine_id == machine_id
                and iv.start < window.end
                and (iv.end is None or iv.end > window.start)]

    async def fetch_production_count(self, machine_id, d, shift):
        c = self.counts.get((machine_id, d, shift))
        return replace(c) if c is not None else None

    async def upsert_production_count(self, count):
        self.counts[(count.machine_id, count.date, count.shift)] = replace(count)

    async def upsert_oee_metric_record(self, record):
        self.records[(record.machine_id, record.date, record.shift)] = replace(record)

    async def write_aggregation_run(self, run):
        if run.id is not None and self.fail_run_updates > 0:
            self.fail_run_updates -= 1
            raise WriteError(f"cannot update aggregation run {run.id}")
        if run.id is None:
            run.id = len(self.runs) + 1
            run.created_at = run.execution_time
        self.runs[run.id] = replace(run)
        self.run_writes.append((run.id, run.status.value))
        return run.id

    async def list_aggregation_runs(self, limit, target_date=None):
        if self.fail_run_reads:
            raise FetchError("aggregation log unavailable")
        runs = [r for r in self.runs.values() if target_date is None or r.target_date == target_date]
        return sorted(runs, key=lambda r: r.id, reverse=True)[:limit]

    async def count_metric_records(self, d):
        return sum(1 for k in self.records if k[1] == d)


class FakeClock:
    """Callable clock returning a settable datetime."""
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTimer:
    """Callable returning float seconds, advanced manually."""
    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> FakeClock:
    # the morning after D: both shifts of D are closed
    return FakeClock(datetime(2025, 9, 29, 12, 0, 0))


@pytest.fixture
def client(store, clock, monkeypatch):
    from oee_api import api
    from oee_api.aggregation import AggregationOrchestrator
    from oee_api.cache import RealtimeCache
    from oee_api.realtime import RealtimeCalculator

    monkeypatch.setattr("oee_api.config.SETTINGS.API_KEY", "")
    cache_time = FakeTimer(1_000_000.0)
    rt = RealtimeCalculator(store, RealtimeCache(ttl_sec=300, bucket_sec=10, clock=cache_time), clock=clock)

    api.app.dependency_overrides[api.get_store] = lambda: store
    api.app.dependency_overrides[api.get_orchestrator] = lambda: AggregationOrchestrator(store, clock=clock)
    api.app.dependency_overrides[api.get_realtime] = lambda: rt
    yield TestClient(api.app)
    api.app.dependency_overrides.clear()


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer(100.0)
