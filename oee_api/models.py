# =============================
# ========= models.py =========
# =============================
"""Domain records exchanged between the store, the calculators and the orchestrator.

All datetimes are naive plant-local time (same convention as the datastore).
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Shift(str, Enum):
    day = "day"
    night = "night"


class RunStatus(str, Enum):
    started = "started"
    completed = "completed"
    failed = "failed"


@dataclass(frozen=True)
class ShiftWindow:
    shift: Shift
    start: datetime
    end: datetime

    @property
    def minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60.0

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


@dataclass(frozen=True)
class Machine:
    id: str
    tact_time_sec: float
    name: Optional[str] = None


@dataclass(frozen=True)
class MachineStateInterval:
    machine_id: str
    state: str
    start: datetime
    end: Optional[datetime] = None  # None = still open


@dataclass
class ProductionCount:
    machine_id: str
    date: date
    shift: Shift
    output_qty: int = 0
    defect_qty: int = 0
    is_estimated: bool = False


@dataclass
class OeeMetricRecord:
    machine_id: str
    date: date
    shift: Shift
    availability: float
    performance: float
    quality: float
    oee: float
    actual_runtime_min: float
    planned_runtime_min: float
    ideal_runtime_min: float
    output_qty: int
    defect_qty: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["shift"] = self.shift.value
        return d


@dataclass
class AggregationRun:
    target_date: date
    execution_time: datetime
    status: RunStatus = RunStatus.started
    processed_records: int = 0
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None)
