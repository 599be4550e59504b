# =============================
# ======= calculator.py =======
# =============================
"""
OEE metric calculation (pure functions, shared by the batch job and the realtime path).

OEE = Availability x Performance x Quality, every ratio in [0, 1].
- Availability = actual runtime / planned runtime
- Performance  = ideal runtime / actual runtime
- Quality      = (output - defects) / output
Runtimes are minutes, tact time is seconds per unit.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict

from oee_api.errors import InvalidInput
from oee_api.utils import round_half_up


def _clamp(x: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def availability(actual_runtime_min: float, planned_runtime_min: float) -> float:
    if planned_runtime_min <= 0:
        raise InvalidInput(f"planned runtime must be > 0 (got {planned_runtime_min})")
    return _clamp(actual_runtime_min / planned_runtime_min)


def performance(ideal_runtime_min: float, actual_runtime_min: float) -> float:
    if actual_runtime_min <= 0:
        return 0.0
    return _clamp(ideal_runtime_min / actual_runtime_min)


def quality(output_qty: float, defect_qty: float) -> float:
    if defect_qty < 0:
        raise InvalidInput(f"defect quantity cannot be negative (got {defect_qty})")
    if output_qty <= 0:
        return 0.0
    return _clamp((output_qty - defect_qty) / output_qty)


def oee(availability: float, performance: float, quality: float) -> float:
    """Product of the three ratios, rounded half-up to 3 decimals."""
    return round_half_up(availability * performance * quality, 3)


def ideal_runtime_min(output_qty: float, tact_time_sec: float) -> float:
    if tact_time_sec <= 0:
        raise InvalidInput(f"tact time must be > 0 (got {tact_time_sec})")
    return output_qty * tact_time_sec / 60.0


def planned_runtime_min(shift_hours: float = 12, break_min: float = 60) -> float:
    # policy constant, not derived from logs
    return shift_hours * 60 - break_min


@dataclass
class OeeMetrics:
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
        return asdict(self)

    @classmethod
    def zero(cls, planned_runtime_min: float = 0.0) -> "OeeMetrics":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, planned_runtime_min, 0.0, 0, 0)


def compute_metrics(
    actual_runtime_min: float,
    planned_runtime_min: float,
    output_qty: int,
    defect_qty: int,
    tact_time_sec: float,
) -> OeeMetrics:
    """
    Run the whole chain for one machine/window.
    Raises InvalidInput on bad planned runtime, tact time or defect count.
    """
    ideal = ideal_runtime_min(output_qty, tact_time_sec)
    a = availability(actual_runtime_min, planned_runtime_min)
    p = performance(ideal, actual_runtime_min)
    q = quality(output_qty, defect_qty)
    return OeeMetrics(
        availability=a,
        performance=p,
        quality=q,
        oee=oee(a, p, q),
        actual_runtime_min=actual_runtime_min,
        planned_runtime_min=planned_runtime_min,
        ideal_runtime_min=ideal,
        output_qty=int(output_qty),
        defect_qty=int(defect_qty),
    )
