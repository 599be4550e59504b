# =============================
# ======= estimation.py =======
# =============================
"""Output estimation when a shift has no operator-entered production count."""
from __future__ import annotations
from datetime import date
from typing import Optional
import logging
import math

from oee_api.errors import InvalidInput
from oee_api.models import ProductionCount, Shift

logger = logging.getLogger("oee.estimation")


def estimate_output_qty(actual_runtime_min: float, tact_time_sec: float) -> int:
    """floor(runtime_sec / tact_time_sec); never negative."""
    if tact_time_sec <= 0:
        raise InvalidInput(f"tact time must be > 0 (got {tact_time_sec})")
    return max(0, math.floor(actual_runtime_min * 60 / tact_time_sec))


def effective_count(
    existing: Optional[ProductionCount],
    machine_id: str,
    shift_date: date,
    shift: Shift,
    actual_runtime_min: float,
    tact_time_sec: float,
) -> ProductionCount:
    """
    The production count in effect for a shift.
    A real (operator-entered) count is returned as-is; a missing or previously
    estimated one is (re-)estimated from runtime with zero defects.
    """
    if existing is not None and not existing.is_estimated:
        return existing
    qty = estimate_output_qty(actual_runtime_min, tact_time_sec)
    logger.info("estimated output | machine=%s %s/%s runtime=%.1fmin tact=%ss -> %d",
                machine_id, shift_date, shift.value, actual_runtime_min, tact_time_sec, qty)
    return ProductionCount(
        machine_id=machine_id,
        date=shift_date,
        shift=shift,
        output_qty=qty,
        defect_qty=0,
        is_estimated=True,
    )
