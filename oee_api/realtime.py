# =============================
# ======== realtime.py ========
# =============================
"""
Live metrics for the shift currently running, behind RealtimeCache.

Same calculators as the batch job, evaluated over [shift start, now):
- open state intervals end at now
- planned runtime = min(elapsed minutes, planned shift runtime)
- missing production count -> estimated from runtime (not persisted)
No data, or a zero-length elapsed shift, yields zeroed metrics instead of an error.
"""
from __future__ import annotations
from datetime import datetime
from typing import Callable, Optional
import logging

from oee_api.cache import RealtimeCache
from oee_api.calculator import OeeMetrics, compute_metrics, planned_runtime_min
from oee_api.config import SETTINGS
from oee_api.errors import InvalidInput
from oee_api.estimation import effective_count
from oee_api.runtime import accumulate_running_minutes
from oee_api.shifts import shift_window_at
from oee_api.store import OeeStore
from oee_api.utils import now_local_naive

logger = logging.getLogger("oee.realtime")


class RealtimeCalculator:
    def __init__(
        self,
        store: OeeStore,
        cache: RealtimeCache,
        clock: Callable[[], datetime] = now_local_naive,
    ):
        self._store = store
        self.cache = cache
        self._clock = clock

    async def current_metrics(self, machine_id: str) -> Optional[dict]:
        """Metrics dict for the machine, or None if the machine does not exist."""
        cached = self.cache.get(machine_id)
        if cached is not None:
            return cached

        machine = await self._store.get_machine(machine_id)
        if machine is None:
            return None

        now = self._clock()
        shift_date, window = shift_window_at(now)
        tact = machine.tact_time_sec if machine.tact_time_sec > 0 else SETTINGS.DEFAULT_TACT_TIME_SEC

        intervals = await self._store.fetch_state_intervals(machine_id, window)
        actual = accumulate_running_minutes(intervals, window, open_end=now)
        elapsed = (now - window.start).total_seconds() / 60.0
        planned = min(elapsed, planned_runtime_min(SETTINGS.SHIFT_HOURS, SETTINGS.PLANNED_BREAK_MIN))

        existing = await self._store.fetch_production_count(machine_id, shift_date, window.shift)
        count = effective_count(existing, machine_id, shift_date, window.shift, actual, tact)

        if planned <= 0:
            metrics = OeeMetrics.zero()
        else:
            try:
                metrics = compute_metrics(actual, planned, count.output_qty, count.defect_qty, tact)
            except InvalidInput as ex:
                logger.warning("realtime metrics zeroed | machine=%s | %s", machine_id, ex)
                metrics = OeeMetrics.zero(planned)

        result = {
            "machine_id": machine.id,
            "machine_name": machine.name,
            "timestamp": now,
            "date": shift_date,
            "shift": window.shift.value,
            "shift_start": window.start,
            "shift_end": window.end,
            "estimated": count.is_estimated,
            **metrics.to_dict(),
        }
        self.cache.set(machine_id, result)
        logger.debug("realtime computed | machine=%s oee=%s", machine_id, metrics.oee)
        return result
