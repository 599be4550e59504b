# =============================
# ======= aggregation.py ======
# =============================
"""
Daily OEE aggregation.

For a target date D, every active machine and both shift windows of D:
  state logs -> running minutes -> (estimated) production count -> A/P/Q/OEE
  -> upsert one oee_metric_records row keyed by (machine_id, D, shift).

Run audit (oee_aggregation_log): one row written as `started`, updated once to
`completed` (with processed count and elapsed ms) or `failed` (with message).

Failure model:
- one machine/shift fails (FetchError, WriteError, InvalidInput) -> logged, skipped, run continues
- anything else outside that loop (e.g. machine list unavailable) -> run `failed`, result success=False
- final audit write fails twice -> result success=False (the row stays `started`)
Re-running a date recomputes and overwrites every row (idempotent).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional
import logging
import time

from oee_api.calculator import compute_metrics, planned_runtime_min
from oee_api.config import SETTINGS
from oee_api.errors import InvalidInput, RunFailure, StoreError
from oee_api.estimation import effective_count
from oee_api.models import (
    AggregationRun, Machine, OeeMetricRecord, RunStatus, ShiftWindow,
)
from oee_api.runtime import accumulate_running_minutes
from oee_api.shifts import resolve_shift_windows
from oee_api.store import OeeStore
from oee_api.utils import now_local_naive, round_half_up

logger = logging.getLogger("oee.aggregation")


@dataclass
class AggregationResult:
    success: bool
    date: date
    processed_records: int = 0
    results: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    run_id: Optional[int] = None

    def to_dict(self) -> dict:
        out = {
            "success": self.success,
            "date": self.date.isoformat(),
            "processed_records": self.processed_records,
            "run_id": self.run_id,
        }
        if self.success:
            out["results"] = self.results
        else:
            out["error"] = self.error
        return out


def _to_record(machine: Machine, d: date, window: ShiftWindow, m) -> OeeMetricRecord:
    return OeeMetricRecord(
        machine_id=machine.id,
        date=d,
        shift=window.shift,
        availability=round_half_up(m.availability, 4),
        performance=round_half_up(m.performance, 4),
        quality=round_half_up(m.quality, 4),
        oee=m.oee,
        actual_runtime_min=round_half_up(m.actual_runtime_min, 2),
        planned_runtime_min=round_half_up(m.planned_runtime_min, 2),
        ideal_runtime_min=round_half_up(m.ideal_runtime_min, 2),
        output_qty=m.output_qty,
        defect_qty=m.defect_qty,
    )


class AggregationOrchestrator:
    def __init__(
        self,
        store: OeeStore,
        clock: Callable[[], datetime] = now_local_naive,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._clock = clock
        self._timer = timer

    async def process_shift(self, machine: Machine, d: date, window: ShiftWindow) -> OeeMetricRecord:
        """Compute and persist one (machine, date, shift). Raises StoreError / InvalidInput."""
        intervals = await self._store.fetch_state_intervals(machine.id, window)
        # open intervals end at the window end, or at "now" while the shift is still running
        open_end = min(self._clock(), window.end)
        actual = accumulate_running_minutes(intervals, window, open_end=open_end)

        existing = await self._store.fetch_production_count(machine.id, d, window.shift)
        count = effective_count(existing, machine.id, d, window.shift, actual, machine.tact_time_sec)

        planned = planned_runtime_min(SETTINGS.SHIFT_HOURS, SETTINGS.PLANNED_BREAK_MIN)
        metrics = compute_metrics(actual, planned, count.output_qty, count.defect_qty, machine.tact_time_sec)

        if count.is_estimated:
            await self._store.upsert_production_count(count)
        record = _to_record(machine, d, window, metrics)
        await self._store.upsert_oee_metric_record(record)
        return record

    async def _finish(self, run: AggregationRun, attempts: int = 2) -> bool:
        """Write the final audit state, retrying once. False if the row could not be updated."""
        for i in range(1, attempts + 1):
            try:
                await self._store.write_aggregation_run(run)
                return True
            except StoreError as ex:
                logger.warning("finalize aggregation run id=%s (%s) attempt %d/%d failed: %s",
                               run.id, run.status.value, i, attempts, ex)
        logger.error("aggregation run id=%s left as started", run.id)
        return False

    async def run(self, target_date: Optional[date] = None) -> AggregationResult:
        d = target_date or self._clock().date()
        t0 = self._timer()
        run = AggregationRun(target_date=d, execution_time=self._clock())
        try:
            await self._store.write_aggregation_run(run)
        except StoreError as ex:
            logger.exception("cannot start aggregation run for %s", d)
            return AggregationResult(success=False, date=d, error=str(ex))

        logger.info("aggregation start | date=%s run_id=%s", d, run.id)
        results: List[dict] = []
        try:
            windows = resolve_shift_windows(d)
            try:
                machines = await self._store.list_active_machines()
            except StoreError as ex:
                raise RunFailure(f"cannot list active machines: {ex}") from ex

            for machine in machines:
                for window in windows:
                    try:
                        rec = await self.process_shift(machine, d, window)
                    except (StoreError, InvalidInput) as ex:
                        logger.warning("skip | machine=%s date=%s shift=%s | %s",
                                       machine.id, d, window.shift.value, ex)
                        continue
                    results.append({
                        "machine_id": machine.id,
                        "machine_name": machine.name,
                        "shift": window.shift.value,
                        "availability": rec.availability,
                        "performance": rec.performance,
                        "quality": rec.quality,
                        "oee": rec.oee,
                        "output_qty": rec.output_qty,
                        "defect_qty": rec.defect_qty,
                    })
        except Exception as ex:
            run.status = RunStatus.failed
            run.error_message = str(ex)
            run.execution_time_ms = int((self._timer() - t0) * 1000)
            logger.exception("aggregation failed | date=%s run_id=%s", d, run.id)
            await self._finish(run)
            return AggregationResult(success=False, date=d, error=str(ex), run_id=run.id)

        run.status = RunStatus.completed
        run.processed_records = len(results)
        run.execution_time_ms = int((self._timer() - t0) * 1000)
        if not await self._finish(run):
            return AggregationResult(success=False, date=d, processed_records=len(results),
                                     error="records written but the run log could not be completed",
                                     run_id=run.id)
        logger.info("aggregation done | date=%s processed=%d/%d elapsed_ms=%s",
                    d, len(results), len(machines) * len(windows), run.execution_time_ms)
        return AggregationResult(success=True, date=d, processed_records=len(results),
                                 results=results, run_id=run.id)

    # ---------- batch helpers ----------
    async def missing_dates(self, days_back: int = 7) -> List[date]:
        """
        Dates in [today - days_back, today] whose stored records are below
        MISSING_RECORD_RATIO of (active machines x 2 shifts).
        """
        _check_span(days_back)
        machines = await self._store.list_active_machines()
        expected = len(machines) * 2
        today = self._clock().date()
        out = []
        for i in range(days_back, -1, -1):
            d = today - timedelta(days=i)
            have = await self._store.count_metric_records(d)
            if have < expected * SETTINGS.MISSING_RECORD_RATIO:
                out.append(d)
        logger.info("missing dates (last %d days): %s", days_back, [x.isoformat() for x in out])
        return out

    async def run_many(self, dates: List[date]) -> List[AggregationResult]:
        """Run dates one after another; a failed date does not stop the rest."""
        # days_back=N covers N+1 dates, today included
        if len(dates) > SETTINGS.BACKFILL_MAX_DAYS + 1:
            raise ValueError(f"at most {SETTINGS.BACKFILL_MAX_DAYS + 1} dates per batch (got {len(dates)})")
        out = []
        for d in dates:
            out.append(await self.run(d))
        return out


def _check_span(n: int) -> None:
    if n < 0 or n > SETTINGS.BACKFILL_MAX_DAYS:
        raise ValueError(f"day range must be within 0..{SETTINGS.BACKFILL_MAX_DAYS} (got {n})")


def summarize_results(results: List[AggregationResult]) -> dict:
    ok = [r for r in results if r.success]
    total = len(results)
    return {
        "total_dates": total,
        "successful_dates": len(ok),
        "failed_dates": total - len(ok),
        "total_records_processed": sum(r.processed_records for r in ok),
        "success_rate": (len(ok) / total * 100.0) if total else 0.0,
    }


def status_message(run: AggregationRun) -> str:
    if run.status == RunStatus.started:
        return "Aggregation started..."
    if run.status == RunStatus.completed:
        return f"Aggregation completed: {run.processed_records} records processed"
    return f"Aggregation failed: {run.error_message or 'unknown error'}"
