# =============================
# ======== runtime.py =========
# =============================
"""
Running-time accumulation from machine state intervals.

For each interval in the running state, clip [start, end) to the window and add
the positive part in minutes. An open interval (end=None) ends at `open_end`
(the live "now") or, when not given, at the window end.

Intervals of one machine are expected not to overlap; nothing here merges them,
so overlapping running intervals would be counted twice.
"""
from __future__ import annotations
from datetime import datetime
from typing import Iterable, List, Optional
import logging
import pandas as pd

from oee_api.config import SETTINGS
from oee_api.models import MachineStateInterval, ShiftWindow

logger = logging.getLogger("oee.runtime")


def accumulate_running_minutes(
    intervals: Iterable[MachineStateInterval],
    window: ShiftWindow,
    open_end: Optional[datetime] = None,
    running_state: Optional[str] = None,
) -> float:
    state = running_state or SETTINGS.RUNNING_STATE
    total = 0.0
    for iv in intervals:
        if iv.state != state:
            continue
        end = iv.end if iv.end is not None else (open_end or window.end)
        eff_start = max(iv.start, window.start)
        eff_end = min(end, window.end)
        if eff_end > eff_start:
            total += (eff_end - eff_start).total_seconds() / 60.0
    return total


def intervals_from_frame(df: pd.DataFrame) -> List[MachineStateInterval]:
    """
    DataFrame (machine_id, state, start_time, end_time) -> intervals.
    NaT/None end_time means the interval is still open.
    """
    if df is None or df.empty:
        return []
    out = []
    for r in df.itertuples(index=False):
        end = None if pd.isna(r.end_time) else pd.Timestamp(r.end_time).to_pydatetime()
        out.append(MachineStateInterval(
            machine_id=str(r.machine_id),
            state=str(r.state),
            start=pd.Timestamp(r.start_time).to_pydatetime(),
            end=end,
        ))
    logger.debug("intervals_from_frame: %d rows", len(out))
    return out
