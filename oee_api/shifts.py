# =============================
# ========= shifts.py =========
# =============================
"""Shift windows.

Two contiguous 12h windows per calendar date D (defaults):
  day   = [D 08:00, D 20:00)
  night = [D 20:00, D+1 08:00)
Boundaries come from configuration, never from data.
"""
from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from oee_api.config import SETTINGS
from oee_api.models import Shift, ShiftWindow


def _start_hour(day_start_hour: Optional[int]) -> int:
    return SETTINGS.DAY_SHIFT_START_HOUR if day_start_hour is None else day_start_hour


def _shift_hours(shift_hours: Optional[int]) -> int:
    return SETTINGS.SHIFT_HOURS if shift_hours is None else shift_hours


def resolve_shift_windows(
    d: date,
    day_start_hour: Optional[int] = None,
    shift_hours: Optional[int] = None,
) -> Tuple[ShiftWindow, ShiftWindow]:
    """Return (day window, night window) for calendar date d."""
    h = _start_hour(day_start_hour)
    span = timedelta(hours=_shift_hours(shift_hours))
    day_start = datetime.combine(d, time(hour=h))
    night_start = day_start + span
    return (
        ShiftWindow(Shift.day, day_start, night_start),
        ShiftWindow(Shift.night, night_start, night_start + span),
    )


def shift_window_at(
    now: datetime,
    day_start_hour: Optional[int] = None,
    shift_hours: Optional[int] = None,
) -> Tuple[date, ShiftWindow]:
    """
    Shift window containing `now`, with the calendar date the shift belongs to.
    Before the day-shift start the night shift is anchored to the previous day.
    """
    h = _start_hour(day_start_hour)
    night_hour = h + _shift_hours(shift_hours)
    if h <= now.hour < night_hour:
        shift_date = now.date()
        window = resolve_shift_windows(shift_date, h, shift_hours)[0]
    else:
        shift_date = now.date() if now.hour >= night_hour else now.date() - timedelta(days=1)
        window = resolve_shift_windows(shift_date, h, shift_hours)[1]
    return shift_date, window
