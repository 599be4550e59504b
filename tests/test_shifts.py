# tests/test_shifts.py
from datetime import date, datetime

import pytest

from oee_api.models import Shift
from oee_api.shifts import resolve_shift_windows, shift_window_at


def test_two_contiguous_windows():
    day, night = resolve_shift_windows(date(2025, 9, 28))
    assert day.shift == Shift.day and night.shift == Shift.night
    assert day.start == datetime(2025, 9, 28, 8, 0)
    assert day.end == datetime(2025, 9, 28, 20, 0)
    assert night.start == day.end
    assert night.end == datetime(2025, 9, 29, 8, 0)
    assert day.minutes == night.minutes == 720


def test_night_window_crosses_month_end():
    _, night = resolve_shift_windows(date(2025, 9, 30))
    assert night.end == datetime(2025, 10, 1, 8, 0)


@pytest.mark.parametrize("now,exp_date,exp_shift", [
    (datetime(2025, 9, 28, 8, 0, 0), date(2025, 9, 28), Shift.day),
    (datetime(2025, 9, 28, 13, 45), date(2025, 9, 28), Shift.day),
    (datetime(2025, 9, 28, 19, 59, 59), date(2025, 9, 28), Shift.day),
    (datetime(2025, 9, 28, 20, 0, 0), date(2025, 9, 28), Shift.night),
    (datetime(2025, 9, 28, 23, 30), date(2025, 9, 28), Shift.night),
    (datetime(2025, 9, 29, 0, 0, 0), date(2025, 9, 28), Shift.night),
    (datetime(2025, 9, 29, 7, 59, 59), date(2025, 9, 28), Shift.night),
])
def test_window_containing_now(now, exp_date, exp_shift):
    d, w = shift_window_at(now)
    assert d == exp_date
    assert w.shift == exp_shift
    assert w.contains(now)


def test_custom_boundaries():
    day, night = resolve_shift_windows(date(2025, 9, 28), day_start_hour=6, shift_hours=12)
    assert day.start == datetime(2025, 9, 28, 6, 0)
    assert night.end == datetime(2025, 9, 29, 6, 0)
    d, w = shift_window_at(datetime(2025, 9, 29, 5, 0), day_start_hour=6)
    assert d == date(2025, 9, 28) and w.shift == Shift.night
