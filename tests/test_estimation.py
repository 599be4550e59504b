# tests/test_estimation.py
from datetime import date

import pytest

from oee_api.errors import InvalidInput
from oee_api.estimation import effective_count, estimate_output_qty
from oee_api.models import ProductionCount, Shift

D = date(2025, 9, 28)


def test_estimate_from_runtime_and_tact():
    assert estimate_output_qty(480, 30) == 960


def test_estimate_is_floored():
    assert estimate_output_qty(1.01, 30) == 2
    assert estimate_output_qty(0.4, 30) == 0


@pytest.mark.parametrize("tact", [0, -1])
def test_estimate_rejects_non_positive_tact(tact):
    with pytest.raises(InvalidInput):
        estimate_output_qty(100, tact)


def test_missing_count_is_estimated_with_zero_defects():
    c = effective_count(None, "M1", D, Shift.day, 480, 30)
    assert (c.output_qty, c.defect_qty, c.is_estimated) == (960, 0, True)
    assert (c.machine_id, c.date, c.shift) == ("M1", D, Shift.day)


def test_operator_count_is_kept():
    real = ProductionCount("M1", D, Shift.day, output_qty=900, defect_qty=45)
    assert effective_count(real, "M1", D, Shift.day, 480, 30) is real


def test_previous_estimate_is_recomputed():
    old = ProductionCount("M1", D, Shift.day, output_qty=960, defect_qty=0, is_estimated=True)
    c = effective_count(old, "M1", D, Shift.day, 240, 30)
    assert c.output_qty == 480 and c.is_estimated
