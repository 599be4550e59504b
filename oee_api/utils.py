# =============================
# ========= utils.py ==========
# =============================
"""Utilities: time helpers, date parsing, rounding, JSON sanitation.
"""
from __future__ import annotations
from typing import Any
from datetime import datetime, date
from decimal import Decimal, ROUND_HALF_UP
import math
import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo
from enum import Enum
from oee_api.config import SETTINGS

# ---------------- Time helpers ----------------

def tz() -> ZoneInfo:
    return ZoneInfo(SETTINGS.TIMEZONE)

def now_local() -> datetime:
    return datetime.now(tz())

def now_local_naive() -> datetime:
    """Plant-local wall clock without tzinfo (the datastore convention)."""
    return now_local().replace(tzinfo=None, microsecond=0)

def today_local() -> date:
    return now_local().date()

def to_local_str(dt: datetime) -> str:
    """
    Format 'YYYY-MM-DD HH:MM:SS' in local time, without offset.
    - pandas.Timestamp -> datetime
    - naive -> assumed local
    - aware -> converted to local
    """
    if dt is None:
        return None
    if isinstance(dt, pd.Timestamp):
        dt = dt.to_pydatetime()
    if dt.tzinfo is None:
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    return dt.astimezone(tz()).strftime("%Y-%m-%d %H:%M:%S")


def parse_date(s: str) -> date:
    """Parse 'YYYY-MM-DD'. Raises ValueError on anything else."""
    return datetime.strptime(s.strip(), "%Y-%m-%d").date()


# ---------------- Numbers ----------------

def round_half_up(x: float, ndigits: int) -> float:
    """Decimal rounding (0.0005 -> 0.001), unlike built-in round()'s banker's rounding."""
    q = Decimal(1).scaleb(-ndigits)
    return float(Decimal(repr(float(x))).quantize(q, rounding=ROUND_HALF_UP))


# ---------------- JSON sanitizer ----------------

def sanitize_json_deep(obj: Any) -> Any:
    """Recursively sanitize an object for JSON encoding.
    - Convert NaN/Inf to None
    - Convert numpy scalars to Python scalars
    - Convert Decimal to float
    - Enums to their value
    - Datetimes to local 'YYYY-MM-DD HH:MM:SS', dates to 'YYYY-MM-DD'
    """
    if obj is None:
        return None
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    if isinstance(obj, (np.floating,)):
        v = float(obj)
        return None if (math.isnan(v) or math.isinf(v)) else v
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, (datetime, pd.Timestamp)):
        return to_local_str(obj)
    if isinstance(obj, date):
        return obj.strftime("%Y-%m-%d")
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [sanitize_json_deep(x) for x in obj]
    if isinstance(obj, dict):
        return {k: sanitize_json_deep(v) for k, v in obj.items()}
    return obj
