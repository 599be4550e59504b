# db.py
"""
DB access via SQLAlchemy Engine (MySQL + PyMySQL by default).
- engine(): process-wide Engine built lazily from SETTINGS.DATABASE_URL
- query_df(stmt, params, eng): run a SELECT (Core statement or SQL text) and return a DataFrame
"""
from __future__ import annotations
from typing import Optional, Union
import logging
import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import Executable
from oee_api.config import SETTINGS

logger = logging.getLogger("oee.db")

# read_sql re-raises driver/SQLAlchemy failures as pandas DatabaseError
READ_ERRORS = (SQLAlchemyError, pd.errors.DatabaseError)

# ---------- Engine ----------
_engine: Optional[Engine] = None

def engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_engine(
            SETTINGS.DATABASE_URL,
            pool_pre_ping=True,
            pool_recycle=1800,   # recycle stale conns
            future=True,
        )
        logger.info("engine created: %s", _engine.url.render_as_string(hide_password=True))
    return _engine

# ---------- Public API ----------
def query_df(
    stmt: Union[str, Executable],
    params: Optional[dict] = None,
    eng: Optional[Engine] = None,
) -> pd.DataFrame:
    """
    Execute a SELECT and return a DataFrame.
    - str -> wrapped in text(), params are :named binds
    - Core statement -> executed as-is (binds already embedded)
    """
    if isinstance(stmt, str):
        stmt = text(stmt)
    with (eng or engine()).connect() as conn:
        logger.debug("SQL: %s | binds=%s", stmt, params)
        df = pd.read_sql(stmt, conn, params=params)
    return df
