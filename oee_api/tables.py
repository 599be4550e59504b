# =============================
# ========= tables.py =========
# =============================
"""
Table definitions (SQLAlchemy Core).

The natural key (machine_id, date, shift) is unique on both production_counts
and oee_metric_records; concurrent writers on the same key resolve as
"last write wins".
"""
from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Float, Boolean, Date, DateTime, Text,
    UniqueConstraint, Index,
)

metadata = MetaData()

machines = Table(
    "machines", metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255)),
    Column("default_tact_time", Float, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
)

machine_logs = Table(
    "machine_logs", metadata,
    Column("log_id", Integer, primary_key=True, autoincrement=True),
    Column("machine_id", String(64), nullable=False),
    Column("state", String(64), nullable=False),
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime, nullable=True),
    Index("ix_machine_logs_machine_start", "machine_id", "start_time"),
)

production_counts = Table(
    "production_counts", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("machine_id", String(64), nullable=False),
    Column("date", Date, nullable=False),
    Column("shift", String(8), nullable=False),
    Column("output_qty", Integer, nullable=False, default=0),
    Column("defect_qty", Integer, nullable=False, default=0),
    Column("is_estimated", Boolean, nullable=False, default=False),
    Column("updated_at", DateTime),
    UniqueConstraint("machine_id", "date", "shift", name="uq_production_counts_key"),
)

oee_metric_records = Table(
    "oee_metric_records", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("machine_id", String(64), nullable=False),
    Column("date", Date, nullable=False),
    Column("shift", String(8), nullable=False),
    Column("availability", Float, nullable=False),
    Column("performance", Float, nullable=False),
    Column("quality", Float, nullable=False),
    Column("oee", Float, nullable=False),
    Column("actual_runtime_min", Float, nullable=False),
    Column("planned_runtime_min", Float, nullable=False),
    Column("ideal_runtime_min", Float, nullable=False),
    Column("output_qty", Integer, nullable=False),
    Column("defect_qty", Integer, nullable=False),
    Column("updated_at", DateTime),
    UniqueConstraint("machine_id", "date", "shift", name="uq_oee_metric_records_key"),
)

oee_aggregation_log = Table(
    "oee_aggregation_log", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("execution_date", DateTime, nullable=False),
    Column("target_date", Date, nullable=False),
    Column("status", String(16), nullable=False),
    Column("processed_records", Integer, nullable=False, default=0),
    Column("error_message", Text),
    Column("execution_time_ms", Integer),
    Column("created_at", DateTime, nullable=False),
    Index("ix_oee_aggregation_log_target", "target_date", "created_at"),
)
