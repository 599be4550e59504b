# =============================
# ========= store.py ==========
# =============================
"""
Datastore boundary of the engine.

`OeeStore` is what the orchestrator and the realtime path depend on; `SqlStore`
implements it on SQLAlchemy. Calls are `async` request/response; the SQL
implementation runs them on the caller's loop, one at a time.

Every SQLAlchemy failure surfaces as FetchError (reads) or WriteError (writes).
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional
import logging

from sqlalchemy import and_, or_, select, insert, update, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from oee_api import db
from oee_api import tables as T
from oee_api.errors import FetchError, WriteError
from oee_api.models import (
    AggregationRun, Machine, MachineStateInterval, OeeMetricRecord,
    ProductionCount, RunStatus, Shift, ShiftWindow,
)
from oee_api.runtime import intervals_from_frame
from oee_api.utils import now_local_naive

logger = logging.getLogger("oee.store")


class OeeStore(ABC):

    @abstractmethod
    async def list_active_machines(self) -> List[Machine]: ...

    @abstractmethod
    async def get_machine(self, machine_id: str) -> Optional[Machine]: ...

    @abstractmethod
    async def fetch_state_intervals(self, machine_id: str, window: ShiftWindow) -> List[MachineStateInterval]:
        """Intervals of the machine whose [start, end) overlaps the window (open ones included)."""

    @abstractmethod
    async def fetch_production_count(self, machine_id: str, d: date, shift: Shift) -> Optional[ProductionCount]: ...

    @abstractmethod
    async def upsert_production_count(self, count: ProductionCount) -> None: ...

    @abstractmethod
    async def upsert_oee_metric_record(self, record: OeeMetricRecord) -> None: ...

    @abstractmethod
    async def write_aggregation_run(self, run: AggregationRun) -> int:
        """Insert when run.id is None (sets run.id), otherwise update by id. Returns the id."""

    @abstractmethod
    async def list_aggregation_runs(self, limit: int, target_date: Optional[date] = None) -> List[AggregationRun]:
        """Newest first."""

    @abstractmethod
    async def count_metric_records(self, d: date) -> int: ...


class SqlStore(OeeStore):
    def __init__(self, eng: Optional[Engine] = None):
        self._engine = eng

    @property
    def engine(self) -> Engine:
        return self._engine or db.engine()

    def create_schema(self) -> None:
        T.metadata.create_all(self.engine)

    # ---------- reads ----------
    async def list_active_machines(self) -> List[Machine]:
        stmt = select(T.machines.c.id, T.machines.c.name, T.machines.c.default_tact_time) \
            .where(T.machines.c.is_active.is_(True)) \
            .order_by(T.machines.c.id)
        try:
            df = db.query_df(stmt, eng=self.engine)
        except db.READ_ERRORS as ex:
            raise FetchError(f"cannot list machines: {ex}") from ex
        machines = [Machine(id=str(r.id), name=r.name, tact_time_sec=float(r.default_tact_time))
                    for r in df.itertuples(index=False)]
        logger.info("active machines: %d", len(machines))
        return machines

    async def get_machine(self, machine_id: str) -> Optional[Machine]:
        stmt = select(T.machines).where(T.machines.c.id == machine_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as ex:
            raise FetchError(f"cannot read machine {machine_id}: {ex}") from ex
        if row is None:
            return None
        return Machine(id=str(row["id"]), name=row["name"], tact_time_sec=float(row["default_tact_time"]))

    async def fetch_state_intervals(self, machine_id: str, window: ShiftWindow) -> List[MachineStateInterval]:
        c = T.machine_logs.c
        stmt = select(c.machine_id, c.state, c.start_time, c.end_time) \
            .where(and_(
                c.machine_id == machine_id,
                c.start_time < window.end,
                or_(c.end_time.is_(None), c.end_time > window.start),
            )) \
            .order_by(c.start_time)
        try:
            df = db.query_df(stmt, eng=self.engine)
        except db.READ_ERRORS as ex:
            raise FetchError(f"cannot fetch logs for {machine_id} {window.shift.value}: {ex}") from ex
        return intervals_from_frame(df)

    async def fetch_production_count(self, machine_id: str, d: date, shift: Shift) -> Optional[ProductionCount]:
        c = T.production_counts.c
        stmt = select(T.production_counts).where(and_(
            c.machine_id == machine_id, c.date == d, c.shift == shift.value))
        try:
            with self.engine.connect() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as ex:
            raise FetchError(f"cannot fetch production count for {machine_id} {d} {shift.value}: {ex}") from ex
        if row is None:
            return None
        return ProductionCount(
            machine_id=str(row["machine_id"]),
            date=row["date"],
            shift=Shift(row["shift"]),
            output_qty=int(row["output_qty"] or 0),
            defect_qty=int(row["defect_qty"] or 0),
            is_estimated=bool(row["is_estimated"]),
        )

    async def list_aggregation_runs(self, limit: int, target_date: Optional[date] = None) -> List[AggregationRun]:
        c = T.oee_aggregation_log.c
        stmt = select(T.oee_aggregation_log)
        if target_date is not None:
            stmt = stmt.where(c.target_date == target_date)
        stmt = stmt.order_by(c.created_at.desc(), c.id.desc()).limit(int(limit))
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as ex:
            raise FetchError(f"cannot read aggregation log: {ex}") from ex
        return [
            AggregationRun(
                id=int(r["id"]),
                execution_time=r["execution_date"],
                target_date=r["target_date"],
                status=RunStatus(r["status"]),
                processed_records=int(r["processed_records"] or 0),
                error_message=r["error_message"],
                execution_time_ms=r["execution_time_ms"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    async def count_metric_records(self, d: date) -> int:
        stmt = select(func.count()).select_from(T.oee_metric_records) \
            .where(T.oee_metric_records.c.date == d)
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as ex:
            raise FetchError(f"cannot count records for {d}: {ex}") from ex

    # ---------- writes ----------
    def _upsert(self, table, key: dict, values: dict) -> None:
        """Update the row with this natural key, insert it if absent."""
        cond = and_(*(table.c[k] == v for k, v in key.items()))
        try:
            try:
                with self.engine.begin() as conn:
                    row_id = conn.execute(select(table.c.id).where(cond)).scalar()
                    if row_id is None:
                        conn.execute(insert(table).values(**key, **values))
                    else:
                        conn.execute(update(table).where(table.c.id == row_id).values(**values))
            except IntegrityError:
                # a concurrent writer inserted the same key first: last write wins
                logger.warning("upsert race on %s %s, retrying as update", table.name, key)
                with self.engine.begin() as conn:
                    conn.execute(update(table).where(cond).values(**values))
        except SQLAlchemyError as ex:
            raise WriteError(f"upsert {table.name} {key} failed: {ex}") from ex

    async def upsert_production_count(self, count: ProductionCount) -> None:
        self._upsert(
            T.production_counts,
            {"machine_id": count.machine_id, "date": count.date, "shift": count.shift.value},
            {
                "output_qty": int(count.output_qty),
                "defect_qty": int(count.defect_qty),
                "is_estimated": bool(count.is_estimated),
                "updated_at": now_local_naive(),
            },
        )

    async def upsert_oee_metric_record(self, record: OeeMetricRecord) -> None:
        values = record.to_dict()
        key = {k: values.pop(k) for k in ("machine_id", "date", "shift")}
        values["updated_at"] = now_local_naive()
        self._upsert(T.oee_metric_records, key, values)

    async def write_aggregation_run(self, run: AggregationRun) -> int:
        values = {
            "execution_date": run.execution_time,
            "target_date": run.target_date,
            "status": run.status.value,
            "processed_records": int(run.processed_records),
            "error_message": run.error_message,
            "execution_time_ms": run.execution_time_ms,
        }
        try:
            with self.engine.begin() as conn:
                if run.id is None:
                    run.created_at = run.created_at or now_local_naive()
                    res = conn.execute(insert(T.oee_aggregation_log).values(**values, created_at=run.created_at))
                    run.id = int(res.inserted_primary_key[0])
                else:
                    conn.execute(update(T.oee_aggregation_log)
                                 .where(T.oee_aggregation_log.c.id == run.id)
                                 .values(**values))
        except SQLAlchemyError as ex:
            raise WriteError(f"cannot write aggregation run for {run.target_date}: {ex}") from ex
        return run.id
