# =============================
# ========== api.py ==========
# =============================
"""
FastAPI application for the shift OEE engine.
- POST /oee/aggregation            : run the daily aggregation for one date (default: today, local)
- POST /oee/aggregation/batch      : run several dates (explicit list, last N days, or only missing ones)
- GET  /oee/aggregation/logs       : aggregation run log, newest first
- GET  /oee/aggregation/status/{d} : latest run for a date
- GET  /oee/aggregation/missing    : dates with too few stored records
- GET  /oee/machines/{id}/realtime : live metrics for the shift containing "now" (cached)
Timezone: SETTINGS.TIMEZONE; timestamps in local 'YYYY-MM-DD HH:MM:SS', dates 'YYYY-MM-DD'.
"""
from fastapi import FastAPI, Depends, Query, Path, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional, List
from datetime import timedelta
import logging

from oee_api.aggregation import AggregationOrchestrator, summarize_results, status_message
from oee_api.cache import RealtimeCache
from oee_api.config import SETTINGS
from oee_api.errors import StoreError
from oee_api.models import AggregationRun
from oee_api.realtime import RealtimeCalculator
from oee_api.schemas import (
    AggregationResponse, BatchRequest, BatchResponse, MissingDates, RealtimeMetrics, RunLogEntry,
)
from oee_api.store import OeeStore, SqlStore
from oee_api.utils import now_local, to_local_str, sanitize_json_deep, parse_date, today_local

# --------------------------------------------------------------
# Logging
# --------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("oee.api")

app = FastAPI(
    title="Shift OEE Service",
    version="1.0",
    openapi_tags=[
        {
            "name": "Aggregation",
            "description": "Per machine / date / shift OEE aggregation with an audit log of every run.",
        },
        {
            "name": "Realtime",
            "description": "Live Availability / Performance / Quality / OEE for the current shift.",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --------------------------------------------------------------
# Dependencies (overridable in tests)
# --------------------------------------------------------------
_STORE: Optional[OeeStore] = None
_REALTIME: Optional[RealtimeCalculator] = None

def get_store() -> OeeStore:
    global _STORE
    if _STORE is None:
        _STORE = SqlStore()
    return _STORE

def get_orchestrator(store: OeeStore = Depends(get_store)) -> AggregationOrchestrator:
    return AggregationOrchestrator(store)

def get_realtime(store: OeeStore = Depends(get_store)) -> RealtimeCalculator:
    global _REALTIME
    if _REALTIME is None:
        cache = RealtimeCache(
            ttl_sec=SETTINGS.REALTIME_CACHE_TTL_SEC,
            bucket_sec=SETTINGS.REALTIME_CACHE_BUCKET_SEC,
            sweep_every=SETTINGS.REALTIME_CACHE_SWEEP_EVERY,
        )
        _REALTIME = RealtimeCalculator(store, cache)
    return _REALTIME

# --------------------------------------------------------------
# Optional API key (disabled if not set)
# --------------------------------------------------------------
async def _check_api_key(x_api_key: Optional[str] = Header(None, convert_underscores=False)):
    if not SETTINGS.API_KEY:
        return  # feature disabled
    if x_api_key != SETTINGS.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")

@app.exception_handler(StoreError)
async def _store_error_handler(request: Request, ex: StoreError):
    logger.error("datastore error on %s: %s", request.url.path, ex)
    return JSONResponse(status_code=503, content={"detail": f"datastore unavailable: {ex}"})

def _parse_date_or_400(s: str):
    try:
        return parse_date(s)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date '{s}', expected YYYY-MM-DD")

def _run_to_dict(run: AggregationRun) -> dict:
    return sanitize_json_deep({
        "id": run.id,
        "execution_date": run.execution_time,
        "target_date": run.target_date,
        "status": run.status,
        "processed_records": run.processed_records,
        "error_message": run.error_message,
        "execution_time_ms": run.execution_time_ms,
        "created_at": run.created_at,
        "message": status_message(run),
    })


@app.get("/health")
def health():
    """Simple health check."""
    return {"status": "ok", "time": to_local_str(now_local())}


@app.post(
    "/oee/aggregation",
    response_model=AggregationResponse,
    response_model_exclude_none=True,
    summary="Run the daily OEE aggregation for one date.",
    tags=["Aggregation"],
    dependencies=[Depends(_check_api_key)],
)
async def trigger_aggregation(
    date: Optional[str] = Query(None, description="Target date 'YYYY-MM-DD' (default: today, local)."),
    orch: AggregationOrchestrator = Depends(get_orchestrator),
):
    """
    Examples:
    - POST /oee/aggregation
    - POST /oee/aggregation?date=2025-09-28
    Returns 500 with {success: false, error} when the run fails.
    """
    d = _parse_date_or_400(date) if date else today_local()
    logger.info("/oee/aggregation | date=%s", d)
    result = await orch.run(d)
    payload = sanitize_json_deep(result.to_dict())
    if not result.success:
        return JSONResponse(status_code=500, content=payload)
    return payload


@app.post(
    "/oee/aggregation/batch",
    response_model=BatchResponse,
    summary="Run the aggregation for several dates, one after another.",
    tags=["Aggregation"],
    dependencies=[Depends(_check_api_key)],
)
async def trigger_batch(
    body: Optional[BatchRequest] = None,
    days_back: Optional[int] = Query(None, ge=0, description="Use the last N days (plus today) when no body is sent."),
    missing_only: bool = Query(False, description="With days_back: only dates with missing records."),
    orch: AggregationOrchestrator = Depends(get_orchestrator),
):
    try:
        if body is not None and body.dates:
            dates = [_parse_date_or_400(s) for s in body.dates]
        elif days_back is not None:
            if missing_only:
                dates = await orch.missing_dates(days_back)
            else:
                today = today_local()
                dates = [today - timedelta(days=i) for i in range(days_back, -1, -1)]
        else:
            raise HTTPException(status_code=400, detail="Send a 'dates' body or the days_back query")
        results = await orch.run_many(dates)
    except ValueError as ex:
        raise HTTPException(status_code=400, detail=str(ex))
    return {
        "results": [sanitize_json_deep(r.to_dict()) for r in results],
        "summary": summarize_results(results),
    }


@app.get(
    "/oee/aggregation/logs",
    response_model=List[RunLogEntry],
    response_model_exclude_none=True,
    summary="Aggregation run log, newest first.",
    tags=["Aggregation"],
    dependencies=[Depends(_check_api_key)],
)
async def get_aggregation_logs(
    limit: int = Query(SETTINGS.DEFAULT_LOG_LIMIT, ge=1, le=1000),
    target_date: Optional[str] = Query(None, description="Only runs for this date 'YYYY-MM-DD'."),
    store: OeeStore = Depends(get_store),
):
    d = _parse_date_or_400(target_date) if target_date else None
    runs = await store.list_aggregation_runs(limit, d)
    return [_run_to_dict(r) for r in runs]


@app.get(
    "/oee/aggregation/status/{target_date}",
    response_model=RunLogEntry,
    response_model_exclude_none=True,
    summary="Latest aggregation run for a date.",
    tags=["Aggregation"],
    dependencies=[Depends(_check_api_key)],
)
async def get_aggregation_status(
    target_date: str = Path(..., description="'YYYY-MM-DD'"),
    store: OeeStore = Depends(get_store),
):
    d = _parse_date_or_400(target_date)
    runs = await store.list_aggregation_runs(1, d)
    if not runs:
        raise HTTPException(status_code=404, detail=f"No aggregation run for {d.isoformat()}")
    return _run_to_dict(runs[0])


@app.get(
    "/oee/aggregation/missing",
    response_model=MissingDates,
    summary="Dates whose stored records are below the expected share.",
    tags=["Aggregation"],
    dependencies=[Depends(_check_api_key)],
)
async def get_missing_dates(
    days_back: int = Query(7, ge=0),
    orch: AggregationOrchestrator = Depends(get_orchestrator),
):
    try:
        dates = await orch.missing_dates(days_back)
    except ValueError as ex:
        raise HTTPException(status_code=400, detail=str(ex))
    return {"days_back": days_back, "dates": [d.isoformat() for d in dates]}


@app.get(
    "/oee/machines/{machine_id}/realtime",
    response_model=RealtimeMetrics,
    summary="Live OEE for the shift containing now.",
    tags=["Realtime"],
    dependencies=[Depends(_check_api_key)],
)
async def get_realtime_metrics(
    machine_id: str = Path(..., description="Machine ID"),
    rt: RealtimeCalculator = Depends(get_realtime),
):
    result = await rt.current_metrics(machine_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Machine not found")
    return sanitize_json_deep(result)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("oee_api.api:app", host="0.0.0.0", port=8000)
