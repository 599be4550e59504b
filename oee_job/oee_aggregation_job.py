"""
oee_aggregation_job.py

Daily OEE aggregation job:
- Resolves the target date (argv[1] / AGG_TARGET_DATE / today, local)
- Runs the aggregation for every active machine x day/night shift
- Or, with AGG_BACKFILL_MISSING=1, re-runs every date of the last AGG_DAYS_BACK
  days whose stored records are incomplete

Meant for an external scheduler (cron / Windows Task Scheduler). Exit code 1 if any run failed.
"""

import os
import sys
import asyncio
import logging
from datetime import date
from typing import List, Optional

from oee_api.aggregation import AggregationOrchestrator, summarize_results, AggregationResult
from oee_api.store import SqlStore
from oee_api.utils import parse_date, today_local

# ============================================================
# CONFIG
# ============================================================
TARGET_DATE_ENV = os.getenv("AGG_TARGET_DATE", "")
BACKFILL_MISSING = int(os.getenv("AGG_BACKFILL_MISSING", "0"))  # 1=run missing dates
DAYS_BACK = int(os.getenv("AGG_DAYS_BACK", "7"))

logger = logging.getLogger("oee.job")

# ============================================================
# HELPERS
# ============================================================
def resolve_target_date(argv: List[str], env_value: str = TARGET_DATE_ENV) -> date:
    """argv[1] wins over the env var; both empty -> today (local)."""
    raw = argv[1] if len(argv) > 1 else env_value
    if raw and raw.strip():
        return parse_date(raw)
    return today_local()

async def run_job(
    orch: AggregationOrchestrator,
    target: Optional[date],
    backfill_missing: bool = False,
    days_back: int = DAYS_BACK,
) -> List[AggregationResult]:
    if backfill_missing:
        dates = await orch.missing_dates(days_back)
        if not dates:
            logger.info("no missing dates in the last %d days", days_back)
            return []
        results = await orch.run_many(dates)
        logger.info("backfill summary: %s", summarize_results(results))
        return results
    return [await orch.run(target)]

# ============================================================
# MAIN
# ============================================================
def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [oee_aggregation_job] %(levelname)s: %(message)s",
    )
    argv = sys.argv if argv is None else argv
    try:
        target = resolve_target_date(argv)
    except ValueError as e:
        logger.error("invalid target date: %s", e)
        return 2

    orch = AggregationOrchestrator(SqlStore())
    try:
        results = asyncio.run(run_job(orch, target, bool(BACKFILL_MISSING), DAYS_BACK))
    except Exception as e:
        logger.exception("Unhandled exception in oee_aggregation_job: %s", e)
        return 1

    for r in results:
        if r.success:
            logger.info("date=%s processed=%d", r.date, r.processed_records)
        else:
            logger.error("date=%s failed: %s", r.date, r.error)
    return 0 if all(r.success for r in results) else 1

if __name__ == "__main__":
    sys.exit(main())
