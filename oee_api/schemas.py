# oee_api/schemas.py
from __future__ import annotations
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict

ShiftName = Literal["day", "night"]
RunStatusName = Literal["started", "completed", "failed"]

class ShiftResult(BaseModel):
    machine_id: str
    machine_name: Optional[str] = None
    shift: ShiftName
    availability: float
    performance: float
    quality: float
    oee: float
    output_qty: int
    defect_qty: int

class AggregationResponse(BaseModel):
    """
    Batch trigger contract: {success, date, processed_records, results} or {success: false, error}.
    Ratios are in [0, 1].
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "date": "2025-09-28",
                "processed_records": 2,
                "run_id": 17,
                "results": [
                    {
                        "machine_id": "M-101",
                        "machine_name": "Press 1",
                        "shift": "day",
                        "availability": 0.7273,
                        "performance": 1.0,
                        "quality": 1.0,
                        "oee": 0.727,
                        "output_qty": 960,
                        "defect_qty": 0
                    }
                ]
            }
        }
    )

    success: bool
    date: Optional[str] = Field(default=None, description="Target date 'YYYY-MM-DD'.")
    processed_records: int = 0
    run_id: Optional[int] = None
    results: Optional[List[ShiftResult]] = None
    error: Optional[str] = None

class BatchRequest(BaseModel):
    dates: List[str] = Field(description="Target dates 'YYYY-MM-DD'.")

class BatchSummary(BaseModel):
    total_dates: int
    successful_dates: int
    failed_dates: int
    total_records_processed: int
    success_rate: float

class BatchResponse(BaseModel):
    results: List[AggregationResponse]
    summary: BatchSummary

class RunLogEntry(BaseModel):
    id: int
    execution_date: str = Field(description="Local time 'YYYY-MM-DD HH:MM:SS'.")
    target_date: str
    status: RunStatusName
    processed_records: int
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None
    created_at: Optional[str] = None
    message: str

class MissingDates(BaseModel):
    days_back: int
    dates: List[str]

class RealtimeMetrics(BaseModel):
    machine_id: str
    machine_name: Optional[str] = None
    timestamp: str
    date: str
    shift: ShiftName
    shift_start: str
    shift_end: str
    estimated: bool
    availability: float
    performance: float
    quality: float
    oee: float
    actual_runtime_min: float
    planned_runtime_min: float
    ideal_runtime_min: float
    output_qty: int
    defect_qty: int
