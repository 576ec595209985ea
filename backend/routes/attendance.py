"""
Attendance routes — per-student, roster and trend summaries.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from core.attendance import (
    PERIOD_FORMATS,
    attendance_by_period,
    overall_attendance_rate,
    summarize_attendance,
    summarize_roster,
)
from core.records import attendance_record_from_mapping
from core.store import PostgresStore
from routes.deps import from_store, get_store, records_from_rows, rows_from_payload

router = APIRouter()


def _records_from_payload(payload: dict):
    return records_from_rows(rows_from_payload(payload), attendance_record_from_mapping)


@router.post("/summary")
async def summary(payload: dict):
    """
    Summary for one student's records.
    Expects: { "data": [ { "student_id", "date", "status" }, ... ] }
    """
    records = _records_from_payload(payload)
    return summarize_attendance(records).as_dict()


@router.post("/roster")
async def roster(payload: dict):
    """
    Per-student summaries for a whole attendance table.
    Optional "student_ids" restricts output to the active roster.
    """
    records = _records_from_payload(payload)
    student_ids = payload.get("student_ids")
    summaries = summarize_roster(records, student_ids=student_ids)
    return {
        "students": [
            {"student_id": sid, **s.as_dict()} for sid, s in summaries.items()
        ],
    }


@router.post("/trends")
async def trends(payload: dict):
    """Attendance per day or month. Optional "period": "day" | "month"."""
    records = _records_from_payload(payload)
    period = payload.get("period", "month")
    if period not in PERIOD_FORMATS:
        raise HTTPException(400, f"Unsupported period '{period}'.")
    return {
        "period": period,
        "trends": attendance_by_period(records, period=period),
        "overall_percentage": overall_attendance_rate(records),
    }


@router.get("/students/{student_id}")
def student_summary(
    student_id: str,
    institute_id: str = Query(...),
    store: PostgresStore = Depends(get_store),
    full: bool = False,
):
    """Dashboard attendance figure for one student, read from the database."""
    records = from_store(store.attendance_records, institute_id, student_ids=[student_id])
    result = summarize_attendance(records)
    return result.as_dict() if full else result.as_compact_dict()
