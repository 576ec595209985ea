"""
Analytics routes — at-risk detection and roster exports.
"""

import os
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.attendance import summarize_roster
from core.export import export_roster_csv, export_roster_excel, roster_frame
from core.records import attendance_record_from_mapping, exam_record_from_mapping
from core.risk import compute_at_risk
from core.store import PostgresStore
from routes.deps import (
    from_store,
    get_store,
    optional_rows_from_payload,
    records_from_rows,
    rows_from_payload,
    threshold_settings,
)

router = APIRouter()

EXPORT_DIR = Path(__file__).resolve().parent.parent / "uploads" / "exports"

EXPORT_FORMATS = {
    "csv": ("text/csv", ".csv"),
    "excel": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", ".xlsx"),
}


def _at_risk_limit() -> int:
    return int(os.getenv("AT_RISK_LIMIT", "50"))


def _safe_unlink(path: str):
    """Best-effort file deletion after response is sent."""
    Path(path).unlink(missing_ok=True)


def _roster_from_payload(payload: dict, attendance):
    """Explicit "students" list, or every student seen in the attendance rows."""
    students = payload.get("students")
    if students:
        if not all(isinstance(s, dict) and s.get("student_id") for s in students):
            raise HTTPException(422, "Each student needs a 'student_id'.")
        return students
    seen = dict.fromkeys(r.student_id for r in attendance)
    return [{"student_id": sid} for sid in seen]


@router.post("/at-risk")
async def at_risk(payload: dict):
    """
    At-risk students from attendance and exam rows.
    Expects: { "attendance": [...], "exams": [...], "students": [...] (optional) }
    """
    attendance = records_from_rows(
        rows_from_payload(payload, "attendance"), attendance_record_from_mapping
    )
    exams = records_from_rows(
        optional_rows_from_payload(payload, "exams"), exam_record_from_mapping
    )
    students = _roster_from_payload(payload, attendance)
    return compute_at_risk(
        students, attendance, exams,
        thresholds=threshold_settings(),
        limit=_at_risk_limit(),
    )


@router.get("/at-risk")
def at_risk_from_db(
    institute_id: str = Query(...),
    store: PostgresStore = Depends(get_store),
):
    """At-risk students for one institute, read from the database."""
    students = store.active_students(institute_id)
    ids = [str(s["student_id"]) for s in students]
    attendance = from_store(store.attendance_records, institute_id, student_ids=ids)
    exams = from_store(store.exam_records, institute_id)
    return compute_at_risk(
        students, attendance, exams,
        thresholds=threshold_settings(),
        limit=_at_risk_limit(),
    )


@router.post("/export/{fmt}")
async def export_roster(fmt: str, payload: dict):
    """
    Download roster attendance summaries as CSV or Excel.
    Expects: { "data": [...attendance rows...], "students": [...] (optional) }
    """
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(400, f"Invalid export format. Valid: {', '.join(EXPORT_FORMATS)}")

    attendance = records_from_rows(rows_from_payload(payload), attendance_record_from_mapping)
    students = _roster_from_payload(payload, attendance)
    summaries = summarize_roster(attendance, student_ids=[str(s["student_id"]) for s in students])
    df = roster_frame(summaries, students)

    media_type, suffix = EXPORT_FORMATS[fmt]
    EXPORT_DIR.mkdir(parents=True, exist_ok=True)
    report_id = str(uuid.uuid4())[:8]
    output_path = EXPORT_DIR / f"attendance_{report_id}{suffix}"

    if fmt == "csv":
        export_roster_csv(str(output_path), df)
    else:
        export_roster_excel(
            str(output_path), df,
            school_name=os.getenv("SCHOOL_NAME", "My School"),
            warning_threshold=threshold_settings()["attendance_warning"],
        )

    return FileResponse(
        str(output_path),
        media_type=media_type,
        filename=f"attendance_export_{report_id}{suffix}",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
