"""
Performance routes — subject-wise scores and exam trends.
"""

from fastapi import APIRouter, Depends, Query

from core.performance import aggregate_subjects, order_latest_first, performance_trend
from core.records import exam_record_from_mapping
from core.store import PostgresStore
from routes.deps import from_store, get_store, records_from_rows, rows_from_payload

router = APIRouter()


def _exams_from_payload(payload: dict):
    return records_from_rows(rows_from_payload(payload), exam_record_from_mapping)


@router.post("/subjects")
async def subjects(payload: dict):
    """
    Latest score, previous score and trend per subject.
    Rows must be latest first unless "sort": true is sent, in which case they
    are ordered by their exam date.
    """
    exams = _exams_from_payload(payload)
    if payload.get("sort"):
        exams = order_latest_first(exams)
    return {"subjects": [s.as_dict() for s in aggregate_subjects(exams)]}


@router.post("/trend")
async def trend(payload: dict):
    """Average marks per exam, pivoted by subject."""
    exams = _exams_from_payload(payload)
    return {"performance_trend": performance_trend(exams)}


@router.get("/students/{student_id}")
def student_subjects(
    student_id: str,
    institute_id: str = Query(...),
    store: PostgresStore = Depends(get_store),
):
    """Subject-wise performance for one student, read from the database."""
    exams = from_store(store.exam_records, institute_id, student_id=student_id)
    return {
        "student_id": student_id,
        "subjects": [s.as_dict() for s in aggregate_subjects(exams)],
        "performance_trend": performance_trend(exams),
    }
