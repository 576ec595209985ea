"""
Upload routes — summarize an attendance or exam spreadsheet in one request.
"""

import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, File, HTTPException, UploadFile

from core.attendance import overall_attendance_rate, summarize_roster
from core.parser import read_table
from core.performance import aggregate_subjects, order_latest_first, performance_trend
from core.records import RecordError

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"

ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def _subjects_by_student(exams) -> dict:
    by_student: dict = {}
    for record in exams:
        by_student.setdefault(record.student_id, []).append(record)
    return {
        sid: [s.as_dict() for s in aggregate_subjects(order_latest_first(records))]
        for sid, records in by_student.items()
    }


@router.post("/file")
async def upload_file(file: UploadFile = File(...)):
    """
    Upload a CSV or Excel file of attendance and/or exam rows.
    Returns roster attendance summaries, subject performance per student and
    the exam trend. Exam rows are ordered by exam date before aggregation.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV or Excel.")

    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    save_path = UPLOAD_DIR / f"{uuid.uuid4()}{ext}"

    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)
        tables = read_table(str(save_path))
    except RecordError as exc:
        raise HTTPException(422, str(exc)) from exc
    except Exception as exc:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {exc}") from exc
    finally:
        save_path.unlink(missing_ok=True)

    attendance, exams = tables["attendance"], tables["exams"]
    if not attendance and not exams:
        raise HTTPException(400, "No attendance or exam rows found in the file.")
    logger.info(
        "Upload %s: %d attendance row(s), %d exam row(s)",
        file.filename, len(attendance), len(exams),
    )

    roster = summarize_roster(attendance)
    return {
        "filename": file.filename,
        "attendance": {
            "students": [{"student_id": sid, **s.as_dict()} for sid, s in roster.items()],
            "overall_percentage": overall_attendance_rate(attendance),
        },
        "subjects": _subjects_by_student(exams),
        "performance_trend": performance_trend(exams),
    }
