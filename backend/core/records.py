"""
records.py — Normalized record and summary types.

Every row that enters the reporting core (JSON payload, CSV upload or
database row) is converted here exactly once:
- Column aliases resolved (class / class_name, subject / subject_name, ...)
- Dates parsed, marks coerced to floats, statuses lower-cased
- Summary types serialize to plain JSON-safe dicts
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import pandas as pd


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


STATUS_VALUES = tuple(s.value for s in AttendanceStatus)


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class RecordError(ValueError):
    """A source row could not be turned into a record."""


# ── Field aliases ───────────────────────────────────────────────────

FIELD_ALIASES = {
    "student_id": ["student_id", "studentid", "student", "adm_no", "admission_no", "id"],
    "institute_id": ["institute_id", "institution_id", "school_id", "institute"],
    "date": ["date", "attendance_date", "day", "marked_on"],
    "status": ["status", "attendance", "attendance_status", "mark"],
    "class_name": ["class_name", "class", "grade", "form"],
    "section": ["section", "stream", "arm"],
    "subject_name": ["subject_name", "subject", "course", "paper"],
    "exam_name": ["exam_name", "exam", "assessment", "test"],
    "marks_obtained": ["marks_obtained", "marks", "score", "mark_obtained", "points"],
    "max_marks": ["max_marks", "total_marks", "max_score", "out_of", "maximum"],
    "taken_at": ["taken_at", "exam_date", "date", "created_at"],
    "name": ["name", "student_name", "full_name"],
}


def _pick(row: Mapping[str, Any], field_name: str) -> Any:
    """Return the first non-empty value among the aliases of ``field_name``."""
    lowered = {str(k).lower().strip(): v for k, v in row.items()}
    for alias in FIELD_ALIASES[field_name]:
        if alias in lowered:
            value = lowered[alias]
            if _is_missing(value):
                continue
            return value
    return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _text(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(value).strip()


def _parse_date(value: Any) -> Optional[date]:
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return pd.Timestamp(value).date()
    except (TypeError, ValueError) as exc:
        raise RecordError(f"Unrecognised date: {value!r}") from exc


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Naive datetime; timezone-aware input is converted to UTC first."""
    if _is_missing(value):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise RecordError(f"Unrecognised timestamp: {value!r}") from exc
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.to_pydatetime()


def _parse_number(value: Any, field_name: str) -> Optional[float]:
    if _is_missing(value):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise RecordError(f"'{field_name}' must be numeric, got {value!r}") from exc
    if not math.isfinite(number):
        raise RecordError(f"'{field_name}' must be a finite number, got {value!r}")
    return number


def round_half_up(value: float, places: int = 0) -> Union[int, float]:
    """Round half away from zero (``round()`` would use banker's rounding)."""
    exponent = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def percent_of(part: float, whole: float, places: int = 1) -> Optional[Union[int, float]]:
    """``part / whole * 100`` rounded half-up; ``None`` when ``whole`` is zero."""
    if not whole:
        return None
    ratio = Decimal(str(part)) / Decimal(str(whole)) * 100
    exponent = Decimal(1).scaleb(-places)
    rounded = ratio.quantize(exponent, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


# ── Source records ──────────────────────────────────────────────────

@dataclass(frozen=True)
class AttendanceRecord:
    student_id: str
    date: Optional[date]
    status: str
    institute_id: Optional[str] = None
    class_name: Optional[str] = None
    section: Optional[str] = None


@dataclass(frozen=True)
class ExamRecord:
    student_id: str
    subject_name: Optional[str]
    marks_obtained: float
    max_marks: float = 100.0
    exam_name: Optional[str] = None
    taken_at: Optional[datetime] = None


def attendance_record_from_mapping(row: Mapping[str, Any]) -> AttendanceRecord:
    student_id = _text(_pick(row, "student_id"))
    if student_id is None:
        raise RecordError("Attendance row has no student_id.")

    status = _text(_pick(row, "status"))
    return AttendanceRecord(
        student_id=student_id,
        date=_parse_date(_pick(row, "date")),
        status=status.lower() if status else "",
        institute_id=_text(_pick(row, "institute_id")),
        class_name=_text(_pick(row, "class_name")),
        section=_text(_pick(row, "section")),
    )


def exam_record_from_mapping(row: Mapping[str, Any]) -> ExamRecord:
    student_id = _text(_pick(row, "student_id"))
    if student_id is None:
        raise RecordError("Exam row has no student_id.")

    marks = _parse_number(_pick(row, "marks_obtained"), "marks_obtained")
    if marks is None:
        raise RecordError(f"Exam row for '{student_id}' has no marks_obtained.")

    max_marks = _parse_number(_pick(row, "max_marks"), "max_marks")
    return ExamRecord(
        student_id=student_id,
        subject_name=_text(_pick(row, "subject_name")),
        marks_obtained=marks,
        max_marks=100.0 if max_marks is None else max_marks,
        exam_name=_text(_pick(row, "exam_name")),
        taken_at=_parse_timestamp(_pick(row, "taken_at")),
    )


# ── Derived summaries ───────────────────────────────────────────────

@dataclass(frozen=True)
class AttendanceSummary:
    total_days: int = 0
    present_days: int = 0
    absent_days: int = 0
    late_days: int = 0
    excused_days: int = 0
    attendance_percentage: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_days": self.total_days,
            "present_days": self.present_days,
            "absent_days": self.absent_days,
            "late_days": self.late_days,
            "excused_days": self.excused_days,
            "attendance_percentage": self.attendance_percentage,
        }

    def as_compact_dict(self) -> Dict[str, Any]:
        """Dashboard shape: total / present / percentage."""
        return {
            "total": self.total_days,
            "present": self.present_days,
            "percentage": self.attendance_percentage,
        }


@dataclass(frozen=True)
class SubjectPerformance:
    subject_name: str
    latest_score: float
    previous_score: float
    max_marks: float
    trend: Trend
    percentage: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subject_name": self.subject_name,
            "latest_score": self.latest_score,
            "previous_score": self.previous_score,
            "max_marks": self.max_marks,
            "trend": self.trend.value,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class StudentRisk:
    student_id: str
    attendance_percentage: Optional[float]
    average_score: Optional[float]
    risk_level: str
    name: Optional[str] = None
    class_name: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "name": self.name,
            "class_name": self.class_name,
            "attendance_percentage": self.attendance_percentage,
            "average_score": self.average_score,
            "risk_level": self.risk_level,
        }
