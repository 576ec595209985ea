"""
attendance.py — Attendance summaries.

Computes:
- Per-student summary (total / present / absent / late / excused / percentage)
- Full-roster summaries in one grouped pass over the attendance table
- Per-day and per-month attendance trends for charts

Records whose status is not one of present/absent/late/excused are left out
of every count, including the total.
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from core.records import (
    STATUS_VALUES,
    AttendanceRecord,
    AttendanceStatus,
    AttendanceSummary,
    percent_of,
)

logger = logging.getLogger(__name__)

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}


# ── Helpers ─────────────────────────────────────────────────────────

def _require_sequence(records, name: str = "records"):
    if records is None:
        raise TypeError(f"{name} must be a sequence, not None")


def _summary_from_counts(counts: Mapping[str, int]) -> AttendanceSummary:
    """Build a summary from per-status counts. Shared by every code path."""
    present = int(counts.get(AttendanceStatus.PRESENT.value, 0))
    absent = int(counts.get(AttendanceStatus.ABSENT.value, 0))
    late = int(counts.get(AttendanceStatus.LATE.value, 0))
    excused = int(counts.get(AttendanceStatus.EXCUSED.value, 0))
    total = present + absent + late + excused

    return AttendanceSummary(
        total_days=total,
        present_days=present,
        absent_days=absent,
        late_days=late,
        excused_days=excused,
        attendance_percentage=percent_of(present, total, places=1),
    )


def _records_frame(records: Iterable[AttendanceRecord]) -> pd.DataFrame:
    """Known-status records as a DataFrame; unknown statuses are dropped."""
    df = pd.DataFrame(
        [(r.student_id, r.date, r.status) for r in records],
        columns=["student_id", "date", "status"],
    )
    known = df["status"].isin(STATUS_VALUES)
    skipped = int((~known).sum())
    if skipped:
        logger.warning("Ignoring %d attendance record(s) with unknown status", skipped)
    return df[known]


# ── Single student ──────────────────────────────────────────────────

def summarize_attendance(records: Sequence[AttendanceRecord]) -> AttendanceSummary:
    """Summarize one student's attendance records. Order is irrelevant."""
    _require_sequence(records)

    counts = Counter(r.status for r in records)
    skipped = sum(n for status, n in counts.items() if status not in STATUS_VALUES)
    if skipped:
        logger.warning("Ignoring %d attendance record(s) with unknown status", skipped)

    return _summary_from_counts(counts)


# ── Full roster ─────────────────────────────────────────────────────

def summarize_roster(
    records: Sequence[AttendanceRecord],
    student_ids: Optional[Iterable[str]] = None,
) -> Dict[str, AttendanceSummary]:
    """
    Summarize a whole attendance table grouped by student.

    When ``student_ids`` is given only those students are returned, and each
    of them gets an entry even without a single record.
    """
    _require_sequence(records)
    df = _records_frame(records)

    summaries: Dict[str, AttendanceSummary] = {}
    if not df.empty:
        counts = df.groupby(["student_id", "status"]).size().unstack(fill_value=0)
        for student_id, row in counts.iterrows():
            summaries[str(student_id)] = _summary_from_counts(row.to_dict())

    if student_ids is None:
        return summaries

    return {
        str(sid): summaries.get(str(sid), AttendanceSummary())
        for sid in student_ids
    }


# ── Trends ──────────────────────────────────────────────────────────

def attendance_by_period(
    records: Sequence[AttendanceRecord], period: str = "month"
) -> List[Dict[str, Any]]:
    """Attendance counts and percentage per calendar day or month, oldest first."""
    _require_sequence(records)
    if period not in PERIOD_FORMATS:
        raise ValueError(f"period must be one of {sorted(PERIOD_FORMATS)}, got {period!r}")

    df = _records_frame(records)
    df = df[df["date"].notna()]
    if df.empty:
        return []

    df = df.assign(period=pd.to_datetime(df["date"]).dt.strftime(PERIOD_FORMATS[period]))
    counts = df.groupby(["period", "status"]).size().unstack(fill_value=0).sort_index()

    trends = []
    for label, row in counts.iterrows():
        summary = _summary_from_counts(row.to_dict())
        trends.append({
            "period": str(label),
            "total": summary.total_days,
            "present": summary.present_days,
            "absent": summary.absent_days,
            "late": summary.late_days,
            "excused": summary.excused_days,
            "percentage": summary.attendance_percentage,
        })
    return trends


def overall_attendance_rate(records: Sequence[AttendanceRecord]) -> Optional[float]:
    """Institute-wide present percentage across every record."""
    return summarize_attendance(records).attendance_percentage
