"""
risk.py — At-risk student detection.

Each student gets an attendance percentage and an average exam percentage.
Levels:
- critical: attendance < 60 AND average score < 40
- warning:  attendance < 75 OR average score < 50
- ok:       everything else

A missing value never satisfies a threshold, so a student with no exams is
judged on attendance alone (and vice versa).
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
from scipy import stats as sp_stats

from core.attendance import summarize_roster
from core.records import AttendanceRecord, ExamRecord, StudentRisk, percent_of, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = {
    "attendance_warning": 75.0,
    "attendance_critical": 60.0,
    "score_warning": 50.0,
    "score_critical": 40.0,
}

LEVEL_ORDER = {"critical": 0, "warning": 1, "ok": 2}


# ── Helpers ─────────────────────────────────────────────────────────

def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _average_scores(exams: Iterable[ExamRecord]) -> Dict[str, Optional[float]]:
    """Mean exam percentage per student, ignoring exams out of zero marks."""
    per_student: Dict[str, List[float]] = {}
    for exam in exams:
        pct = percent_of(exam.marks_obtained, exam.max_marks, places=6)
        if pct is None:
            continue
        per_student.setdefault(exam.student_id, []).append(pct)
    return {
        sid: round_half_up(float(np.mean(values)), 1)
        for sid, values in per_student.items()
    }


def classify_risk(
    attendance_pct: Optional[float],
    average_score: Optional[float],
    thresholds: Optional[Mapping[str, float]] = None,
) -> str:
    t = {**DEFAULT_THRESHOLDS, **(thresholds or {})}
    if _below(attendance_pct, t["attendance_critical"]) and _below(average_score, t["score_critical"]):
        return "critical"
    if _below(attendance_pct, t["attendance_warning"]) or _below(average_score, t["score_warning"]):
        return "warning"
    return "ok"


def attendance_score_correlation(pairs: Sequence[tuple]) -> Optional[Dict[str, Any]]:
    """Pearson r between attendance % and average score; needs 3+ complete pairs."""
    complete = [(a, s) for a, s in pairs if a is not None and s is not None]
    if len(complete) < 3:
        return None
    att = np.array([a for a, _ in complete], dtype=float)
    score = np.array([s for _, s in complete], dtype=float)
    if np.ptp(att) == 0 or np.ptp(score) == 0:
        return None
    r, p = sp_stats.pearsonr(att, score)
    return {
        "r": round(float(r), 3),
        "p_value": round(float(p), 4),
        "n": len(complete),
    }


# ── Main entry point ────────────────────────────────────────────────

def compute_at_risk(
    students: Sequence[Mapping[str, Any]],
    attendance: Sequence[AttendanceRecord],
    exams: Sequence[ExamRecord],
    thresholds: Optional[Mapping[str, float]] = None,
    limit: int = 50,
) -> Dict[str, Any]:
    """
    Flag at-risk students among ``students``.

    ``students`` is the active roster: mappings with ``student_id`` and
    optionally ``name`` / ``class_name``. Only warning and critical students
    are listed, critical first, then lowest attendance first.
    """
    if students is None or attendance is None or exams is None:
        raise TypeError("students, attendance and exams must be sequences, not None")

    roster_ids = [str(s["student_id"]) for s in students]
    summaries = summarize_roster(attendance, student_ids=roster_ids)
    averages = _average_scores(exams)

    flagged: List[StudentRisk] = []
    pairs = []
    for student in students:
        sid = str(student["student_id"])
        att_pct = summaries[sid].attendance_percentage
        avg = averages.get(sid)
        pairs.append((att_pct, avg))

        level = classify_risk(att_pct, avg, thresholds)
        if level == "ok":
            continue
        flagged.append(StudentRisk(
            student_id=sid,
            name=student.get("name"),
            class_name=student.get("class_name"),
            attendance_percentage=att_pct,
            average_score=avg,
            risk_level=level,
        ))

    flagged.sort(key=lambda r: (
        LEVEL_ORDER[r.risk_level],
        r.attendance_percentage is None,
        r.attendance_percentage if r.attendance_percentage is not None else 0.0,
    ))

    summary = {
        "critical": sum(1 for r in flagged if r.risk_level == "critical"),
        "warning": sum(1 for r in flagged if r.risk_level == "warning"),
        "total_students": len(roster_ids),
    }
    logger.info(
        "At-risk scan: %d critical, %d warning of %d students",
        summary["critical"], summary["warning"], summary["total_students"],
    )

    return {
        "at_risk_students": [r.as_dict() for r in flagged[:limit]],
        "summary": summary,
        "correlation": attendance_score_correlation(pairs),
    }
