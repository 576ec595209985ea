"""
performance.py — Subject performance aggregation.

Computes:
- Latest vs previous score per subject with an up/down/neutral trend
- Percentage of max marks for the latest score
- Exam-by-exam average marks pivoted by subject (performance trend chart)

``aggregate_subjects`` trusts the caller's order: records must arrive latest
first. Callers that cannot guarantee this pass them through
``order_latest_first`` beforehand.
"""

import logging
from typing import Any, Dict, List, Sequence

import pandas as pd

from core.records import ExamRecord, SubjectPerformance, Trend, percent_of, round_half_up

logger = logging.getLogger(__name__)


def _trend(latest: float, previous: float) -> Trend:
    if latest > previous:
        return Trend.UP
    if latest < previous:
        return Trend.DOWN
    return Trend.NEUTRAL


def order_latest_first(exams: Sequence[ExamRecord]) -> List[ExamRecord]:
    """
    Sort exams newest first by ``taken_at``.

    The sort is stable; records without ``taken_at`` go last and keep their
    relative order.
    """
    if exams is None:
        raise TypeError("exams must be a sequence, not None")
    dated = [e for e in exams if e.taken_at is not None]
    undated = [e for e in exams if e.taken_at is None]
    dated.sort(key=lambda e: e.taken_at, reverse=True)
    return dated + undated


def aggregate_subjects(exams: Sequence[ExamRecord]) -> List[SubjectPerformance]:
    """
    Latest/previous score, trend and percentage for each subject.

    Records without a subject are dropped. A subject's ``max_marks`` comes
    from the first record seen for it, i.e. the latest exam.
    """
    if exams is None:
        raise TypeError("exams must be a sequence, not None")

    groups: Dict[str, List[ExamRecord]] = {}
    dropped = 0
    for exam in exams:
        subject = (exam.subject_name or "").strip()
        if not subject:
            dropped += 1
            continue
        groups.setdefault(subject, []).append(exam)

    if dropped:
        logger.debug("Dropped %d exam record(s) without a subject", dropped)

    results = []
    for subject, group in groups.items():
        latest = group[0]
        previous = group[1] if len(group) > 1 else latest
        max_marks = latest.max_marks

        results.append(SubjectPerformance(
            subject_name=subject,
            latest_score=latest.marks_obtained,
            previous_score=previous.marks_obtained,
            max_marks=max_marks,
            trend=_trend(latest.marks_obtained, previous.marks_obtained),
            percentage=percent_of(latest.marks_obtained, max_marks, places=0),
        ))
    return results


def performance_trend(exams: Sequence[ExamRecord]) -> List[Dict[str, Any]]:
    """
    Average marks per exam and subject, one row per exam in date order.

    Each row is ``{"exam": name, <subject>: avg, ..., "average": avg}`` where
    ``average`` is the mean of that exam's subject averages.
    """
    if exams is None:
        raise TypeError("exams must be a sequence, not None")

    rows = [
        {
            "exam": e.exam_name,
            "subject": e.subject_name,
            "marks": e.marks_obtained,
            "taken_at": e.taken_at,
        }
        for e in exams
        if e.exam_name and e.subject_name
    ]
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["taken_at"] = pd.to_datetime(df["taken_at"]).fillna(pd.Timestamp.max)

    grouped = df.groupby(["exam", "subject"]).agg(
        avg_marks=("marks", "mean"),
        first_taken=("taken_at", "min"),
    ).reset_index()

    exam_order = (
        grouped.groupby("exam")["first_taken"].min()
        .sort_values(kind="stable")
        .index.tolist()
    )

    trend = []
    for exam in exam_order:
        edf = grouped[grouped["exam"] == exam].sort_values("subject")
        entry: Dict[str, Any] = {"exam": str(exam)}
        for _, r in edf.iterrows():
            entry[str(r["subject"])] = round_half_up(float(r["avg_marks"]), 1)
        subject_avgs = [entry[str(s)] for s in edf["subject"]]
        entry["average"] = round_half_up(sum(subject_avgs) / len(subject_avgs), 1)
        trend.append(entry)
    return trend
