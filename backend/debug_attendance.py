"""
debug_attendance.py — Cross-check attendance percentages.

For each active student the summary is computed twice: by PostgreSQL
(COUNT ... FILTER) and by core.attendance.summarize_attendance over the raw
rows. Any difference is logged.

Usage:
    python debug_attendance.py [--institute ID] [--limit 10] [--dsn URL]

Exit status: 0 all match, 1 mismatches found, 2 database unavailable.
"""

import argparse
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from core.attendance import summarize_attendance
from core.store import PostgresStore, StoreUnavailable, open_store

logger = logging.getLogger("debug_attendance")


def compare_student(store: PostgresStore, student: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return a mismatch report for one student, or None when both agree."""
    sid = str(student["student_id"])
    institute_id = str(student["institute_id"])

    sql_summary = store.sql_attendance_summary(institute_id, sid)
    records = store.attendance_records(institute_id, student_ids=[sid])
    py_summary = summarize_attendance(records).as_dict()

    logger.info("Student: %s (%s) Inst: %s", student.get("name"), sid, institute_id)
    logger.info("  SQL:    %s", sql_summary)
    logger.info("  Python: %s", py_summary)

    diffs = {
        key: {"sql": sql_summary[key], "python": py_summary[key]}
        for key in py_summary
        if sql_summary.get(key) != py_summary[key]
    }
    if not diffs:
        return None
    return {"student_id": sid, "differences": diffs}


def run(store: PostgresStore, institute_id: Optional[str], limit: int) -> List[Dict[str, Any]]:
    students = store.active_students(institute_id, limit=limit)
    if not students:
        logger.info("No students found.")
        return []

    mismatches = []
    for student in students:
        report = compare_student(store, student)
        if report:
            logger.warning("Mismatch for %s: %s", report["student_id"], report["differences"])
            mismatches.append(report)
    logger.info("Checked %d student(s), %d mismatch(es)", len(students), len(mismatches))
    return mismatches


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Compare SQL and Python attendance summaries.")
    parser.add_argument("--institute", help="Restrict to one institute id.")
    parser.add_argument("--limit", type=int, default=10, help="Students to check (default 10).")
    parser.add_argument("--dsn", default=os.getenv("DATABASE_URL", ""), help="PostgreSQL URL.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(levelname)s %(message)s",
    )

    try:
        with open_store(args.dsn) as store:
            mismatches = run(store, args.institute, args.limit)
    except StoreUnavailable as exc:
        logger.error("%s", exc)
        return 2
    return 1 if mismatches else 0


if __name__ == "__main__":
    sys.exit(main())
