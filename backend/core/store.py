"""
store.py — PostgreSQL data store.

The store is opened per request or per script run with ``open_store`` and
closed when the block exits. Rows are normalized into records here so the
reporting core never sees raw database shapes.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Sequence

import psycopg2
import psycopg2.extras

from core.records import (
    AttendanceRecord,
    ExamRecord,
    attendance_record_from_mapping,
    exam_record_from_mapping,
)

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10


class StoreUnavailable(RuntimeError):
    """The database could not be reached or is not configured."""


def normalize_dsn(dsn: str) -> str:
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql://", 1)
    return dsn


class PostgresStore:
    """Read-only queries over students, attendance_records and exam_results."""

    def __init__(self, conn):
        self._conn = conn

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            return [dict(row) for row in cur.fetchall()]

    def active_students(self, institute_id: Optional[str] = None, limit: Optional[int] = None):
        sql = """
            SELECT s.id AS student_id, s.name, s.roll_number, s.institute_id,
                   c.name AS class_name, c.section
            FROM students s
            LEFT JOIN classes c ON s.class_id = c.id
            WHERE s.status = 'active'
        """
        params: List[Any] = []
        if institute_id:
            sql += " AND s.institute_id = %s"
            params.append(institute_id)
        sql += " ORDER BY s.roll_number"
        if limit:
            sql += " LIMIT %s"
            params.append(int(limit))
        return self._fetch(sql, params)

    def attendance_records(
        self,
        institute_id: str,
        student_ids: Optional[Sequence[str]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[AttendanceRecord]:
        sql = """
            SELECT ar.student_id, ar.institute_id, ar.date, ar.status,
                   c.name AS class_name, c.section
            FROM attendance_records ar
            LEFT JOIN classes c ON ar.class_id = c.id
            WHERE ar.institute_id = %s
        """
        params: List[Any] = [institute_id]
        if student_ids is not None:
            sql += " AND ar.student_id = ANY(%s)"
            params.append(list(student_ids))
        if start:
            sql += " AND ar.date >= %s"
            params.append(start)
        if end:
            sql += " AND ar.date <= %s"
            params.append(end)
        sql += " ORDER BY ar.date"
        return [attendance_record_from_mapping(r) for r in self._fetch(sql, params)]

    def exam_records(self, institute_id: str, student_id: Optional[str] = None) -> List[ExamRecord]:
        """Graded results, latest exam first. Absent results (no marks) are left out."""
        sql = """
            SELECT er.student_id, sub.name AS subject_name, e.name AS exam_name,
                   er.marks_obtained, e.total_marks AS max_marks, e.exam_date AS taken_at
            FROM exam_results er
            JOIN exams e ON er.exam_id = e.id
            LEFT JOIN subjects sub ON e.subject_id = sub.id
            WHERE er.institute_id = %s
              AND er.marks_obtained IS NOT NULL
              AND er.is_absent IS NOT TRUE
        """
        params: List[Any] = [institute_id]
        if student_id:
            sql += " AND er.student_id = %s"
            params.append(student_id)
        sql += " ORDER BY e.exam_date DESC NULLS LAST, er.created_at DESC"
        return [exam_record_from_mapping(r) for r in self._fetch(sql, params)]

    def sql_attendance_summary(self, institute_id: str, student_id: str) -> Dict[str, Any]:
        """The attendance summary as computed by the database itself."""
        rows = self._fetch(
            """
            SELECT COUNT(ar.id) AS total_days,
                   COUNT(*) FILTER (WHERE ar.status = 'present') AS present_days,
                   COUNT(*) FILTER (WHERE ar.status = 'absent') AS absent_days,
                   COUNT(*) FILTER (WHERE ar.status = 'late') AS late_days,
                   COUNT(*) FILTER (WHERE ar.status = 'excused') AS excused_days,
                   ROUND(COUNT(*) FILTER (WHERE ar.status = 'present')::NUMERIC
                         / NULLIF(COUNT(ar.id), 0) * 100, 1) AS attendance_percentage
            FROM students s
            LEFT JOIN attendance_records ar ON s.id = ar.student_id
            WHERE s.institute_id = %s AND s.id = %s
            """,
            [institute_id, student_id],
        )
        row = rows[0] if rows else {}
        pct = row.get("attendance_percentage")
        return {
            "total_days": int(row.get("total_days") or 0),
            "present_days": int(row.get("present_days") or 0),
            "absent_days": int(row.get("absent_days") or 0),
            "late_days": int(row.get("late_days") or 0),
            "excused_days": int(row.get("excused_days") or 0),
            "attendance_percentage": None if pct is None else float(pct),
        }


@contextmanager
def open_store(dsn: str) -> Iterator[PostgresStore]:
    """Connect, yield a store, and always close the connection."""
    if not dsn:
        raise StoreUnavailable("DATABASE_URL is not configured.")
    try:
        conn = psycopg2.connect(normalize_dsn(dsn), connect_timeout=CONNECT_TIMEOUT)
    except psycopg2.OperationalError as exc:
        raise StoreUnavailable(f"Could not connect to database: {exc}") from exc

    logger.debug("Database connection opened")
    try:
        conn.set_session(readonly=True, autocommit=True)
        yield PostgresStore(conn)
    finally:
        conn.close()
        logger.debug("Database connection closed")
