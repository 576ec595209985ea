"""
Shared fakes for tests that need a database connection.
"""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn
        self._rows = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=()):
        self._conn.executed.append((" ".join(sql.split()), list(params)))
        self._rows = self._conn.respond(sql, params)

    def fetchall(self):
        return self._rows


class FakeConnection:
    """Answers queries from canned rows keyed by the table they select from."""

    def __init__(self, students=None, attendance=None, exams=None, sql_summary=None):
        self.students = students or []
        self.attendance = attendance or []
        self.exams = exams or []
        self.sql_summary = sql_summary
        self.executed = []
        self.closed = False
        self.session = None

    def cursor(self, cursor_factory=None):
        return FakeCursor(self)

    def set_session(self, **kwargs):
        self.session = kwargs

    def close(self):
        self.closed = True

    def respond(self, sql, params):
        if "FILTER" in sql:
            return [self.sql_summary] if self.sql_summary else []
        if "FROM exam_results" in sql:
            rows = self.exams
            if len(params) > 1:
                rows = [r for r in rows if r["student_id"] == params[1]]
            return rows
        if "FROM attendance_records" in sql:
            rows = self.attendance
            if "ANY" in sql:
                wanted = set(params[1])
                rows = [r for r in rows if r["student_id"] in wanted]
            return rows
        if "FROM students" in sql:
            return self.students
        return []


@pytest.fixture
def fake_conn():
    return FakeConnection(
        students=[
            {"student_id": "S001", "name": "Asha Verma", "roll_number": 1,
             "institute_id": "INST1", "class_name": "Grade 8", "section": "A"},
            {"student_id": "S002", "name": "Ravi Kumar", "roll_number": 2,
             "institute_id": "INST1", "class_name": "Grade 8", "section": "A"},
        ],
        attendance=[
            {"student_id": "S001", "institute_id": "INST1", "date": date(2025, 1, 6),
             "status": "present", "class_name": "Grade 8", "section": "A"},
            {"student_id": "S001", "institute_id": "INST1", "date": date(2025, 1, 7),
             "status": "absent", "class_name": "Grade 8", "section": "A"},
            {"student_id": "S001", "institute_id": "INST1", "date": date(2025, 1, 8),
             "status": "present", "class_name": "Grade 8", "section": "A"},
            {"student_id": "S002", "institute_id": "INST1", "date": date(2025, 1, 6),
             "status": "absent", "class_name": "Grade 8", "section": "A"},
        ],
        exams=[
            {"student_id": "S001", "subject_name": "Mathematics", "exam_name": "Mid Term",
             "marks_obtained": 85.0, "max_marks": 100.0, "taken_at": date(2025, 3, 10)},
            {"student_id": "S001", "subject_name": "Mathematics", "exam_name": "Unit Test 1",
             "marks_obtained": 70.0, "max_marks": 100.0, "taken_at": date(2025, 1, 15)},
            {"student_id": "S002", "subject_name": "Mathematics", "exam_name": "Mid Term",
             "marks_obtained": 30.0, "max_marks": 100.0, "taken_at": date(2025, 3, 10)},
        ],
    )
