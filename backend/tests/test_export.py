"""
Tests for core/export.py — roster frame, CSV and Excel output.
"""

import os
import sys

import pandas as pd
import pytest
from openpyxl import load_workbook

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.attendance import summarize_roster
from core.export import COLUMNS, export_roster_csv, export_roster_excel, roster_frame
from core.parser import read_table

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_attendance.csv")

STUDENTS = [
    {"student_id": "S001", "name": "Asha Verma", "class_name": "Grade 8", "section": "A"},
    {"student_id": "S002", "name": "Ravi Kumar", "class_name": "Grade 8", "section": "A"},
    {"student_id": "S003", "name": "Meera Nair", "class_name": "Grade 9", "section": "B"},
    {"student_id": "S004", "name": "New Joiner", "class_name": "Grade 9/B", "section": "B"},
]


@pytest.fixture
def roster_df():
    attendance = read_table(SAMPLE_CSV)["attendance"]
    summaries = summarize_roster(attendance, student_ids=[s["student_id"] for s in STUDENTS])
    return roster_frame(summaries, STUDENTS)


class TestRosterFrame:

    def test_columns_and_rows(self, roster_df):
        assert list(roster_df.columns) == COLUMNS
        assert len(roster_df) == 4

    def test_student_details_joined(self, roster_df):
        row = roster_df[roster_df["student_id"] == "S002"].iloc[0]
        assert row["name"] == "Ravi Kumar"
        assert row["attendance_percentage"] == 40.0

    def test_missing_roster_details(self):
        attendance = read_table(SAMPLE_CSV)["attendance"]
        df = roster_frame(summarize_roster(attendance))
        assert df["name"].isna().all()


class TestExports:

    def test_csv(self, roster_df, tmp_path):
        path = export_roster_csv(str(tmp_path / "roster.csv"), roster_df)
        back = pd.read_csv(path)
        assert list(back.columns) == COLUMNS
        assert back.loc[back["student_id"] == "S004", "attendance_percentage"].isna().all()

    def test_excel_sheets(self, roster_df, tmp_path):
        path = export_roster_excel(str(tmp_path / "roster.xlsx"), roster_df, school_name="Test School")
        wb = load_workbook(path)
        assert wb.sheetnames == ["All Students", "Grade 8", "Grade 9", "Grade 9_B"]
        ws = wb["All Students"]
        assert ws.max_row == 5
        assert ws["A1"].value == "student_id"
        assert ws.freeze_panes == "A2"

    def test_excel_blank_percentage_left_empty(self, roster_df, tmp_path):
        path = export_roster_excel(str(tmp_path / "roster.xlsx"), roster_df, school_name="Test School")
        ws = load_workbook(path)["All Students"]
        pct_col = COLUMNS.index("attendance_percentage") + 1
        values = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=pct_col).value
                  for r in range(2, ws.max_row + 1)}
        assert values["S004"] is None
        assert values["S001"] == 83.3
