"""
Tests for core/parser.py — file ingestion, sheet detection, wide-to-long.
"""

import os
import sys

import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.parser import (
    attendance_records_from_frame,
    convert_wide_to_long,
    detect_kind,
    exam_records_from_frame,
    parse_upload,
    read_table,
    suggest_column_mapping,
)
from core.records import RecordError

SAMPLE_DIR = os.path.join(os.path.dirname(__file__), "..", "sample_data")


class TestParseUpload:

    def test_csv_single_sheet(self):
        sheets = parse_upload(os.path.join(SAMPLE_DIR, "sample_attendance.csv"))
        assert list(sheets) == ["Sheet1"]
        assert len(sheets["Sheet1"]) == 15

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("x")
        with pytest.raises(ValueError):
            parse_upload(str(path))

    def test_excel_sheets(self, tmp_path):
        path = tmp_path / "data.xlsx"
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame({"student_id": ["S1"], "status": ["present"]}).to_excel(
                writer, sheet_name="Attendance", index=False)
            pd.DataFrame({"student_id": ["S1"], "subject": ["Art"], "marks": [50]}).to_excel(
                writer, sheet_name="Exams", index=False)
        sheets = parse_upload(str(path))
        assert set(sheets) == {"Attendance", "Exams"}


class TestDetection:

    def test_attendance_sheet(self):
        df = pd.DataFrame({"student_id": ["S1"], "date": ["2025-01-01"], "status": ["present"]})
        assert detect_kind(df) == "attendance"

    def test_exam_sheet(self):
        df = pd.DataFrame({"student_id": ["S1"], "subject": ["Art"], "score": ["50"]})
        assert detect_kind(df) == "exams"

    def test_mapping_prefers_first_alias(self):
        df = pd.DataFrame(columns=["Class", "class_name", "Subject"])
        mapping = suggest_column_mapping(df)
        assert mapping["class_name"] == "class_name"
        assert mapping["subject_name"] == "Subject"
        assert mapping["status"] is None


class TestWideToLong:

    def test_wide_sheet_melted(self):
        df = list(parse_upload(os.path.join(SAMPLE_DIR, "sample_exams_wide.csv")).values())[0]
        long_df = convert_wide_to_long(df)
        assert set(long_df["subject_name"]) == {"Mathematics", "Physics", "Chemistry"}

    def test_long_sheet_untouched(self):
        df = pd.DataFrame({"student_id": ["S1"], "subject": ["Art"], "marks": ["50"]})
        assert convert_wide_to_long(df) is df

    def test_blank_wide_cells_skipped(self):
        df = list(parse_upload(os.path.join(SAMPLE_DIR, "sample_exams_wide.csv")).values())[0]
        exams = exam_records_from_frame(df)
        assert len(exams) == 5
        assert all(e.exam_name == "Mid Term" for e in exams)


class TestRecordConversion:

    def test_row_number_in_error(self):
        df = pd.DataFrame({"student_id": ["S1", None], "status": ["present", "absent"]})
        with pytest.raises(RecordError, match="Row 2"):
            attendance_records_from_frame(df)

    def test_read_table_splits_kinds(self):
        data = read_table(os.path.join(SAMPLE_DIR, "sample_exams.csv"))
        assert data["attendance"] == []
        assert len(data["exams"]) == 12
