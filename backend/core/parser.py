"""
parser.py — CSV / Excel ingestion into normalized records.

Supports:
- CSV files
- Excel (.xlsx, .xls), every non-empty sheet
- Detecting whether a sheet holds attendance or exam rows
- Wide exam sheets (one column per subject) melted to long format
"""

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from core.records import (
    FIELD_ALIASES,
    AttendanceRecord,
    ExamRecord,
    RecordError,
    attendance_record_from_mapping,
    exam_record_from_mapping,
)

# Columns that are never subject scores in a wide exam sheet.
METADATA_FIELDS = [
    "student_id", "name", "institute_id", "class_name", "section",
    "exam_name", "taken_at", "max_marks",
]


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse a file and return {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        return {"Sheet1": pd.read_csv(file_path, dtype=str)}

    if ext in (".xlsx", ".xls"):
        engine = "openpyxl" if ext == ".xlsx" else "xlrd"
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError("No valid sheets found in the Excel file.")
        return sheets

    raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """Map each known field to the first matching column name, or None."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}
    for field_name, aliases in FIELD_ALIASES.items():
        mapping[field_name] = next(
            (cols_lower[a] for a in aliases if a in cols_lower), None
        )
    return mapping


def detect_kind(df: pd.DataFrame) -> str:
    """'attendance' when there is a status column, else 'exams'."""
    mapping = suggest_column_mapping(df)
    if mapping["status"] and not mapping["marks_obtained"]:
        return "attendance"
    return "exams"


def convert_wide_to_long(df: pd.DataFrame) -> pd.DataFrame:
    """
    Melt a wide exam sheet (one column per subject) into long rows with
    ``subject_name`` / ``marks_obtained`` columns.
    """
    mapping = suggest_column_mapping(df)
    if mapping["subject_name"] or mapping["marks_obtained"]:
        return df

    metadata_cols = [mapping[f] for f in METADATA_FIELDS if mapping.get(f)]
    subject_cols = [c for c in df.columns if c not in metadata_cols]
    if not subject_cols:
        return df

    return df.melt(
        id_vars=metadata_cols,
        value_vars=subject_cols,
        var_name="subject_name",
        value_name="marks_obtained",
    )


def _convert_rows(df: pd.DataFrame, convert) -> list:
    records = []
    for idx, row in enumerate(df.to_dict(orient="records")):
        try:
            records.append(convert(row))
        except RecordError as exc:
            raise RecordError(f"Row {idx + 1}: {exc}") from exc
    return records


def attendance_records_from_frame(df: pd.DataFrame) -> List[AttendanceRecord]:
    return _convert_rows(df, attendance_record_from_mapping)


def exam_records_from_frame(df: pd.DataFrame) -> List[ExamRecord]:
    """Exam rows in file order; wide sheets are melted first. Blank marks are skipped."""
    long_df = convert_wide_to_long(df)
    mapping = suggest_column_mapping(long_df)
    marks_col = mapping["marks_obtained"]
    if marks_col:
        blank = long_df[marks_col].isna() | (long_df[marks_col].astype(str).str.strip() == "")
        long_df = long_df[~blank]
    return _convert_rows(long_df, exam_record_from_mapping)


def read_table(file_path: str) -> Dict[str, list]:
    """
    Read every sheet of a file into records.
    Returns {"attendance": [...], "exams": [...]}.
    """
    out: Dict[str, list] = {"attendance": [], "exams": []}
    for df in parse_upload(file_path).values():
        if detect_kind(df) == "attendance":
            out["attendance"].extend(attendance_records_from_frame(df))
        else:
            out["exams"].extend(exam_records_from_frame(df))
    return out
