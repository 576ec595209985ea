"""
export.py — Roster attendance exports (CSV and Excel).

The Excel workbook has an "All Students" sheet plus one sheet per class,
rows colour-banded by attendance percentage.
"""

import re
from typing import Any, Dict, Mapping, Optional, Sequence

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows

from core.records import AttendanceSummary

COLUMNS = [
    "student_id", "name", "class_name", "section",
    "total_days", "present_days", "absent_days", "late_days", "excused_days",
    "attendance_percentage",
]


def roster_frame(
    summaries: Mapping[str, AttendanceSummary],
    students: Optional[Sequence[Mapping[str, Any]]] = None,
) -> pd.DataFrame:
    """One row per student; roster details come from ``students`` when given."""
    info: Dict[str, Mapping[str, Any]] = {
        str(s["student_id"]): s for s in (students or [])
    }
    rows = []
    for sid, summary in summaries.items():
        student = info.get(sid, {})
        row = {
            "student_id": sid,
            "name": student.get("name"),
            "class_name": student.get("class_name"),
            "section": student.get("section"),
        }
        row.update(summary.as_dict())
        rows.append(row)
    return pd.DataFrame(rows, columns=COLUMNS)


def export_roster_csv(output_path: str, df: pd.DataFrame) -> str:
    df.to_csv(output_path, index=False)
    return output_path


def export_roster_excel(
    output_path: str,
    df: pd.DataFrame,
    school_name: str,
    warning_threshold: float = 75.0,
) -> str:
    """Write the roster to a styled workbook with per-class sheets."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    yellow_fill = PatternFill(start_color="fef9e7", end_color="fef9e7", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )
    pct_col_idx = COLUMNS.index("attendance_percentage") + 1

    def _style_sheet(ws):
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")

            value = row[pct_col_idx - 1].value
            if value is None:
                continue
            pct = float(value)
            fill = green_fill if pct >= 90 else (yellow_fill if pct >= warning_threshold else red_fill)
            for cell in row:
                cell.fill = fill

        ws.freeze_panes = "A2"

        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    def _write(ws, frame):
        # NaN would be written as the float nan; blank cells are wanted.
        clean = frame.astype(object).where(frame.notna(), None)
        for row in dataframe_to_rows(clean, index=False, header=True):
            ws.append(row)
        _style_sheet(ws)

    wb = Workbook()
    ws_all = wb.active
    ws_all.title = "All Students"
    ws_all.sheet_properties.tabColor = "1a1a2e"
    _write(ws_all, df)

    classes = sorted(df["class_name"].dropna().astype(str).unique())
    tab_colors = ["0f3460", "e94560", "2ecc71", "f39c12", "9b59b6", "1abc9c"]
    for i, cls in enumerate(classes):
        ws = wb.create_sheet(title=re.sub(r"[\\/*?:\[\]]", "_", cls)[:31])
        ws.sheet_properties.tabColor = tab_colors[i % len(tab_colors)]
        _write(ws, df[df["class_name"].astype(str) == cls])

    wb.properties.title = f"{school_name} — Attendance Summary"
    wb.save(output_path)
    return output_path
