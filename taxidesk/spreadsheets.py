# taxidesk/spreadsheets.py
"""Reading and writing .xlsx workbooks for exports, templates and imports."""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from taxidesk.columns import Column, Table, export_rows, parse_rows
from taxidesk.date_ranges import DateRange

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
_TITLE_FONT = Font(bold=True, size=13)
_BORDER = Border(
    left=Side(style="thin", color="D9D9D9"),
    right=Side(style="thin", color="D9D9D9"),
    top=Side(style="thin", color="D9D9D9"),
    bottom=Side(style="thin", color="D9D9D9"),
)
_MONEY_FORMAT = "#,##0.00"


class UnreadableWorkbookError(ValueError):
    pass


# ---------------- Writing ----------------

def _auto_size(ws: Worksheet, minimum_width: float = 12.0) -> None:
    for index, column in enumerate(ws.iter_cols(values_only=True), start=1):
        longest = max((len(str(v)) for v in column if v not in (None, "")), default=0)
        ws.column_dimensions[get_column_letter(index)].width = float(max(minimum_width, min(longest + 2, 60)))


def write_table(ws: Worksheet, headers: Sequence[str], rows: Sequence[Sequence]) -> None:
    ws.append(list(headers))
    for cell in ws[1]:
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = _HEADER_ALIGNMENT
        cell.border = _BORDER
    for row in rows:
        ws.append(list(row))
    for row in ws.iter_rows(min_row=2):
        for cell in row:
            cell.border = _BORDER
            if isinstance(cell.value, (int, float, Decimal)) and not isinstance(cell.value, bool):
                cell.number_format = _MONEY_FORMAT
    ws.freeze_panes = "A2"
    _auto_size(ws)


def write_summary(ws: Worksheet, rows: Sequence[Sequence]) -> None:
    """Label/value rows; the first row is the sheet title."""
    for row in rows:
        ws.append(list(row))
    ws["A1"].font = _TITLE_FONT
    _auto_size(ws, minimum_width=18.0)


def _save(wb: Workbook) -> bytes:
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def table_workbook(title: str, table: Table, records: Sequence) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    headers, rows = export_rows(records, table.columns)
    write_table(ws, headers, rows)
    return _save(wb)


def report_workbook(
    summary_rows: Sequence[Sequence],
    details: Sequence[Tuple[str, Sequence[Column], Sequence]] = (),
) -> bytes:
    """A 'Summary' sheet followed by one sheet per (title, columns, records)."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Summary"
    write_summary(ws, summary_rows)
    for title, columns, records in details:
        sheet = wb.create_sheet(title[:31])
        headers, rows = export_rows(records, columns)
        write_table(sheet, headers, rows)
    return _save(wb)


def template_workbook(table: Table) -> bytes:
    """Header-only workbook listing every importable column."""
    wb = Workbook()
    ws = wb.active
    ws.title = table.sheet_title[:31]
    write_table(ws, [c.header for c in table.columns if c.importable], [])
    return _save(wb)


def _stamp(day: date) -> str:
    return day.strftime("%Y%m%d")


def export_filename(prefix: str, period: Union[DateRange, date, str]) -> str:
    if isinstance(period, DateRange):
        return f"{prefix}-{_stamp(period.start)}-{_stamp(period.end)}.xlsx"
    if isinstance(period, date):
        return f"{prefix}_{_stamp(period)}.xlsx"
    return f"{prefix}-{period}.xlsx"


# ---------------- Reading ----------------

def read_rows(upload: Union[BinaryIO, bytes]) -> List[Tuple[int, Dict[str, object]]]:
    """
    (row number, {header: value}) for every non-empty data row of the
    active sheet. The header row is the first row that has any value.
    """
    if isinstance(upload, (bytes, bytearray)):
        upload = BytesIO(upload)
    try:
        wb = load_workbook(upload, data_only=True)
    except Exception as exc:
        logger.warning("Unreadable workbook upload: %s", exc)
        raise UnreadableWorkbookError("Unable to read the uploaded file. Please upload a valid .xlsx file.")

    ws = wb.active
    headers: Optional[List[str]] = None
    out = []
    for number, values in enumerate(ws.iter_rows(values_only=True), start=1):
        if not values or not any(v not in (None, "") for v in values):
            continue
        if headers is None:
            headers = [str(v).strip() if v is not None else "" for v in values]
            continue
        row = {h: v for h, v in zip(headers, values) if h}
        out.append((number, row))
    wb.close()

    if headers is None:
        raise UnreadableWorkbookError("The uploaded file is empty or missing a header row.")
    return out


def import_records(upload: Union[BinaryIO, bytes], table: Table) -> list:
    """Validated create-schemas for every row; nothing is returned unless every row is valid."""
    return parse_rows(read_rows(upload), table)
