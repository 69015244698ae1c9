"""Export of selected table rows to Excel or CSV."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from entitydesk.table.columns import ColumnDef, resolve_value


class ExportFormat:
    EXCEL = "xlsx"
    CSV = "csv"

    CHOICES = [EXCEL, CSV]


def format_value(value: Any) -> str:
    """Format a cell value for export."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return ", ".join(format_value(item) for item in value)
    if isinstance(value, dict):
        return ", ".join(f"{key}: {format_value(item)}" for key, item in value.items())
    return str(value)


def exportable_columns(columns: Iterable[ColumnDef]) -> list[ColumnDef]:
    return [column for column in columns if column.exportable and not column.hidden]


def export_rows(
    rows: Sequence[dict[str, Any]],
    columns: Sequence[ColumnDef],
    fmt: str = ExportFormat.EXCEL,
    *,
    sheet_name: str = "Data",
) -> bytes:
    """Render ``rows`` with one header row built from the visible columns."""

    if fmt not in ExportFormat.CHOICES:
        raise ValueError(f"Unsupported export format: {fmt}")
    selected = exportable_columns(columns)
    if fmt == ExportFormat.CSV:
        return _export_csv(rows, selected)
    return _export_excel(rows, selected, sheet_name)


def _export_csv(rows: Sequence[dict[str, Any]], columns: list[ColumnDef]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL)
    writer.writerow([column.header for column in columns])
    for row in rows:
        writer.writerow([format_value(resolve_value(row, column.accessor_key)) for column in columns])
    # BOM keeps non-Latin headers readable in Excel.
    return ("\ufeff" + output.getvalue()).encode("utf-8")


def _export_excel(rows: Sequence[dict[str, Any]], columns: list[ColumnDef], sheet_name: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_name[:31]

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    for col_idx, column in enumerate(columns, start=1):
        cell = sheet.cell(row=1, column=col_idx, value=column.header)
        cell.font = header_font
        cell.fill = header_fill

    widths = [len(column.header) for column in columns]
    for row_idx, row in enumerate(rows, start=2):
        for col_idx, column in enumerate(columns, start=1):
            text = format_value(resolve_value(row, column.accessor_key))
            sheet.cell(row=row_idx, column=col_idx, value=text)
            widths[col_idx - 1] = max(widths[col_idx - 1], len(text))

    for col_idx, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(col_idx)].width = min(max(width + 2, 10), 60)

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()
