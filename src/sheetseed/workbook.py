"""openpyxl adapter: render a scaffold into a workbook and read one back."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.comments import Comment
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter, range_boundaries
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.table import Table as ExcelTable
from openpyxl.worksheet.table import TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel, Field

from sheetseed.policy import (
    BooleanList,
    BoundedInteger,
    DateFormat,
    ForeignKeyList,
    TextLength,
    TimeFormat,
)
from sheetseed.scaffold import EXCEL_MAX_ROWS, HeaderCell, SheetScaffold, WorkbookScaffold

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")
COMMENT_AUTHOR = "Owner"
HEADER_FONT = Font(name="Calibri", bold=True, size=11)
HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
TABLE_STYLE = "TableStyleMedium2"
MIN_COLUMN_WIDTH = 12


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def new_workbook() -> Workbook:
    """An empty workbook without openpyxl's default sheet."""
    wb = Workbook()
    wb.remove(wb.active)
    return wb


def load_workbook_file(filepath: str | Path) -> Workbook:
    """Load a workbook for reading or extending.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is not an Excel Open XML workbook.
    """
    path = Path(filepath).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Workbook not found: {filepath}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported file type: {path.suffix}")
    return load_workbook(str(path))


def scaffold_from_workbook(wb: Workbook) -> WorkbookScaffold:
    """Describe the sheets and table objects already in ``wb``."""
    scaffold = WorkbookScaffold()
    for ws in wb.worksheets:
        tables = list(ws.tables.values())
        if not tables:
            scaffold.sheets.append(SheetScaffold(name=ws.title, existing=True))
            continue
        for table in tables:
            min_col, min_row, max_col, _ = range_boundaries(table.ref)
            headers = [
                HeaderCell(column_index=col, text=str(ws.cell(row=min_row, column=col).value or ""))
                for col in range(min_col, max_col + 1)
            ]
            scaffold.sheets.append(
                SheetScaffold(
                    name=ws.title,
                    table_name=table.displayName,
                    headers=headers,
                    existing=True,
                )
            )
    return scaffold


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _data_range(letter: str, max_rows: int) -> str:
    return f"{letter}2:{letter}{max_rows}"


def _apply_validation(ws: Worksheet, header: HeaderCell, max_rows: int) -> None:
    rule = header.validation
    letter = header.column_letter
    dv = None
    if isinstance(rule, ForeignKeyList):
        if header.list_formula is None:
            raise ValueError(f"Foreign-key list for {header.text} was never resolved")
        dv = DataValidation(type="list", formula1=header.list_formula, allow_blank=True)
        dv.error = f"Pick a value from {rule.target_table}.{rule.target_column}."
        dv.errorTitle = "Unknown reference"
    elif isinstance(rule, BooleanList):
        dv = DataValidation(type="list", formula1='"{}"'.format(",".join(rule.values)), allow_blank=True)
        dv.error = "The value must be 0 or 1."
    elif isinstance(rule, BoundedInteger):
        dv = DataValidation(
            type="whole",
            operator="between",
            formula1=str(rule.min),
            formula2=str(rule.max),
            allow_blank=True,
        )
        dv.error = "The value must be an integer."
    elif isinstance(rule, TextLength):
        dv = DataValidation(
            type="textLength",
            operator="lessThanOrEqual",
            formula1=str(rule.max_length),
            allow_blank=True,
        )
        dv.errorStyle = "warning"
        dv.error = f"This cell should be at most {rule.max_length} characters long."
    elif isinstance(rule, (DateFormat, TimeFormat)):
        ws.column_dimensions[letter].number_format = rule.number_format
    if dv is not None:
        dv.showErrorMessage = True
        dv.add(_data_range(letter, max_rows))
        ws.add_data_validation(dv)


def write_sheet(ws: Worksheet, sheet: SheetScaffold, max_rows: int = EXCEL_MAX_ROWS) -> None:
    """Write one table's header row, comments, validations and table object."""
    for header in sheet.headers:
        cell = ws.cell(row=1, column=header.column_index, value=header.text)
        if header.bold:
            cell.font = HEADER_FONT
        cell.alignment = HEADER_ALIGN
        if header.annotation:
            comment = Comment(header.annotation, COMMENT_AUTHOR)
            comment.width = 320
            comment.height = 260
            cell.comment = comment
        _apply_validation(ws, header, max_rows)
        ws.column_dimensions[header.column_letter].width = max(MIN_COLUMN_WIDTH, len(header.text) + 4)

    # Excel wants at least one data row under the header.
    last = get_column_letter(max(h.column_index for h in sheet.headers))
    table = ExcelTable(displayName=sheet.table_name, ref=f"A1:{last}2")
    table.tableStyleInfo = TableStyleInfo(name=TABLE_STYLE, showRowStripes=True)
    ws.add_table(table)

    # Freeze header row
    ws.freeze_panes = "A2"


def render_scaffold(wb: Workbook, scaffold: WorkbookScaffold, max_rows: int = EXCEL_MAX_ROWS) -> int:
    """Create the scaffold's new sheets in ``wb``; return how many were added."""
    added = 0
    for sheet in scaffold.new_sheets:
        ws = wb.create_sheet(title=sheet.name)
        write_sheet(ws, sheet, max_rows)
        logger.debug("Created sheet %r for %s", sheet.name, sheet.table_name)
        added += 1
    return added


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

class HeaderData(BaseModel):
    position: int
    text: str
    comment: str | None = None


class RowData(BaseModel):
    row_number: int
    # position -> raw cell value
    values: dict[int, Any] = Field(default_factory=dict)


class SheetGrid(BaseModel):
    """A sheet's first table object as a plain grid of values and comments."""

    sheet_name: str
    table_name: str | None = None
    headers: list[HeaderData] = Field(default_factory=list)
    rows: list[RowData] = Field(default_factory=list)


def read_sheet(ws: Worksheet) -> SheetGrid:
    tables = list(ws.tables.values())
    if not tables:
        return SheetGrid(sheet_name=ws.title)
    table = tables[0]
    min_col, header_row, max_col, _ = range_boundaries(table.ref)

    headers = []
    for col in range(min_col, max_col + 1):
        cell = ws.cell(row=header_row, column=col)
        if cell.value is None or not str(cell.value).strip():
            continue
        headers.append(
            HeaderData(
                position=col,
                text=str(cell.value),
                comment=cell.comment.text if cell.comment else None,
            )
        )

    rows = []
    for row_number, row in enumerate(
        ws.iter_rows(min_row=header_row + 1, min_col=min_col, max_col=max_col, values_only=True),
        header_row + 1,
    ):
        rows.append(
            RowData(
                row_number=row_number,
                values={min_col + offset: value for offset, value in enumerate(row)},
            )
        )
    return SheetGrid(sheet_name=ws.title, table_name=table.displayName, headers=headers, rows=rows)


def read_document(wb: Workbook) -> list[SheetGrid]:
    """Read every sheet of ``wb`` in workbook order."""
    return [read_sheet(ws) for ws in wb.worksheets]
