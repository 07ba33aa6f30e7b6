"""Tests for turning sheets back into bindings."""

from datetime import date, datetime, time

import pytest

from sheetseed.codec import encode_column
from sheetseed.errors import UnrenderableLiteralError
from sheetseed.extractor import cell_text, extract_bindings, extract_sheet, split_table_name
from sheetseed.policy import EMPTY_LITERAL, LiteralRule
from sheetseed.workbook import HeaderData, RowData, SheetGrid


def _grid(table, rows, *, table_name=None, comments=None):
    headers = []
    for position, column in enumerate(table.columns, 1):
        comment = encode_column(column)
        if comments and column.name in comments:
            comment = comments[column.name]
        headers.append(HeaderData(position=position, text=column.name, comment=comment))
    return SheetGrid(
        sheet_name=table.full_name,
        table_name=table_name or table.full_name,
        headers=headers,
        rows=[
            RowData(row_number=n, values=dict(enumerate(values, 1)))
            for n, values in enumerate(rows, 2)
        ],
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        (True, "1"),
        (False, "0"),
        (42, "42"),
        (42.0, "42"),
        (19.5, "19.5"),
        ("text", "text"),
        (datetime(2024, 1, 2, 3, 4, 5), "2024-01-02 03:04:05"),
        (date(2024, 1, 2), "2024-01-02"),
        (time(10, 30), "10:30:00"),
    ],
)
def test_cell_text(value, expected):
    assert cell_text(value) == expected


def test_split_table_name():
    assert split_table_name("dbo.Customers") == ("dbo", "Customers")
    assert split_table_name("sales.order.lines") == ("sales", "order.lines")
    assert split_table_name("Customers") == ("", "Customers")


def test_sheet_without_table_contributes_nothing():
    grid = SheetGrid(sheet_name="Notes")
    assert extract_sheet(grid) is None
    assert extract_bindings([grid]) == []


def test_auto_generated_columns_are_dropped(customers):
    binding = extract_sheet(_grid(customers, [[1, "Contoso", 1, "0x01"]]))
    assert binding.schema_name == "dbo"
    assert binding.name == "Customers"
    assert [c.name for c in binding.columns] == ["Id", "Name", "IsActive"]
    assert binding.rows == [["1", "'Contoso'", "True"]]


def test_columns_keep_metadata(orders):
    binding = extract_sheet(_grid(orders, []))
    customer_id = binding.columns[1]
    assert customer_id.position == 2
    assert customer_id.literal_rule is LiteralRule.NUMERIC
    assert customer_id.foreign_key.table_full_name == "dbo.Customers"
    assert binding.identity_insert


def test_blank_rows_are_skipped_and_missing_cells_are_empty(customers):
    rows = [[None, None, None, None], [2, None, "  ", None]]
    binding = extract_sheet(_grid(customers, rows))
    assert binding.rows == [["2", EMPTY_LITERAL, EMPTY_LITERAL]]


def test_malformed_header_drops_only_that_column(customers):
    grid = _grid(customers, [[1, "Contoso", 0]], comments={"Name": "edited by hand"})
    binding = extract_sheet(grid)
    assert [c.name for c in binding.columns] == ["Id", "IsActive"]
    assert binding.rows == [["1", "False"]]


def test_bad_cell_drops_row_and_is_reported(orders):
    rows = [
        [1, 1, "19.99", datetime(2024, 1, 2), None],
        [2, "Contoso", "5", None, None],
        [3, 1, "7.5", None, "not-a-guid"],
    ]
    binding = extract_sheet(_grid(orders, rows))
    assert len(binding.rows) == 1
    assert binding.rows[0][3] == "datetime.fromisoformat('2024-01-02 00:00:00')"
    assert [(e.row, e.column, e.value) for e in binding.errors] == [
        (3, "CustomerId", "Contoso"),
        (4, "Reference", "not-a-guid"),
    ]
    assert str(binding.errors[0]).startswith("dbo.Orders!CustomerId (row 3):")


def test_every_bad_cell_in_a_row_is_reported(orders):
    binding = extract_sheet(_grid(orders, [[1, "Contoso", "5", "yesterday", "not-a-guid"]]))
    assert binding.rows == []
    assert [e.column for e in binding.errors] == ["CustomerId", "PlacedAt", "Reference"]
    assert {e.row for e in binding.errors} == {2}


def test_strict_mode_raises_first_error(orders):
    grid = _grid(orders, [[2, "Contoso", "5", None, None]])
    with pytest.raises(UnrenderableLiteralError) as excinfo:
        extract_bindings([grid], strict=True)
    assert excinfo.value.sheet == "dbo.Orders"
    assert excinfo.value.row == 2
    assert excinfo.value.column == "CustomerId"


def test_sheets_keep_workbook_order(customers, orders):
    bindings = extract_bindings([_grid(customers, []), SheetGrid(sheet_name="x"), _grid(orders, [])])
    assert [b.full_name for b in bindings] == ["dbo.Customers", "dbo.Orders"]
