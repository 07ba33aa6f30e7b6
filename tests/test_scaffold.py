"""Tests for the workbook scaffold builder."""

import pytest

from sheetseed.codec import decode_column
from sheetseed.db.models import Column, ForeignKeyRef, Table
from sheetseed.errors import SchemaInconsistencyError
from sheetseed.events import StatusEvent
from sheetseed.ordering import order_tables
from sheetseed.policy import BooleanList, ForeignKeyList
from sheetseed.scaffold import (
    HeaderCell,
    ScaffoldBuilder,
    SheetNamer,
    SheetScaffold,
    WorkbookScaffold,
    is_table_name,
    list_formula,
)


def test_one_sheet_per_table(schema):
    scaffold = ScaffoldBuilder().build(order_tables(schema))
    assert [s.name for s in scaffold.sheets] == ["dbo.Customers", "dbo.Orders"]
    assert [s.table_name for s in scaffold.sheets] == ["dbo.Customers", "dbo.Orders"]


def test_headers_skip_auto_generated_columns(schema):
    customers = ScaffoldBuilder().build(order_tables(schema)).find_table("dbo.customers")
    assert [h.text for h in customers.headers] == ["Id", "Name", "IsActive"]
    assert [h.column_index for h in customers.headers] == [1, 2, 3]
    assert all(h.bold for h in customers.headers)
    assert customers.header("isactive").validation == BooleanList()


def test_header_annotation_is_encoded_metadata(schema):
    orders = ScaffoldBuilder().build(order_tables(schema)).find_table("dbo.Orders")
    header = orders.header("CustomerId")
    decoded = decode_column(header.annotation)
    assert decoded.name == "CustomerId"
    assert decoded.foreign_key_ref == ForeignKeyRef(schema="dbo", table="Customers", column="Id")


def test_foreign_key_list_points_at_target_column(schema):
    scaffold = ScaffoldBuilder(max_rows=500).build(order_tables(schema))
    header = scaffold.find_table("dbo.Orders").header("CustomerId")
    assert isinstance(header.validation, ForeignKeyList)
    assert header.list_formula == "'dbo.Customers'!$A$2:$A$500"


def test_existing_tables_are_skipped(schema):
    existing = WorkbookScaffold(
        sheets=[
            SheetScaffold(
                name="Clients",
                table_name="dbo.Customers",
                headers=[HeaderCell(column_index=2, text="Id")],
                existing=True,
            )
        ]
    )
    scaffold = ScaffoldBuilder().build(order_tables(schema), existing)
    assert [s.name for s in scaffold.new_sheets] == ["dbo.Orders"]
    header = scaffold.find_table("dbo.Orders").header("CustomerId")
    assert header.list_formula == "'Clients'!$B$2:$B$1048576"


def test_building_twice_adds_nothing(schema):
    builder = ScaffoldBuilder()
    scaffold = builder.build(order_tables(schema))
    for sheet in scaffold.sheets:
        sheet.existing = True
    again = builder.build(order_tables(schema), scaffold)
    assert again.new_sheets == []
    assert len(again.sheets) == 2


def test_missing_target_sheet_is_fatal(orders):
    with pytest.raises(SchemaInconsistencyError, match="has no sheet"):
        ScaffoldBuilder().build([orders])


def test_missing_target_column_is_fatal(schema):
    existing = WorkbookScaffold(
        sheets=[SheetScaffold(name="Customers", table_name="dbo.Customers", existing=True)]
    )
    with pytest.raises(SchemaInconsistencyError, match="has no column"):
        ScaffoldBuilder().build(order_tables(schema), existing)


def test_table_without_seedable_columns_is_skipped():
    audit = Table(
        schema="dbo",
        name="Audit",
        columns=(Column(name="Version", native_type="rowversion", is_auto_generated=True),),
    )
    assert ScaffoldBuilder().build([audit]).sheets == []


def test_reference_to_skipped_table_drops_pick_list():
    region = Table(
        schema="dbo",
        name="Sales Region",
        columns=(Column(name="Id", native_type="int", is_primary_key=True),),
    )
    stores = Table(
        schema="dbo",
        name="Stores",
        columns=(
            Column(name="Id", native_type="int", is_primary_key=True),
            Column(
                name="RegionId",
                native_type="int",
                foreign_key=ForeignKeyRef(schema="dbo", table="Sales Region", column="Id"),
            ),
        ),
    )
    scaffold = ScaffoldBuilder().build(order_tables([region, stores]))
    assert [s.table_name for s in scaffold.sheets] == ["dbo.Stores"]
    header = scaffold.find_table("dbo.Stores").header("RegionId")
    assert header.validation is None
    assert header.list_formula is None


def test_reference_to_table_without_seedable_columns_drops_pick_list():
    audit = Table(
        schema="dbo",
        name="Audit",
        columns=(Column(name="Version", native_type="rowversion", is_auto_generated=True),),
    )
    entries = Table(
        schema="dbo",
        name="Entries",
        columns=(
            Column(
                name="AuditVersion",
                native_type="int",
                foreign_key=ForeignKeyRef(schema="dbo", table="Audit", column="Version"),
            ),
        ),
    )
    scaffold = ScaffoldBuilder().build([audit, entries])
    assert scaffold.find_table("dbo.Entries").header("AuditVersion").validation is None


@pytest.mark.parametrize(
    "name, valid",
    [
        ("dbo.Customers", True),
        ("_staging.Rows", True),
        ("dbo.Sales Region", False),
        (".Customers", False),
        ("dbo.order-lines", False),
        ("1st.Table", False),
        ("AB12", False),
        ("R1C1", False),
    ],
)
def test_is_table_name(name, valid):
    assert is_table_name(name) is valid


def test_table_with_empty_schema_is_skipped():
    loose = Table(schema="", name="Customers", columns=(Column(name="Id", native_type="int"),))
    assert ScaffoldBuilder().build([loose]).sheets == []


def test_progress_events(schema):
    events = []
    ScaffoldBuilder(observer=events.append).build(order_tables(schema))
    assert [e.event for e in events] == [StatusEvent.EXPORT_TABLE] * 2
    assert events[0].message == "Getting database table dbo.Customers information."


class TestSheetNamer:
    def test_short_names_are_kept(self):
        assert SheetNamer().name_for("dbo.Customers", set()) == "dbo.Customers"

    def test_forbidden_characters_are_replaced(self):
        assert SheetNamer().name_for("dbo.A/B[1]", set()) == "dbo.A_B_1_"

    def test_long_names_are_truncated(self):
        full_name = "reporting.CustomerLifetimeValueSnapshots"
        name = SheetNamer.seeded(1).name_for(full_name, set())
        assert len(name) <= 31
        assert name.startswith(full_name[:24] + "...")

    def test_seeded_names_are_reproducible(self):
        full_name = "reporting.CustomerLifetimeValueSnapshots"
        first = SheetNamer.seeded(7).name_for(full_name, set())
        second = SheetNamer.seeded(7).name_for(full_name, set())
        assert first == second

    def test_names_are_unique_case_insensitively(self):
        namer = SheetNamer.seeded(3)
        taken = set()
        for _ in range(50):
            name = namer.name_for("reporting.CustomerLifetimeValueSnapshots", taken)
            assert name.casefold() not in taken
            assert len(name) <= 31
            taken.add(name.casefold())

    def test_counter_fallback(self):
        name = SheetNamer(attempts=0).name_for("x" * 40, set())
        assert name == "x" * 25 + "...100"


def test_list_formula_quotes_sheet_name():
    assert list_formula("O'Hare", "B", 10) == "'O''Hare'!$B$2:$B$10"
