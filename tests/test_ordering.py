"""Tests for foreign-key dependency ordering."""

from itertools import permutations

import pytest

from sheetseed.db.models import Column, ForeignKeyRef, Table
from sheetseed.errors import SchemaInconsistencyError
from sheetseed.ordering import check_references, dependency_graph, order_tables


def _table(name, *refs, schema="dbo"):
    columns = [Column(name="Id", native_type="int", is_primary_key=True)]
    for target in refs:
        columns.append(
            Column(
                name=f"{target}Id",
                native_type="int",
                foreign_key=ForeignKeyRef(schema=schema, table=target, column="Id"),
            )
        )
    return Table(schema=schema, name=name, columns=tuple(columns))


def _names(tables):
    return [t.name for t in tables]


def test_referenced_table_comes_first(schema):
    assert _names(order_tables(schema)) == ["Customers", "Orders"]


def test_order_ignores_input_order():
    tables = [
        _table("OrderLines", "Orders", "Products"),
        _table("Orders", "Customers"),
        _table("Customers"),
        _table("Products"),
    ]
    expected = ["Customers", "Orders", "Products", "OrderLines"]
    for perm in permutations(tables):
        assert _names(order_tables(perm)) == expected


def test_independent_tables_sort_case_insensitively():
    tables = [_table("beta"), _table("Alpha"), _table("gamma")]
    assert _names(order_tables(tables)) == ["Alpha", "beta", "gamma"]


def test_two_table_cycle_terminates():
    ordered = order_tables([_table("B", "A"), _table("A", "B")])
    assert _names(ordered) == ["A", "B"]


def test_cycle_does_not_hold_back_other_tables():
    tables = [_table("A", "B"), _table("B", "A"), _table("C", "A"), _table("Root")]
    ordered = _names(order_tables(tables))
    assert sorted(ordered) == ["A", "B", "C", "Root"]
    assert ordered.index("A") < ordered.index("C")


def test_self_reference_is_not_a_dependency():
    employees = _table("Employees", "Employees")
    graph = dependency_graph([employees])
    assert graph.depends_on[employees.key] == set()
    assert employees.key in graph.self_referencing
    assert _names(order_tables([employees])) == ["Employees"]


def test_reference_outside_input_is_ignored():
    assert _names(order_tables([_table("Orders", "Customers")])) == ["Orders"]


def test_duplicate_table_is_rejected():
    with pytest.raises(SchemaInconsistencyError, match="more than once"):
        order_tables([_table("Customers"), _table("CUSTOMERS")])


def test_check_references_accepts_complete_schema(schema):
    check_references(schema)


def test_check_references_missing_table():
    with pytest.raises(SchemaInconsistencyError, match="missing table dbo.Customers"):
        check_references([_table("Orders", "Customers")])


def test_check_references_missing_column():
    orders = Table(
        schema="dbo",
        name="Orders",
        columns=(
            Column(
                name="CustomerId",
                native_type="int",
                foreign_key=ForeignKeyRef(schema="dbo", table="Customers", column="Code"),
            ),
        ),
    )
    with pytest.raises(SchemaInconsistencyError, match="missing column dbo.Customers.Code"):
        check_references([orders, _table("Customers")])
