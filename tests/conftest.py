"""Shared fixtures: a small Customers/Orders schema."""

import pytest

from sheetseed.db.models import Column, ForeignKeyRef, Table


@pytest.fixture
def customers() -> Table:
    return Table(
        schema="dbo",
        name="Customers",
        columns=(
            Column(
                name="Id",
                native_type="int identity",
                is_identity=True,
                is_primary_key=True,
                is_nullable=False,
            ),
            Column(name="Name", native_type="nvarchar", max_length=100, is_nullable=False),
            Column(name="IsActive", native_type="bit"),
            Column(name="RowVersion", native_type="timestamp", is_auto_generated=True),
        ),
    )


@pytest.fixture
def orders() -> Table:
    return Table(
        schema="dbo",
        name="Orders",
        columns=(
            Column(
                name="Id",
                native_type="int identity",
                is_identity=True,
                is_primary_key=True,
                is_nullable=False,
            ),
            Column(
                name="CustomerId",
                native_type="int",
                is_nullable=False,
                foreign_key=ForeignKeyRef(schema="dbo", table="Customers", column="Id"),
            ),
            Column(name="Total", native_type="decimal"),
            Column(name="PlacedAt", native_type="datetime2"),
            Column(name="Reference", native_type="uniqueidentifier"),
        ),
    )


@pytest.fixture
def schema(customers, orders) -> list[Table]:
    return [orders, customers]
