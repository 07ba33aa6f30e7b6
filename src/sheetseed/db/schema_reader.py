"""Read table, column and foreign-key facts from a live database.

Uses pyodbc's ODBC catalog functions, so any database with an ODBC driver
(SQL Server, PostgreSQL, ...) can be read. Catalog rows are mapped
explicitly into :mod:`sheetseed.db.models`; nothing past this module sees
an untyped row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from pydantic import BaseModel

from sheetseed.db.models import Column, ForeignKeyRef, Table
from sheetseed.db.type_mappings import SQL_SERVER_TYPES, NativeTypeMapping, SemanticType
from sheetseed.errors import SchemaInconsistencyError

if TYPE_CHECKING:
    import pyodbc

logger = logging.getLogger(__name__)

_SYSTEM_SCHEMAS = frozenset({"sys", "information_schema", "pg_catalog", "pg_toast"})

# ODBC drivers report (max) string and binary columns with huge sizes.
_UNBOUNDED_LENGTH = 1 << 30

_SIZED_TYPES = frozenset({SemanticType.STRING, SemanticType.BINARY, SemanticType.XML})


class EnumerateTableOptions(BaseModel):
    """How much work :func:`enumerate_tables` does per table."""

    include_columns: bool = True
    include_foreign_keys: bool = True


def connect(connection_string: str) -> pyodbc.Connection:
    """Open an ODBC connection.

    Parameters
    ----------
    connection_string : str
        A full ODBC connection string, e.g.
        ``DRIVER={ODBC Driver 18 for SQL Server};SERVER=...;DATABASE=...``.

    Returns
    -------
    pyodbc.Connection
        An open ODBC connection.

    Raises
    ------
    pyodbc.Error
        If the ODBC connection fails.
    """
    if not connection_string:
        raise ValueError("A connection string is required")
    import pyodbc

    return pyodbc.connect(connection_string)


def list_tables(conn: pyodbc.Connection) -> list[tuple[str, str]]:
    """List ``(schema, name)`` of all user tables, excluding system schemas."""
    cursor = conn.cursor()
    # Materialise first; issuing another catalog call disrupts the iterator.
    rows = list(cursor.tables(tableType="TABLE"))
    tables = []
    for row in rows:
        schema = row.table_schem or ""
        if schema.casefold() in _SYSTEM_SCHEMAS:
            continue
        tables.append((schema, row.table_name))
    return sorted(tables, key=lambda t: (t[0].casefold(), t[1].casefold()))


def _max_length(row: Any, semantic_type: SemanticType) -> int:
    size = getattr(row, "column_size", None)
    if semantic_type not in _SIZED_TYPES or not size or size < 0 or size >= _UNBOUNDED_LENGTH:
        return 0
    return int(size)


def column_from_row(row: Any, primary_keys: set[str], mapping: NativeTypeMapping) -> Column:
    """Map one ``cursor.columns()`` row to a :class:`Column`."""
    native_type = row.type_name
    resolved = mapping.resolve(native_type)
    return Column(
        name=row.column_name,
        native_type=native_type,
        semantic_type=resolved.semantic_type,
        storage_tag=resolved.storage_tag,
        max_length=_max_length(row, resolved.semantic_type),
        is_nullable=bool(row.nullable),
        is_identity=native_type.strip().casefold().endswith(" identity"),
        is_auto_generated=mapping.is_auto_generated(native_type),
        is_primary_key=row.column_name.casefold() in primary_keys,
    )


def assign_foreign_keys(
    table: Table, references: Iterable[tuple[str, ForeignKeyRef]]
) -> Table:
    """Attach ``(column_name, ref)`` pairs to the columns of ``table``.

    Raises
    ------
    SchemaInconsistencyError
        If a referencing column does not exist or already has a foreign key.
    """
    columns = {column.name.casefold(): column for column in table.columns}
    for column_name, ref in references:
        folded = column_name.casefold()
        if folded not in columns:
            raise SchemaInconsistencyError(
                f"Foreign key on {table.full_name}.{column_name} names an unknown column"
            )
        columns[folded] = columns[folded].with_foreign_key(ref)
    return table.model_copy(
        update={"columns": tuple(columns[c.name.casefold()] for c in table.columns)}
    )


def _read_columns(
    cursor: Any, schema: str, name: str, mapping: NativeTypeMapping
) -> tuple[Column, ...]:
    primary_keys = {
        row.column_name.casefold() for row in list(cursor.primaryKeys(table=name, schema=schema))
    }
    rows = list(cursor.columns(table=name, schema=schema))
    rows.sort(key=lambda r: getattr(r, "ordinal_position", 0))
    return tuple(column_from_row(row, primary_keys, mapping) for row in rows)


def _read_references(cursor: Any, schema: str, name: str) -> list[tuple[str, ForeignKeyRef]]:
    references = []
    for row in list(cursor.foreignKeys(foreignTable=name, foreignSchema=schema)):
        ref = ForeignKeyRef(
            schema=row.pktable_schem or "",
            table=row.pktable_name,
            column=row.pkcolumn_name,
        )
        references.append((row.fkcolumn_name, ref))
    return references


def enumerate_tables(
    conn: pyodbc.Connection,
    options: EnumerateTableOptions | None = None,
    mapping: NativeTypeMapping = SQL_SERVER_TYPES,
) -> list[Table]:
    """Read every user table, with columns and foreign keys as requested.

    Parameters
    ----------
    conn : pyodbc.Connection
        An open database connection.
    options : EnumerateTableOptions, optional
        Foreign keys are only read when columns are.
    mapping : NativeTypeMapping
        Native type mapping of the connected database's dialect.

    Returns
    -------
    list[Table]
        Tables sorted by schema and name.
    """
    options = options or EnumerateTableOptions()
    cursor = conn.cursor()
    tables = []
    for schema, name in list_tables(conn):
        table = Table(schema=schema, name=name)
        if options.include_columns:
            table = table.model_copy(update={"columns": _read_columns(cursor, schema, name, mapping)})
            if options.include_foreign_keys:
                table = assign_foreign_keys(table, _read_references(cursor, schema, name))
        logger.debug("Read table %s with %d columns", table.full_name, len(table.columns))
        tables.append(table)
    logger.info("Read %d tables using the %s type mapping", len(tables), mapping.name)
    return tables
