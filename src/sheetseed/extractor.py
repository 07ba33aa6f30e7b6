"""Turn filled-in sheets back into column bindings and literal rows."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

from sheetseed.codec import ColumnMetadata, decode_column
from sheetseed.db.models import ForeignKeyRef
from sheetseed.db.type_mappings import SemanticType, StorageTag
from sheetseed.errors import MalformedMetadataError, UnrenderableLiteralError
from sheetseed.policy import DEFAULT_POLICY, LiteralRule, TypePolicy, literal_rule_for
from sheetseed.workbook import SheetGrid

logger = logging.getLogger(__name__)


class BindingColumn(BaseModel):
    """A column rebuilt from its header comment."""

    model_config = ConfigDict(frozen=True)

    name: str
    native_type: str
    semantic_type: SemanticType
    storage_tag: StorageTag
    max_length: int = 0
    is_primary_key: bool = False
    is_identity: bool = False
    is_nullable: bool = True
    is_auto_generated: bool = False
    is_foreign_key: bool = False
    foreign_key: ForeignKeyRef | None = None
    position: int = Field(ge=1, description="1-based sheet column of the header")
    literal_rule: LiteralRule

    @classmethod
    def from_metadata(cls, metadata: ColumnMetadata, position: int) -> BindingColumn:
        return cls(
            name=metadata.name,
            native_type=metadata.native_type,
            semantic_type=metadata.semantic_type,
            storage_tag=metadata.storage_tag,
            max_length=metadata.max_length,
            is_primary_key=metadata.is_primary_key,
            is_identity=metadata.is_identity,
            is_nullable=metadata.is_nullable,
            is_auto_generated=metadata.is_auto_generated,
            is_foreign_key=metadata.is_foreign_key,
            foreign_key=metadata.foreign_key_ref,
            position=position,
            literal_rule=literal_rule_for(metadata.storage_tag),
        )


class CellError(BaseModel):
    model_config = ConfigDict(frozen=True)

    sheet: str
    row: int
    column: str
    value: str | None
    message: str

    def __str__(self) -> str:
        return f"{self.sheet}!{self.column} (row {self.row}): {self.message}"


class BindingTable(BaseModel):
    schema_name: str = Field(alias="schema")
    name: str
    sheet_name: str
    columns: list[BindingColumn] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    errors: list[CellError] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name

    @property
    def identifier(self) -> str:
        """``schema`` and ``name`` run together, usable in generated names."""
        return f"{self.schema_name}{self.name}"

    @property
    def identity_insert(self) -> bool:
        return any(column.is_identity for column in self.columns)


def cell_text(value: Any) -> str | None:
    """Raw text of a cell value; ``None`` for an empty cell."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    text = str(value)
    return text if text.strip() else None


def split_table_name(table_name: str) -> tuple[str, str]:
    schema, dot, name = table_name.partition(".")
    return (schema, name) if dot else ("", table_name)


def decode_headers(grid: SheetGrid) -> list[BindingColumn]:
    """Decode every header comment; unreadable or auto-generated columns are dropped."""
    columns = []
    for header in grid.headers:
        try:
            metadata = decode_column(header.comment)
        except MalformedMetadataError as exc:
            logger.warning("%s: ignoring column %r: %s", grid.sheet_name, header.text, exc)
            continue
        if metadata.is_auto_generated:
            logger.debug("%s: dropping auto-generated column %r", grid.sheet_name, metadata.name)
            continue
        columns.append(BindingColumn.from_metadata(metadata, header.position))
    return columns


def extract_sheet(
    grid: SheetGrid, policy: TypePolicy | None = None, strict: bool = False
) -> BindingTable | None:
    """Extract one sheet; ``None`` when it has no table object.

    A row whose cells are all blank is skipped. A row with a cell that cannot
    be rendered is dropped and the problem recorded in ``errors``; with
    ``strict`` the error is raised instead.
    """
    if not grid.table_name:
        logger.debug("Sheet %r has no table object", grid.sheet_name)
        return None
    policy = policy or DEFAULT_POLICY
    schema, name = split_table_name(grid.table_name)
    binding = BindingTable(
        schema=schema, name=name, sheet_name=grid.sheet_name, columns=decode_headers(grid)
    )
    if not binding.columns:
        logger.warning("Sheet %r has no decodable columns", grid.sheet_name)
        return binding
    renderers = [policy.renderer_for(column.storage_tag) for column in binding.columns]

    for row in grid.rows:
        texts = [cell_text(value) for value in row.values.values()]
        if all(text is None for text in texts):
            continue
        literals = []
        row_errors = []
        for column, render in zip(binding.columns, renderers):
            raw = cell_text(row.values.get(column.position))
            try:
                literals.append(render(raw))
            except UnrenderableLiteralError as exc:
                if strict:
                    raise UnrenderableLiteralError(
                        exc.message,
                        sheet=grid.sheet_name,
                        row=row.row_number,
                        column=column.name,
                        value=raw,
                    ) from exc
                error = CellError(
                    sheet=grid.sheet_name,
                    row=row.row_number,
                    column=column.name,
                    value=raw,
                    message=exc.message,
                )
                logger.warning("Skipping row: %s", error)
                row_errors.append(error)
        if row_errors:
            binding.errors.extend(row_errors)
        else:
            binding.rows.append(literals)
    return binding


def extract_bindings(
    sheets: Iterable[SheetGrid], policy: TypePolicy | None = None, strict: bool = False
) -> list[BindingTable]:
    """Extract every sheet that holds a table object, in sheet order."""
    tables = []
    for grid in sheets:
        binding = extract_sheet(grid, policy=policy, strict=strict)
        if binding is not None:
            tables.append(binding)
    return tables
