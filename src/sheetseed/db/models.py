"""Schema models for tables, columns and foreign keys."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from sheetseed.db.type_mappings import SQL_SERVER_TYPES, SemanticType, StorageTag
from sheetseed.errors import SchemaInconsistencyError


class ForeignKeyRef(BaseModel):
    """The column a foreign key points at, in another (or the same) table."""

    schema_name: str = Field(alias="schema", description="Schema of the referenced table")
    table: str = Field(description="Referenced table name")
    column: str = Field(description="Referenced column name")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def table_key(self) -> tuple[str, str]:
        return (self.schema_name.casefold(), self.table.casefold())

    @property
    def table_full_name(self) -> str:
        return f"{self.schema_name}.{self.table}"


class Column(BaseModel):
    """A table column as read from the schema.

    ``semantic_type`` and ``storage_tag`` default to the SQL Server mapping
    of ``native_type`` when not given explicitly; the schema reader always
    passes them from its own mapping.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    native_type: str = Field(description="Raw database type name, e.g. nvarchar")
    semantic_type: SemanticType = SemanticType.UNKNOWN
    storage_tag: StorageTag = StorageTag.OBJECT
    max_length: int = Field(default=0, ge=0, description="0 means unbounded or not applicable")
    is_nullable: bool = True
    is_identity: bool = False
    is_auto_generated: bool = False
    is_primary_key: bool = False
    foreign_key: ForeignKeyRef | None = None

    @model_validator(mode="before")
    @classmethod
    def _resolve_types(cls, data):
        if isinstance(data, dict) and data.get("native_type") is not None:
            data = dict(data)
            mapping = SQL_SERVER_TYPES.resolve(data["native_type"])
            data.setdefault("semantic_type", mapping.semantic_type)
            data.setdefault("storage_tag", mapping.storage_tag)
        return data

    @property
    def is_foreign_key(self) -> bool:
        return self.foreign_key is not None

    def with_foreign_key(self, ref: ForeignKeyRef) -> Column:
        """Return a copy of this column referencing ``ref``.

        A column holds at most one foreign key; a second one means the schema
        read is inconsistent.
        """
        if self.foreign_key is not None:
            raise SchemaInconsistencyError(
                f"Column {self.name!r} already references {self.foreign_key.table_full_name}."
                f"{self.foreign_key.column}; refusing second reference to "
                f"{ref.table_full_name}.{ref.column}"
            )
        return self.model_copy(update={"foreign_key": ref})


class Table(BaseModel):
    """A database table and its ordered columns."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_name: str = Field(alias="schema")
    name: str
    columns: tuple[Column, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        """Case-insensitive identity of the table."""
        return (self.schema_name.casefold(), self.name.casefold())

    @property
    def full_name(self) -> str:
        return f"{self.schema_name}.{self.name}"

    def column(self, name: str) -> Column | None:
        folded = name.casefold()
        for column in self.columns:
            if column.name.casefold() == folded:
                return column
        return None

    @property
    def foreign_keys(self) -> list[Column]:
        return [column for column in self.columns if column.is_foreign_key]
