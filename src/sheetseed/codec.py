"""Column metadata stored in header cell comments.

A workbook keeps no schema of its own, so each header cell carries a JSON
comment describing its column. That comment is the only thing the generate
path knows about the column once the database connection is gone.

Example comment::

    {
      "Name": "CustomerId",
      "NativeType": "int",
      "Type": "integer",
      "DbType": "int32",
      "MaxLength": 0,
      "IsPrimaryKey": false,
      "IsIdentity": false,
      "IsNullable": false,
      "IsAutoGenerated": false,
      "IsForeignKey": true,
      "ForeignKey": {"Schema": "dbo", "Table": "Customers", "Column": "Id"}
    }
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sheetseed.db.models import Column, ForeignKeyRef
from sheetseed.db.type_mappings import SemanticType, StorageTag
from sheetseed.errors import MalformedMetadataError


class ForeignKeyMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    schema_name: str = Field(default="", alias="Schema")
    table: str = Field(default="", alias="Table")
    column: str = Field(default="", alias="Column")


class ColumnMetadata(BaseModel):
    """Decoded header comment."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(alias="Name", min_length=1)
    native_type: str = Field(default="", alias="NativeType")
    semantic_type: SemanticType = Field(default=SemanticType.UNKNOWN, alias="Type")
    storage_tag: StorageTag = Field(alias="DbType")
    max_length: int = Field(default=0, ge=0, alias="MaxLength")
    is_primary_key: bool = Field(default=False, alias="IsPrimaryKey")
    is_identity: bool = Field(default=False, alias="IsIdentity")
    is_nullable: bool = Field(default=True, alias="IsNullable")
    is_auto_generated: bool = Field(default=False, alias="IsAutoGenerated")
    is_foreign_key: bool = Field(default=False, alias="IsForeignKey")
    foreign_key: ForeignKeyMetadata = Field(default_factory=ForeignKeyMetadata, alias="ForeignKey")

    @property
    def foreign_key_ref(self) -> ForeignKeyRef | None:
        if not self.is_foreign_key or not self.foreign_key.table:
            return None
        return ForeignKeyRef(
            schema=self.foreign_key.schema_name,
            table=self.foreign_key.table,
            column=self.foreign_key.column,
        )


def metadata_for(column: Column) -> ColumnMetadata:
    ref = column.foreign_key
    return ColumnMetadata(
        name=column.name,
        native_type=column.native_type,
        semantic_type=column.semantic_type,
        storage_tag=column.storage_tag,
        max_length=column.max_length,
        is_primary_key=column.is_primary_key,
        is_identity=column.is_identity,
        is_nullable=column.is_nullable,
        is_auto_generated=column.is_auto_generated,
        is_foreign_key=column.is_foreign_key,
        foreign_key=ForeignKeyMetadata(
            schema_name=ref.schema_name if ref else "",
            table=ref.table if ref else "",
            column=ref.column if ref else "",
        ),
    )


def encode_column(column: Column) -> str:
    """Serialize ``column`` into the text of its header comment."""
    return metadata_for(column).model_dump_json(by_alias=True, indent=2)


def decode_column(text: str | None) -> ColumnMetadata:
    """Parse a header comment back into column metadata.

    Text before the first ``{`` and after the last ``}`` is ignored; Excel
    prefixes comments with the author's name once a user edits them.

    Raises
    ------
    MalformedMetadataError
        If there is no comment, no JSON object, or the object does not
        describe a column.
    """
    if not text or not text.strip():
        raise MalformedMetadataError("Header cell has no metadata comment")
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end < start:
        raise MalformedMetadataError("Header comment holds no JSON object")
    try:
        return ColumnMetadata.model_validate_json(text[start : end + 1])
    except ValidationError as exc:
        raise MalformedMetadataError(f"Invalid column metadata: {exc.error_count()} error(s)") from exc
