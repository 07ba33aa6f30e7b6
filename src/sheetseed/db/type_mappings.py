"""Native database type mappings.

Every column read from a live schema is classified twice: a semantic type
(what kind of value it holds) and a storage tag (how the value is validated
in the workbook and rendered back into a literal). The storage tag is the
single vocabulary shared by the export and generate paths, so its string
values are written into header comments and must never change.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, NamedTuple


class SemanticType(str, Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    DATETIME_OFFSET = "datetime_offset"
    BINARY = "binary"
    GUID = "guid"
    XML = "xml"
    UNKNOWN = "unknown"


class StorageTag(str, Enum):
    INT64 = "int64"
    INT32 = "int32"
    INT16 = "int16"
    BYTE = "byte"
    BOOL = "bool"
    STRING_FIXED = "string-fixed"
    STRING_VARIABLE = "string-variable"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    DATETIME_OFFSET = "datetime-offset"
    DECIMAL = "decimal"
    DOUBLE = "double"
    SINGLE = "single"
    BINARY = "binary"
    GUID = "guid"
    XML = "xml"
    OBJECT = "object"


class TypeMapping(NamedTuple):
    semantic_type: SemanticType
    storage_tag: StorageTag


FALLBACK = TypeMapping(SemanticType.UNKNOWN, StorageTag.OBJECT)

# "varchar(50)", "numeric(10, 2)", "int identity", "timestamp with time zone"
_PARAMETERS = re.compile(r"\(.*?\)")
_IDENTITY_SUFFIX = re.compile(r"\s+identity$", re.IGNORECASE)


def normalize_native_type(native_type: str) -> str:
    """Strip parameters and the SQL Server ``identity`` suffix, case-fold."""
    name = _PARAMETERS.sub("", native_type or "")
    name = _IDENTITY_SUFFIX.sub("", name.strip())
    return " ".join(name.split()).casefold()


class NativeTypeMapping:
    """Case-insensitive lookup from native type name to :class:`TypeMapping`.

    Unknown types resolve to :data:`FALLBACK` instead of failing, so schema
    introspection never aborts on an unrecognized column type.
    """

    def __init__(
        self,
        name: str,
        entries: Iterable[tuple[str, TypeMapping]],
        auto_generated: Iterable[str] = (),
    ) -> None:
        self.name = name
        self._entries = {normalize_native_type(key): value for key, value in entries}
        # Native types whose values are always produced by the database.
        self._auto_generated = frozenset(normalize_native_type(key) for key in auto_generated)

    def __contains__(self, native_type: str) -> bool:
        return normalize_native_type(native_type) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, native_type: str) -> TypeMapping:
        return self._entries.get(normalize_native_type(native_type), FALLBACK)

    def is_auto_generated(self, native_type: str) -> bool:
        return normalize_native_type(native_type) in self._auto_generated

    def extended(self, name: str, entries: Iterable[tuple[str, TypeMapping]]) -> NativeTypeMapping:
        """Return a copy with ``entries`` added or overriding existing ones."""
        merged = dict(self._entries)
        merged.update((normalize_native_type(key), value) for key, value in entries)
        return NativeTypeMapping(name, merged.items(), self._auto_generated)


def _m(semantic_type: SemanticType, storage_tag: StorageTag) -> TypeMapping:
    return TypeMapping(semantic_type, storage_tag)


S, T = SemanticType, StorageTag

SQL_SERVER_TYPES = NativeTypeMapping(
    "sqlserver",
    [
        ("bigint", _m(S.INTEGER, T.INT64)),
        ("binary", _m(S.BINARY, T.BINARY)),
        ("bit", _m(S.BOOLEAN, T.BOOL)),
        ("char", _m(S.STRING, T.STRING_FIXED)),
        ("date", _m(S.DATE, T.DATE)),
        ("datetime", _m(S.DATETIME, T.DATETIME)),
        ("datetime2", _m(S.DATETIME, T.DATETIME)),
        ("datetimeoffset", _m(S.DATETIME_OFFSET, T.DATETIME_OFFSET)),
        ("decimal", _m(S.DECIMAL, T.DECIMAL)),
        ("float", _m(S.FLOAT, T.DOUBLE)),
        ("image", _m(S.BINARY, T.BINARY)),
        ("int", _m(S.INTEGER, T.INT32)),
        ("money", _m(S.DECIMAL, T.DECIMAL)),
        ("nchar", _m(S.STRING, T.STRING_FIXED)),
        ("ntext", _m(S.STRING, T.STRING_VARIABLE)),
        ("numeric", _m(S.DECIMAL, T.DECIMAL)),
        ("nvarchar", _m(S.STRING, T.STRING_VARIABLE)),
        ("real", _m(S.FLOAT, T.SINGLE)),
        ("rowversion", _m(S.BINARY, T.BINARY)),
        ("smalldatetime", _m(S.DATETIME, T.DATETIME)),
        ("smallint", _m(S.INTEGER, T.INT16)),
        ("smallmoney", _m(S.DECIMAL, T.DECIMAL)),
        ("sql_variant", _m(S.UNKNOWN, T.OBJECT)),
        ("text", _m(S.STRING, T.STRING_VARIABLE)),
        ("time", _m(S.TIME, T.TIME)),
        ("timestamp", _m(S.BINARY, T.BINARY)),
        ("tinyint", _m(S.INTEGER, T.BYTE)),
        ("uniqueidentifier", _m(S.GUID, T.GUID)),
        ("varbinary", _m(S.BINARY, T.BINARY)),
        ("varchar", _m(S.STRING, T.STRING_VARIABLE)),
        ("xml", _m(S.XML, T.XML)),
    ],
    auto_generated=("timestamp", "rowversion"),
)

POSTGRESQL_TYPES = NativeTypeMapping(
    "postgresql",
    [
        ("bigint", _m(S.INTEGER, T.INT64)),
        ("int8", _m(S.INTEGER, T.INT64)),
        ("bigserial", _m(S.INTEGER, T.INT64)),
        ("integer", _m(S.INTEGER, T.INT32)),
        ("int", _m(S.INTEGER, T.INT32)),
        ("int4", _m(S.INTEGER, T.INT32)),
        ("serial", _m(S.INTEGER, T.INT32)),
        ("smallint", _m(S.INTEGER, T.INT16)),
        ("int2", _m(S.INTEGER, T.INT16)),
        ("smallserial", _m(S.INTEGER, T.INT16)),
        ("boolean", _m(S.BOOLEAN, T.BOOL)),
        ("bool", _m(S.BOOLEAN, T.BOOL)),
        ("character", _m(S.STRING, T.STRING_FIXED)),
        ("char", _m(S.STRING, T.STRING_FIXED)),
        ("bpchar", _m(S.STRING, T.STRING_FIXED)),
        ("character varying", _m(S.STRING, T.STRING_VARIABLE)),
        ("varchar", _m(S.STRING, T.STRING_VARIABLE)),
        ("text", _m(S.STRING, T.STRING_VARIABLE)),
        ("citext", _m(S.STRING, T.STRING_VARIABLE)),
        ("date", _m(S.DATE, T.DATE)),
        ("time", _m(S.TIME, T.TIME)),
        ("time without time zone", _m(S.TIME, T.TIME)),
        ("timestamp", _m(S.DATETIME, T.DATETIME)),
        ("timestamp without time zone", _m(S.DATETIME, T.DATETIME)),
        ("timestamp with time zone", _m(S.DATETIME_OFFSET, T.DATETIME_OFFSET)),
        ("timestamptz", _m(S.DATETIME_OFFSET, T.DATETIME_OFFSET)),
        ("numeric", _m(S.DECIMAL, T.DECIMAL)),
        ("decimal", _m(S.DECIMAL, T.DECIMAL)),
        ("money", _m(S.DECIMAL, T.DECIMAL)),
        ("double precision", _m(S.FLOAT, T.DOUBLE)),
        ("float8", _m(S.FLOAT, T.DOUBLE)),
        ("real", _m(S.FLOAT, T.SINGLE)),
        ("float4", _m(S.FLOAT, T.SINGLE)),
        ("bytea", _m(S.BINARY, T.BINARY)),
        ("uuid", _m(S.GUID, T.GUID)),
        ("xml", _m(S.XML, T.XML)),
    ],
)

del S, T
