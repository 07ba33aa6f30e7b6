"""Validation rules and literal rendering per storage tag.

The export path asks :class:`TypePolicy` which data validation a column's
header gets; the generate path asks :func:`render_literal` how a raw cell
value becomes a Python literal. Both key off the same
:class:`~sheetseed.db.type_mappings.StorageTag`, which is what keeps the
round trip lossless.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, time
from enum import Enum
from functools import partial
from typing import Callable, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict

from sheetseed.db.models import Column, ForeignKeyRef
from sheetseed.db.type_mappings import (
    SQL_SERVER_TYPES,
    NativeTypeMapping,
    SemanticType,
    StorageTag,
)
from sheetseed.errors import UnrenderableLiteralError

# Literal emitted for a missing cell. Never an empty token.
EMPTY_LITERAL = repr("")

INTEGER_BOUNDS: dict[StorageTag, tuple[int, int]] = {
    StorageTag.BYTE: (0, 255),
    StorageTag.INT16: (-(2**15), 2**15 - 1),
    StorageTag.INT32: (-(2**31), 2**31 - 1),
    StorageTag.INT64: (-(2**63), 2**63 - 1),
}

DATE_FORMATS: dict[StorageTag, str] = {
    StorageTag.DATE: "yyyy-mm-dd",
    StorageTag.DATETIME: "yyyy-mm-dd hh:mm:ss",
    StorageTag.DATETIME_OFFSET: "yyyy-mm-dd hh:mm:ss",
}
TIME_FORMAT = "hh:mm:ss"


class _Rule(BaseModel):
    model_config = ConfigDict(frozen=True)


class BooleanList(_Rule):
    kind: Literal["booleanList"] = "booleanList"
    values: tuple[str, ...] = ("0", "1")


class BoundedInteger(_Rule):
    kind: Literal["boundedInteger"] = "boundedInteger"
    min: int
    max: int


class ForeignKeyList(_Rule):
    kind: Literal["foreignKeyList"] = "foreignKeyList"
    target_table: str
    target_column: str

    @classmethod
    def from_ref(cls, ref: ForeignKeyRef) -> ForeignKeyList:
        return cls(target_table=ref.table_full_name, target_column=ref.column)


class DateFormat(_Rule):
    kind: Literal["dateFormat"] = "dateFormat"
    number_format: str


class TimeFormat(_Rule):
    kind: Literal["timeFormat"] = "timeFormat"
    number_format: str = TIME_FORMAT


class TextLength(_Rule):
    kind: Literal["textLength"] = "textLength"
    max_length: int


ValidationRule = Union[BooleanList, BoundedInteger, ForeignKeyList, DateFormat, TimeFormat, TextLength]


class LiteralRule(str, Enum):
    """How a raw cell value is turned into source text."""

    BYTES = "bytes"
    BOOLEAN = "boolean"
    STRING = "string"
    NUMERIC = "numeric"
    DATETIME = "datetime"
    TIME = "time"
    GUID = "guid"
    QUOTED = "quoted"


LITERAL_RULES: dict[StorageTag, LiteralRule] = {
    StorageTag.BINARY: LiteralRule.BYTES,
    StorageTag.BOOL: LiteralRule.BOOLEAN,
    StorageTag.STRING_FIXED: LiteralRule.STRING,
    StorageTag.STRING_VARIABLE: LiteralRule.STRING,
    StorageTag.XML: LiteralRule.STRING,
    StorageTag.DATE: LiteralRule.DATETIME,
    StorageTag.DATETIME: LiteralRule.DATETIME,
    StorageTag.DATETIME_OFFSET: LiteralRule.DATETIME,
    StorageTag.TIME: LiteralRule.TIME,
    StorageTag.DECIMAL: LiteralRule.NUMERIC,
    StorageTag.DOUBLE: LiteralRule.NUMERIC,
    StorageTag.SINGLE: LiteralRule.NUMERIC,
    StorageTag.INT64: LiteralRule.NUMERIC,
    StorageTag.INT32: LiteralRule.NUMERIC,
    StorageTag.INT16: LiteralRule.NUMERIC,
    StorageTag.BYTE: LiteralRule.NUMERIC,
    StorageTag.GUID: LiteralRule.GUID,
    StorageTag.OBJECT: LiteralRule.QUOTED,
}

_INTEGER = re.compile(r"^[+-]?\d+$")
_HEX = re.compile(r"^0[xX]((?:[0-9a-fA-F]{2})*)$")


def literal_rule_for(tag: StorageTag) -> LiteralRule:
    return LITERAL_RULES.get(tag, LiteralRule.QUOTED)


def _render_bytes(raw: str) -> str:
    hex_match = _HEX.match(raw)
    if hex_match:
        return f"bytes.fromhex({hex_match.group(1).lower()!r})"
    if _INTEGER.match(raw) and 0 <= int(raw) < 2**64:
        return f"({int(raw)}).to_bytes(8, 'little')"
    raise UnrenderableLiteralError(f"{raw!r} is neither an unsigned 64-bit integer nor 0x-prefixed hex")


def _render_numeric(tag: StorageTag, raw: str) -> str:
    if tag in INTEGER_BOUNDS:
        if not _INTEGER.match(raw):
            raise UnrenderableLiteralError(f"{raw!r} is not an integer")
        low, high = INTEGER_BOUNDS[tag]
        if not low <= int(raw) <= high:
            raise UnrenderableLiteralError(f"{raw} is outside the {tag.value} range [{low}, {high}]")
        return raw
    try:
        value = float(raw)
    except ValueError:
        raise UnrenderableLiteralError(f"{raw!r} is not a number") from None
    if not math.isfinite(value):
        raise UnrenderableLiteralError(f"{raw!r} is not a finite number")
    return raw


def render_literal(tag: StorageTag, raw: str | None) -> str:
    """Render one raw cell value as a Python literal expression.

    Total over all storage tags; ``None`` (a missing cell) renders as
    :data:`EMPTY_LITERAL`.

    Raises
    ------
    UnrenderableLiteralError
        If ``raw`` cannot be coerced to the tag's literal form.
    """
    if raw is None:
        return EMPTY_LITERAL
    rule = literal_rule_for(tag)
    if rule is LiteralRule.BOOLEAN:
        return "False" if raw == "0" else "True"
    if rule in (LiteralRule.STRING, LiteralRule.QUOTED):
        return repr(raw)
    text = raw.strip()
    if rule is LiteralRule.BYTES:
        return _render_bytes(text)
    if rule is LiteralRule.NUMERIC:
        return _render_numeric(tag, text)
    if rule is LiteralRule.DATETIME:
        try:
            datetime.fromisoformat(text)
        except ValueError:
            raise UnrenderableLiteralError(f"{raw!r} is not an ISO date/time") from None
        return f"datetime.fromisoformat({text!r})"
    if rule is LiteralRule.TIME:
        try:
            time.fromisoformat(text)
        except ValueError:
            raise UnrenderableLiteralError(f"{raw!r} is not an ISO time") from None
        return f"time.fromisoformat({text!r})"
    if rule is LiteralRule.GUID:
        try:
            uuid.UUID(text)
        except ValueError:
            raise UnrenderableLiteralError(f"{raw!r} is not a GUID") from None
        return f"uuid.UUID({text!r})"
    raise AssertionError(f"unhandled literal rule {rule}")


LiteralRenderer = Callable[[Union[str, None]], str]


class ColumnPolicy(NamedTuple):
    semantic_type: SemanticType
    storage_tag: StorageTag
    validation: ValidationRule | None
    renderer: LiteralRenderer


class TypePolicy:
    """Decides validations and literal rendering for columns."""

    def __init__(self, mapping: NativeTypeMapping = SQL_SERVER_TYPES) -> None:
        self.mapping = mapping

    def resolve(
        self,
        native_type: str,
        max_length: int = 0,
        is_nullable: bool = True,
        is_foreign_key: bool = False,
        *,
        is_primary_key: bool = False,
        foreign_key: ForeignKeyRef | None = None,
    ) -> ColumnPolicy:
        resolved = self.mapping.resolve(native_type)
        return self._policy(
            resolved.semantic_type,
            resolved.storage_tag,
            max_length,
            is_foreign_key,
            is_primary_key,
            foreign_key,
        )

    def resolve_column(self, column: Column) -> ColumnPolicy:
        return self._policy(
            column.semantic_type,
            column.storage_tag,
            column.max_length,
            column.is_foreign_key,
            column.is_primary_key,
            column.foreign_key,
        )

    def _policy(
        self,
        semantic_type: SemanticType,
        tag: StorageTag,
        max_length: int,
        is_foreign_key: bool,
        is_primary_key: bool,
        foreign_key: ForeignKeyRef | None,
    ) -> ColumnPolicy:
        return ColumnPolicy(
            semantic_type,
            tag,
            self.validation_for(tag, max_length, is_foreign_key, is_primary_key, foreign_key),
            self.renderer_for(tag),
        )

    def renderer_for(self, tag: StorageTag) -> LiteralRenderer:
        return partial(render_literal, tag)

    @staticmethod
    def validation_for(
        tag: StorageTag,
        max_length: int = 0,
        is_foreign_key: bool = False,
        is_primary_key: bool = False,
        foreign_key: ForeignKeyRef | None = None,
    ) -> ValidationRule | None:
        # Foreign-key pick lists win over type rules; a key column that is
        # also a foreign key gets no list.
        if is_foreign_key and not is_primary_key and foreign_key is not None:
            return ForeignKeyList.from_ref(foreign_key)
        if tag in DATE_FORMATS:
            return DateFormat(number_format=DATE_FORMATS[tag])
        if tag is StorageTag.TIME:
            return TimeFormat()
        if tag is StorageTag.BOOL:
            return BooleanList()
        if tag in (StorageTag.STRING_FIXED, StorageTag.STRING_VARIABLE):
            return TextLength(max_length=max_length) if max_length > 0 else None
        if tag in INTEGER_BOUNDS and not is_foreign_key:
            low, high = INTEGER_BOUNDS[tag]
            return BoundedInteger(min=low, max=high)
        return None


DEFAULT_POLICY = TypePolicy()
