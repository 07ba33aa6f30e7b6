"""Library-independent description of the workbook produced by an export.

:class:`ScaffoldBuilder` walks tables in dependency order and describes one
sheet per table: header cells, their metadata comments and the validation
each column gets. Foreign-key pick lists are resolved only after every sheet
exists, so they can point at the referenced sheet's column range.
:mod:`sheetseed.workbook` turns the result into an openpyxl workbook.
"""

from __future__ import annotations

import logging
import random
import re
from typing import Iterable

from openpyxl.utils import get_column_letter
from pydantic import BaseModel, Field

from sheetseed.codec import encode_column
from sheetseed.db.models import Table
from sheetseed.errors import SchemaInconsistencyError
from sheetseed.events import ProgressObserver, StatusEvent, fire
from sheetseed.policy import DEFAULT_POLICY, ForeignKeyList, TypePolicy, ValidationRule

logger = logging.getLogger(__name__)

EXCEL_MAX_ROWS = 1_048_576
SHEET_NAME_LIMIT = 31
_TRUNCATED_LENGTH = 24
_FORBIDDEN_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")
# Excel table object names start with a letter, underscore or backslash and
# hold no punctuation but periods. They must not read as a cell reference.
_TABLE_NAME = re.compile(r"(?:[^\W\d]|\\)[\w.\\]*")
_CELL_REFERENCE = re.compile(r"(?:[A-Za-z]{1,3}\d+|[RrCc]|[Rr]\d*[Cc]\d*)")


class HeaderCell(BaseModel):
    column_index: int = Field(ge=1, description="1-based sheet column")
    text: str
    bold: bool = True
    annotation: str = ""
    validation: ValidationRule | None = None
    # Set once a foreign-key list has been resolved against its target sheet.
    list_formula: str | None = None

    @property
    def column_letter(self) -> str:
        return get_column_letter(self.column_index)


class SheetScaffold(BaseModel):
    name: str
    table_name: str = ""
    headers: list[HeaderCell] = Field(default_factory=list)
    existing: bool = False

    def header(self, column_name: str) -> HeaderCell | None:
        folded = column_name.casefold()
        for header in self.headers:
            if header.text.casefold() == folded:
                return header
        return None


class WorkbookScaffold(BaseModel):
    sheets: list[SheetScaffold] = Field(default_factory=list)

    def find_table(self, full_name: str) -> SheetScaffold | None:
        folded = full_name.casefold()
        for sheet in self.sheets:
            if sheet.table_name and sheet.table_name.casefold() == folded:
                return sheet
        return None

    def sheet_names(self) -> set[str]:
        return {sheet.name.casefold() for sheet in self.sheets}

    @property
    def new_sheets(self) -> list[SheetScaffold]:
        return [sheet for sheet in self.sheets if not sheet.existing]


class SheetNamer:
    """Chooses unique Excel sheet names for table full names.

    Names longer than 31 characters are cut and given a ``...N`` suffix with
    N drawn from ``rng``; pass a seeded :class:`random.Random` for
    reproducible names.
    """

    def __init__(self, rng: random.Random | None = None, attempts: int = 20) -> None:
        self.rng = rng or random.Random()
        self.attempts = attempts

    @classmethod
    def seeded(cls, seed: int | None) -> SheetNamer:
        return cls(random.Random(seed))

    def name_for(self, full_name: str, taken: set[str]) -> str:
        """Return a sheet name for ``full_name`` not in ``taken`` (case-folded)."""
        base = _FORBIDDEN_SHEET_CHARS.sub("_", full_name).strip("'") or "Sheet"
        if len(base) <= SHEET_NAME_LIMIT and base.casefold() not in taken:
            return base
        prefix = base[:_TRUNCATED_LENGTH]
        for _ in range(self.attempts):
            candidate = f"{prefix}...{self.rng.randint(1, 99)}"
            if candidate.casefold() not in taken:
                return candidate
        counter = 100
        while True:
            suffix = f"...{counter}"
            candidate = base[: SHEET_NAME_LIMIT - len(suffix)] + suffix
            if candidate.casefold() not in taken:
                return candidate
            counter += 1


def list_formula(sheet_name: str, column_letter: str, max_rows: int = EXCEL_MAX_ROWS) -> str:
    """Cross-sheet range formula over a column's data cells."""
    quoted = sheet_name.replace("'", "''")
    return f"'{quoted}'!${column_letter}$2:${column_letter}${max_rows}"


def is_table_name(name: str) -> bool:
    """Whether ``name`` can be used as an Excel table object name."""
    return (
        len(name) <= 255
        and _TABLE_NAME.fullmatch(name) is not None
        and _CELL_REFERENCE.fullmatch(name) is None
    )


class ScaffoldBuilder:
    def __init__(
        self,
        policy: TypePolicy = DEFAULT_POLICY,
        namer: SheetNamer | None = None,
        max_rows: int = EXCEL_MAX_ROWS,
        observer: ProgressObserver | None = None,
    ) -> None:
        self.policy = policy
        self.namer = namer or SheetNamer()
        self.max_rows = max_rows
        self.observer = observer

    def build(
        self, ordered_tables: Iterable[Table], scaffold: WorkbookScaffold | None = None
    ) -> WorkbookScaffold:
        """Add a sheet per table to ``scaffold`` (a new one if not given).

        Tables whose full name is already a table object in ``scaffold`` are
        skipped, so exporting twice onto the same workbook is a no-op. Tables
        that cannot become a table object are left out with a warning, and
        pick lists pointing at them are dropped.

        Raises
        ------
        SchemaInconsistencyError
            If a foreign-key target sheet or column cannot be found.
        """
        scaffold = scaffold if scaffold is not None else WorkbookScaffold()
        skipped: set[str] = set()
        for table in ordered_tables:
            fire(
                self.observer,
                StatusEvent.EXPORT_TABLE,
                "Getting database table {Table} information.",
                Table=table.full_name,
            )
            if not is_table_name(table.full_name):
                logger.warning("Skipping %s: not a valid Excel table name", table.full_name)
                skipped.add(table.full_name.casefold())
                continue
            if scaffold.find_table(table.full_name) is not None:
                logger.info("Skipping %s: table already present in workbook", table.full_name)
                continue
            sheet = self._sheet_for(table, scaffold)
            if not sheet.headers:
                logger.warning("Skipping %s: no columns can be seeded", table.full_name)
                skipped.add(table.full_name.casefold())
                continue
            scaffold.sheets.append(sheet)
        self._resolve_lists(scaffold, skipped)
        return scaffold

    def _sheet_for(self, table: Table, scaffold: WorkbookScaffold) -> SheetScaffold:
        sheet = SheetScaffold(
            name=self.namer.name_for(table.full_name, scaffold.sheet_names()),
            table_name=table.full_name,
        )
        for column in table.columns:
            if column.is_auto_generated:
                continue
            policy = self.policy.resolve_column(column)
            sheet.headers.append(
                HeaderCell(
                    column_index=len(sheet.headers) + 1,
                    text=column.name,
                    annotation=encode_column(column),
                    validation=policy.validation,
                )
            )
        return sheet

    def _resolve_lists(self, scaffold: WorkbookScaffold, skipped: set[str]) -> None:
        for sheet in scaffold.new_sheets:
            for header in sheet.headers:
                rule = header.validation
                if not isinstance(rule, ForeignKeyList) or header.list_formula is not None:
                    continue
                target = scaffold.find_table(rule.target_table)
                if target is None and rule.target_table.casefold() in skipped:
                    logger.warning(
                        "%s.%s: no pick list, %s was skipped",
                        sheet.table_name,
                        header.text,
                        rule.target_table,
                    )
                    header.validation = None
                    continue
                if target is None:
                    raise SchemaInconsistencyError(
                        f"{sheet.table_name}.{header.text} references {rule.target_table}, "
                        "which has no sheet"
                    )
                target_header = target.header(rule.target_column)
                if target_header is None:
                    raise SchemaInconsistencyError(
                        f"{sheet.table_name}.{header.text} references "
                        f"{rule.target_table}.{rule.target_column}, which has no column"
                    )
                header.list_formula = list_formula(
                    target.name, target_header.column_letter, self.max_rows
                )
