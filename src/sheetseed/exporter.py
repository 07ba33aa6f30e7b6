"""Export a schema snapshot into an Excel workbook."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from sheetseed.config import ExportOptions, Settings, mapping_for_dialect
from sheetseed.db.models import Table
from sheetseed.db.schema_reader import connect, enumerate_tables
from sheetseed.events import ProgressObserver
from sheetseed.ordering import check_references, order_tables
from sheetseed.policy import DEFAULT_POLICY, TypePolicy
from sheetseed.scaffold import EXCEL_MAX_ROWS, ScaffoldBuilder, SheetNamer, WorkbookScaffold
from sheetseed.workbook import load_workbook_file, new_workbook, render_scaffold, scaffold_from_workbook

logger = logging.getLogger(__name__)


def export_workbook(
    tables: Iterable[Table],
    workbook_path: str | Path,
    policy: TypePolicy | None = None,
    namer: SheetNamer | None = None,
    observer: ProgressObserver | None = None,
    max_rows: int = EXCEL_MAX_ROWS,
) -> WorkbookScaffold:
    """Write one sheet per table into ``workbook_path``.

    An existing workbook is extended: tables that already have a table
    object in it are left alone, so exporting the same schema twice changes
    nothing.

    Raises
    ------
    SchemaInconsistencyError
        If a foreign key points at a table or column outside ``tables``.
    """
    tables = list(tables)
    check_references(tables)
    ordered = order_tables(tables)

    path = Path(workbook_path)
    if path.exists():
        wb = load_workbook_file(path)
        scaffold = scaffold_from_workbook(wb)
    else:
        wb = new_workbook()
        scaffold = WorkbookScaffold()

    builder = ScaffoldBuilder(
        policy=policy or DEFAULT_POLICY, namer=namer, max_rows=max_rows, observer=observer
    )
    scaffold = builder.build(ordered, scaffold)
    added = render_scaffold(wb, scaffold, max_rows)

    if not wb.worksheets:
        logger.warning("No table could be exported; %s was not written", path)
        return scaffold
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(path))
    logger.info("Saved %s (%d new sheet(s))", path, added)
    return scaffold


def export_from_database(
    options: ExportOptions,
    settings: Settings | None = None,
    observer: ProgressObserver | None = None,
) -> WorkbookScaffold:
    """Read the schema behind ``options.connection_string`` and export it."""
    settings = settings or Settings()
    mapping = mapping_for_dialect(options.dialect)
    conn = connect(options.connection_string)
    try:
        tables = enumerate_tables(conn, mapping=mapping)
    finally:
        conn.close()
    return export_workbook(
        tables,
        options.workbook_path,
        policy=TypePolicy(mapping),
        namer=SheetNamer.seeded(settings.sheet_name_seed),
        observer=observer,
        max_rows=settings.max_rows,
    )
