"""Render extracted workbooks into a Python seed-data module.

The generated module has one ``populate_<flavor>(insert)`` function per
flavor. Calling it with an ``insert(full_name, columns, rows,
identity_insert=...)`` callable replays every sheet of that flavor's
workbook in sheet order, which is the dependency order the export wrote.
"""

from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined
from pydantic import BaseModel, Field

from sheetseed.config import Flavor, GenerateOptions, flavor_identifier
from sheetseed.events import ProgressObserver, StatusEvent, fire
from sheetseed.extractor import BindingTable, CellError, extract_bindings
from sheetseed.policy import DEFAULT_POLICY, TypePolicy
from sheetseed.workbook import load_workbook_file, read_document

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".py.j2"


class TemplateRenderer:
    """Jinja2 templates packaged under ``sheetseed/templates``."""

    def __init__(self, environment: Environment | None = None) -> None:
        # StrictUndefined so a missing payload key fails instead of emitting blanks
        self.env = environment or Environment(
            loader=PackageLoader("sheetseed", "templates"),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters.setdefault("literal", repr)

    def render(self, template_name: str, **payload: object) -> str:
        template = self.env.get_template(template_name + TEMPLATE_SUFFIX)
        return template.render(**payload)


class GenerateResult(BaseModel):
    text: str
    # flavor name -> tables extracted from its workbook
    tables: dict[str, list[BindingTable]] = Field(default_factory=dict)
    errors: list[CellError] = Field(default_factory=list)


class SeedModuleGenerator:
    def __init__(
        self,
        options: GenerateOptions,
        renderer: TemplateRenderer | None = None,
        observer: ProgressObserver | None = None,
        policy: TypePolicy = DEFAULT_POLICY,
    ) -> None:
        self.options = options
        self.renderer = renderer or TemplateRenderer()
        self.observer = observer
        self.policy = policy

    def generate(self) -> GenerateResult:
        """Render every flavor and write the module to ``options.output_path``.

        Cell errors are collected into the result unless ``options.strict``
        is set, in which case the first one is raised.

        Raises
        ------
        FileNotFoundError
            If a flavor's workbook does not exist.
        UnrenderableLiteralError
            In strict mode, for the first cell that cannot be rendered.
        """
        parts = [
            self.renderer.render(
                "seed_module", namespace=self.options.namespace, flavors=self.options.flavors
            )
        ]
        result = GenerateResult(text="")
        for flavor in self.options.flavors:
            fire(
                self.observer,
                StatusEvent.GENERATE_FLAVOR,
                "Generating data helper for {Flavor} information.",
                Flavor=flavor.name,
            )
            tables = self._extract(flavor)
            result.tables[flavor.name] = tables
            for table in tables:
                result.errors.extend(table.errors)
            parts.append(self._render_flavor(flavor, tables))

        result.text = "".join(parts)
        output = Path(self.options.output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.text, encoding="utf-8")
        logger.info(
            "Wrote %s (%d flavor(s), %d cell error(s))",
            output,
            len(self.options.flavors),
            len(result.errors),
        )
        return result

    def _extract(self, flavor: Flavor) -> list[BindingTable]:
        wb = load_workbook_file(flavor.path)
        try:
            return extract_bindings(read_document(wb), policy=self.policy, strict=self.options.strict)
        finally:
            wb.close()

    def _render_flavor(self, flavor: Flavor, tables: list[BindingTable]) -> str:
        identifier = flavor_identifier(flavor.name)
        parts = [
            self.renderer.render(
                "consolidated",
                constant=f"{identifier.upper()}_TABLES",
                path=str(flavor.path),
                tables=tables,
            ),
            self.renderer.render(
                "flavor", identifier=identifier, name=flavor.name, has_tables=bool(tables)
            ),
        ]
        for table in tables:
            fire(
                self.observer,
                StatusEvent.GENERATE_TABLE,
                "Generating {Table} rows for {Flavor}.",
                Table=table.full_name,
                Flavor=flavor.name,
            )
            parts.append(self.renderer.render("table", table=table))
        return "".join(parts)
