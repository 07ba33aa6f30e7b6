"""Settings and per-run options."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sheetseed.db.type_mappings import POSTGRESQL_TYPES, SQL_SERVER_TYPES, NativeTypeMapping
from sheetseed.errors import FlavorSpecError
from sheetseed.scaffold import EXCEL_MAX_ROWS

Dialect = Literal["sqlserver", "postgresql"]

DIALECT_MAPPINGS: dict[str, NativeTypeMapping] = {
    "sqlserver": SQL_SERVER_TYPES,
    "postgresql": POSTGRESQL_TYPES,
}


class Settings(BaseSettings):
    """Environment settings, read from ``SHEETSEED_*`` variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="SHEETSEED_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    connection_string: str = ""
    dialect: Dialect = "sqlserver"
    log_level: str = "INFO"

    # Fix to get the same truncated sheet names on every export
    sheet_name_seed: Optional[int] = None
    max_rows: int = Field(default=EXCEL_MAX_ROWS, ge=2, le=EXCEL_MAX_ROWS)


def mapping_for_dialect(dialect: str) -> NativeTypeMapping:
    try:
        return DIALECT_MAPPINGS[dialect.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown dialect {dialect!r}; expected one of {', '.join(DIALECT_MAPPINGS)}"
        ) from None


def flavor_identifier(name: str) -> str:
    """A Python identifier derived from a flavor name."""
    identifier = re.sub(r"\W", "_", name.strip()).lower()
    if not identifier or identifier[0].isdigit():
        identifier = f"_{identifier}"
    return identifier


class Flavor(BaseModel):
    """A named data variant and the workbook that holds it."""

    name: str = Field(min_length=1)
    path: Path

    @classmethod
    def parse(cls, text: str) -> Flavor:
        """Parse a ``name=path`` argument; whitespace around either part is ignored."""
        name, sep, path = text.partition("=")
        name, path = name.strip(), path.strip()
        if not sep or not name or not path:
            raise FlavorSpecError(f"Flavor must be given as name=path, got {text!r}")
        return cls(name=name, path=Path(path))


class ExportOptions(BaseModel):
    workbook_path: Path
    connection_string: str = Field(min_length=1)
    dialect: Dialect = "sqlserver"


class GenerateOptions(BaseModel):
    namespace: str = Field(min_length=1)
    output_path: Path
    flavors: list[Flavor] = Field(default_factory=list)
    strict: bool = False

    @model_validator(mode="after")
    def _distinct_identifiers(self) -> GenerateOptions:
        # Each flavor becomes a populate_<identifier> function in one module
        seen: dict[str, str] = {}
        for flavor in self.flavors:
            identifier = flavor_identifier(flavor.name)
            if identifier in seen:
                raise ValueError(
                    f"Flavors {seen[identifier]!r} and {flavor.name!r} "
                    f"both generate populate_{identifier}"
                )
            seen[identifier] = flavor.name
        return self
