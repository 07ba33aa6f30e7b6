"""Exceptions raised by the export and generate paths."""


class SheetseedError(Exception):
    """Base class for all sheetseed errors."""


class SchemaInconsistencyError(SheetseedError):
    """The schema snapshot contradicts itself.

    Raised when a column reports a second foreign key, when a foreign key
    points at a table or column that cannot be located, or when two tables
    share the same identity. Always fatal for an export run.
    """


class MalformedMetadataError(SheetseedError):
    """A header comment does not hold a decodable column descriptor."""


class UnrenderableLiteralError(SheetseedError):
    """A raw cell value cannot be coerced into its storage tag's literal form."""

    def __init__(
        self,
        message: str,
        *,
        sheet: str | None = None,
        row: int | None = None,
        column: str | None = None,
        value: object = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.sheet = sheet
        self.row = row
        self.column = column
        self.value = value

    def __str__(self) -> str:
        if self.sheet is None:
            return self.message
        return f"{self.sheet}!{self.column} (row {self.row}): {self.message}"


class FlavorSpecError(SheetseedError, ValueError):
    """A flavor argument is not of the form ``name=path``."""
