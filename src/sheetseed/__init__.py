"""Round-trip a database schema through an Excel workbook into seed data."""

__version__ = "0.1.0"
