"""Command line entry point.

Usage:
    sheetseed export "DRIVER={ODBC Driver 18 for SQL Server};SERVER=...;DATABASE=..." seed.xlsx
    sheetseed generate --ns myapp.seed -o seed_data.py -f dev=seed.xlsx -f demo=demo.xlsx
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from sheetseed import __version__
from sheetseed.codegen import SeedModuleGenerator
from sheetseed.config import ExportOptions, Flavor, GenerateOptions, Settings
from sheetseed.errors import SheetseedError
from sheetseed.events import StatusEventArgs
from sheetseed.exporter import export_from_database


def _print_status(args: StatusEventArgs) -> None:
    print(f"  {args.message}")


def _flavor(text: str) -> Flavor:
    try:
        return Flavor.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sheetseed",
        description="Scaffold seed-data workbooks from a database schema and turn them into code.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level", default=settings.log_level, help="Logging level (default: %(default)s)"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Write one sheet per database table.")
    export.add_argument(
        "connection_string",
        nargs="?",
        default=settings.connection_string,
        help="ODBC connection string (default: $SHEETSEED_CONNECTION_STRING)",
    )
    export.add_argument("workbook", help="Workbook to create or extend (.xlsx)")
    export.add_argument(
        "--dialect",
        choices=["sqlserver", "postgresql"],
        default=settings.dialect,
        help="Native type mapping to use (default: %(default)s)",
    )

    generate = commands.add_parser("generate", help="Render filled-in workbooks as a seed module.")
    generate.add_argument("--ns", dest="namespace", required=True, help="Namespace named in the module")
    generate.add_argument("--output", "-o", required=True, help="Python file to write")
    generate.add_argument(
        "--flavor",
        "-f",
        dest="flavors",
        action="append",
        type=_flavor,
        required=True,
        metavar="NAME=PATH",
        help="Data variant and its workbook; repeat for several",
    )
    generate.add_argument(
        "--strict", action="store_true", help="Stop at the first cell that cannot be rendered"
    )
    return parser


def run_export(args: argparse.Namespace, settings: Settings) -> int:
    options = ExportOptions(
        workbook_path=args.workbook,
        connection_string=args.connection_string,
        dialect=args.dialect,
    )
    print(f"Reading database schema ({options.dialect})...")
    scaffold = export_from_database(options, settings, observer=_print_status)
    print(f"\nSaved: {options.workbook_path}")
    print(f"New sheets: {len(scaffold.new_sheets)}")
    return 0


def run_generate(args: argparse.Namespace) -> int:
    options = GenerateOptions(
        namespace=args.namespace,
        output_path=args.output,
        flavors=args.flavors,
        strict=args.strict,
    )
    result = SeedModuleGenerator(options, observer=_print_status).generate()
    for error in result.errors:
        print(f"  skipped row: {error}", file=sys.stderr)
    print(f"\nThe file {options.output_path} generated successfully.")
    return 1 if result.errors else 0


def main(argv: Sequence[str] | None = None) -> int:
    settings = Settings()
    args = build_parser(settings).parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
    )

    try:
        if args.command == "export":
            return run_export(args, settings)
        return run_generate(args)
    except (SheetseedError, FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
