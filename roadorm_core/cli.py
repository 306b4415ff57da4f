"""RoadORM CLI - Command-line interface for schema modules.

Operates on a Python module that exposes a module-level ``schema``
(``roadorm_core.schema.Schema``):
- Print the DDL for a schema in any supported dialect
- Create and drop every table of a schema
- Validate table declarations against their entity classes
- Find and slay orphaned rows

Usage:
    roadorm sql myapp.models --dialect postgresql
    roadorm --db ./data/app.db create myapp.models
    roadorm --config roadorm.yaml orphans myapp.models students professors --slay
    roadorm check myapp.models

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from roadorm_core import __version__
from roadorm_core.connection import DatabaseConfig
from roadorm_core.errors import ORMError
from roadorm_core.executor import CommandExecutor, ExecutionContext
from roadorm_core.schema import Schema, SchemaValidator, Table
from roadorm_core.types import SQLDialect


# =============================================================================
# Output Formatting
# =============================================================================


class OutputFormatter:
    """Formats output for CLI display."""

    COLORS = {
        "reset": "\033[0m",
        "bold": "\033[1m",
        "dim": "\033[2m",
        "red": "\033[31m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "blue": "\033[34m",
        "cyan": "\033[36m",
    }

    def __init__(self, color: bool = True, json_output: bool = False):
        """Initialize formatter.

        Args:
            color: Enable colored output
            json_output: Output as JSON
        """
        self.color = color and sys.stdout.isatty()
        self.json_output = json_output

    def _c(self, text: str, color: str) -> str:
        """Colorize text if color enabled."""
        if self.color:
            return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"
        return text

    def success(self, message: str) -> None:
        """Print success message."""
        if self.json_output:
            print(json.dumps({"status": "success", "message": message}))
        else:
            print(self._c("✓", "green"), message)

    def error(self, message: str) -> None:
        """Print error message."""
        if self.json_output:
            print(json.dumps({"status": "error", "message": message}))
        else:
            print(self._c("✗", "red"), message, file=sys.stderr)

    def warning(self, message: str) -> None:
        """Print warning message."""
        if self.json_output:
            print(json.dumps({"status": "warning", "message": message}))
        else:
            print(self._c("⚠", "yellow"), message)

    def info(self, message: str) -> None:
        """Print info message."""
        if self.json_output:
            print(json.dumps({"status": "info", "message": message}))
        else:
            print(self._c("ℹ", "blue"), message)

    def header(self, text: str) -> None:
        """Print header."""
        if not self.json_output:
            print()
            print(self._c(f"═══ {text} ═══", "bold"))
            print()

    def table(self, headers: List[str], rows: List[List[Any]], title: Optional[str] = None) -> None:
        """Print formatted table."""
        if self.json_output:
            print(json.dumps({"title": title, "headers": headers, "rows": rows}, default=str))
            return

        if title:
            print(self._c(title, "bold"))
            print()

        if not rows:
            print(self._c("(empty)", "dim"))
            return

        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(str(cell)))

        header_line = " │ ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
        separator = "─┼─".join("─" * w for w in widths)

        print(self._c(header_line, "bold"))
        print(separator)

        for row in rows:
            print(" │ ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))

        print()
        print(self._c(f"({len(rows)} rows)", "dim"))

    def statements(self, statements: List[str]) -> None:
        """Print SQL statements, one per block."""
        if self.json_output:
            print(json.dumps({"statements": statements}))
            return
        for sql in statements:
            print(f"{sql};")
            print()


# =============================================================================
# Helpers
# =============================================================================


def load_schema(module_name: str) -> Schema:
    """Import ``module_name`` and return its module-level ``schema``."""
    module = importlib.import_module(module_name)
    schema = getattr(module, "schema", None)
    if not isinstance(schema, Schema):
        raise ValueError(f"Module {module_name} has no module-level 'schema' of type Schema")
    return schema


def load_config(args: argparse.Namespace) -> DatabaseConfig:
    """Configuration from --config, then --db, then ROADORM_* variables."""
    if args.config:
        config = DatabaseConfig.from_yaml(Path(args.config))
    else:
        config = DatabaseConfig.from_env()
    if args.db:
        config.path = Path(args.db)
    return config


def _table(schema: Schema, name: str) -> Table:
    table = schema.get_table(name)
    if table is None:
        raise ValueError(f"Schema has no table '{name}'")
    return table


# =============================================================================
# Commands
# =============================================================================


def cmd_sql(args: argparse.Namespace, formatter: OutputFormatter) -> int:
    """Print DDL for a schema."""
    try:
        schema = load_schema(args.module)
        dialect = SQLDialect(args.dialect)
        statements = schema.drop_all_sql(dialect) if args.drop else schema.create_all_sql(dialect)
        formatter.statements(statements)
        return 0

    except (ImportError, ValueError, ORMError) as e:
        formatter.error(str(e))
        return 1


def cmd_create(args: argparse.Namespace, formatter: OutputFormatter) -> int:
    """Create every table of a schema."""
    try:
        schema = load_schema(args.module)
        with ExecutionContext.from_config(load_config(args)) as context:
            CommandExecutor(context).create_all(schema)
        formatter.success(f"Created {len(schema.sorted_tables())} tables")
        return 0

    except Exception as e:
        formatter.error(f"Create failed: {e}")
        return 1


def cmd_drop(args: argparse.Namespace, formatter: OutputFormatter) -> int:
    """Drop every table of a schema."""
    try:
        schema = load_schema(args.module)
        with ExecutionContext.from_config(load_config(args)) as context:
            CommandExecutor(context).drop_all(schema)
        formatter.success(f"Dropped {len(schema.sorted_tables())} tables")
        return 0

    except Exception as e:
        formatter.error(f"Drop failed: {e}")
        return 1


def cmd_check(args: argparse.Namespace, formatter: OutputFormatter) -> int:
    """Validate a schema."""
    try:
        schema = load_schema(args.module)
    except (ImportError, ValueError) as e:
        formatter.error(str(e))
        return 1

    validator = SchemaValidator()
    errors = validator.validate_schema(schema)
    for relation in validator.unmirrored_relations(schema):
        formatter.warning(f"{relation!r} is not mirrored by {relation.target.name}")

    if errors:
        for error in errors:
            formatter.error(error)
        return 1

    formatter.success(f"Schema OK ({len(schema.tables)} tables)")
    return 0


def cmd_orphans(args: argparse.Namespace, formatter: OutputFormatter) -> int:
    """List or delete rows whose foreign key to another table is NULL."""
    try:
        schema = load_schema(args.module)
        table = _table(schema, args.table)
        related = _table(schema, args.related)

        with ExecutionContext.from_config(load_config(args)) as context:
            executor = CommandExecutor(context)
            if args.slay:
                deleted = executor.slay_orphans(table, related)
                formatter.success(f"Deleted {deleted} orphaned {table.name} rows")
                return 0

            orphans = executor.find_orphans(table, related)

        headers = [c.name for c in table.columns]
        rows = []
        for entity in orphans:
            values = table.codec.from_entity(entity)
            rows.append([values[name] for name in headers])
        formatter.table(headers, rows, f"Orphans of {table.name} -> {related.name}")
        return 0

    except Exception as e:
        formatter.error(str(e))
        return 1


# =============================================================================
# Entry Point
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="roadorm",
        description="RoadORM - Relationship-aware object-relational mapping for BlackRoad OS",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  roadorm sql myapp.models --dialect mysql
  roadorm --db ./data/app.db create myapp.models
  roadorm --db ./data/app.db orphans myapp.models students professors
  roadorm check myapp.models
        """,
    )

    parser.add_argument("--version", action="version", version=f"RoadORM {__version__}")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--config", "-c", help="YAML configuration file")
    parser.add_argument("--db", help="SQLite database path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log executed statements")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # SQL
    sql_parser = subparsers.add_parser("sql", help="Print DDL for a schema module")
    sql_parser.add_argument("module", help="Module exposing 'schema'")
    sql_parser.add_argument(
        "--dialect", "-d",
        default=SQLDialect.SQLITE.value,
        choices=[d.value for d in SQLDialect],
    )
    sql_parser.add_argument("--drop", action="store_true", help="Print DROP statements instead")

    # Create / drop
    create_parser_ = subparsers.add_parser("create", help="Create all tables")
    create_parser_.add_argument("module", help="Module exposing 'schema'")

    drop_parser = subparsers.add_parser("drop", help="Drop all tables")
    drop_parser.add_argument("module", help="Module exposing 'schema'")

    # Check
    check_parser = subparsers.add_parser("check", help="Validate a schema")
    check_parser.add_argument("module", help="Module exposing 'schema'")

    # Orphans
    orphans_parser = subparsers.add_parser("orphans", help="Find or delete orphaned rows")
    orphans_parser.add_argument("module", help="Module exposing 'schema'")
    orphans_parser.add_argument("table", help="Table holding the foreign key")
    orphans_parser.add_argument("related", help="Table the foreign key references")
    orphans_parser.add_argument("--slay", action="store_true", help="Delete the orphans")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    formatter = OutputFormatter(color=not args.no_color, json_output=args.json)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if not args.command:
        parser.print_help()
        return 1

    commands: Dict[str, Any] = {
        "sql": cmd_sql,
        "create": cmd_create,
        "drop": cmd_drop,
        "check": cmd_check,
        "orphans": cmd_orphans,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args, formatter)

    formatter.error(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
