"""RoadORM - Relationship-aware object-relational mapping for BlackRoad OS.

RoadORM maps plain entity classes to relational tables and provides:
- Declarative tables with typed columns and composite primary keys
- One-to-one, one-to-many, many-to-one and many-to-many relations
- Cascade policies (ALL, UPDATE, DELETE, NONE) with orphan nulling
- Parameterized SQL for SQLite, PostgreSQL and MySQL
- One transaction per executor call
- CLI for DDL, schema checks and orphan cleanup

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        CommandExecutor                         │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │   Schema    │  │   Entity    │  │  Statement  │             │
    │  │   Model     │──│   Codec     │──│  Assembler  │             │
    │  └─────────────┘  └─────────────┘  └─────────────┘             │
    │         │               │               │                       │
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │ Connection  │  │  Dialects   │  │  Statement  │             │
    │  │  (DB-API)   │──│             │──│    Log      │             │
    │  └─────────────┘  └─────────────┘  └─────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Usage:
    from dataclasses import dataclass, field
    from roadorm_core import CascadeType, CommandExecutor, ExecutionContext, SQLiteConnection, Table

    @dataclass
    class Professor:
        surname: str
        faculty: str
        students: list = field(default_factory=list)

    professors = Table("professors", Professor)
    professors.varchar("surname", 255, primary_key=True)
    professors.varchar("faculty", 255, primary_key=True)

    executor = CommandExecutor(ExecutionContext(SQLiteConnection()))
    executor.create_table(professors)
    executor.persist(professors, Professor("Mrozek", "WIMIR"))

CLI:
    $ roadorm sql myapp.models --dialect postgresql
    $ roadorm --db ./data/app.db create myapp.models
    $ roadorm --db ./data/app.db orphans myapp.models students professors --slay

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

__version__ = "1.0.0"
__author__ = "BlackRoad OS, Inc."
__email__ = "engineering@blackroad.io"

# Core exports
from roadorm_core.executor import CascadeAction, CommandExecutor, ExecutionContext
from roadorm_core.codec import EntityCodec
from roadorm_core.schema import (
    CascadeType, Column, ColumnValue, ForeignKey, JoinTable, Relation,
    RelationType, Schema, SchemaValidator, Table
)
from roadorm_core.types import (
    Boolean, DataType, Date, Decimal, Integer, SQLDialect, String, Text, TypeRegistry
)

# Statement exports
from roadorm_core.query.builder import ConflictPolicy, Query, QueryBuilder, Statement

# Connection exports
from roadorm_core.connection import (
    DatabaseConfig, DatabaseConnection, MySQLConnection, PostgresConnection,
    ProviderType, QueryResult, SQLiteConnection, create_connection
)
from roadorm_core.dialect import Dialect, JoinType, MySQLDialect, PostgresDialect, SQLiteDialect
from roadorm_core.logger import MultiDestinationLogger

# Error exports
from roadorm_core.errors import (
    ConnectionFailedError, ConstraintError, DuplicateKeyError, ForeignKeyNotFoundError, InvalidValueError,
    MappingError, ORMError, PrimaryKeyMismatchError, UnsupportedTypeError, UsageError
)

__all__ = [
    # Version
    "__version__",

    # Core
    "CommandExecutor",
    "ExecutionContext",
    "CascadeAction",
    "EntityCodec",

    # Schema
    "Schema",
    "Table",
    "JoinTable",
    "Column",
    "ColumnValue",
    "ForeignKey",
    "Relation",
    "RelationType",
    "CascadeType",
    "SchemaValidator",

    # Types
    "DataType",
    "Integer",
    "String",
    "Text",
    "Boolean",
    "Decimal",
    "Date",
    "SQLDialect",
    "TypeRegistry",

    # Statements
    "Query",
    "QueryBuilder",
    "Statement",
    "ConflictPolicy",

    # Connections
    "DatabaseConfig",
    "DatabaseConnection",
    "SQLiteConnection",
    "PostgresConnection",
    "MySQLConnection",
    "ProviderType",
    "QueryResult",
    "create_connection",
    "Dialect",
    "JoinType",
    "SQLiteDialect",
    "PostgresDialect",
    "MySQLDialect",
    "MultiDestinationLogger",

    # Errors
    "ORMError",
    "UsageError",
    "PrimaryKeyMismatchError",
    "InvalidValueError",
    "MappingError",
    "UnsupportedTypeError",
    "ForeignKeyNotFoundError",
    "ConstraintError",
    "DuplicateKeyError",
    "ConnectionFailedError",
]
