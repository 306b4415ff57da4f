"""RoadORM Dialects - Vendor-specific SQL fragments.

Dialects are pure string lookups: the statement assembler decides where
the fragments go.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Dict, Type

from roadorm_core.types import SQLDialect


class JoinType(Enum):
    """Types of SQL joins."""

    INNER = auto()
    LEFT = auto()
    RIGHT = auto()


class Dialect(ABC):
    """Base class for SQL dialects."""

    kind: SQLDialect = SQLDialect.STANDARD

    @abstractmethod
    def insert_ignore_syntax(self) -> str:
        """Statement head for an insert that skips duplicate keys."""

    def insert_ignore_suffix(self) -> str:
        """Trailing clause some dialects need for insert-ignore."""
        return ""

    @abstractmethod
    def upsert_syntax(self) -> str:
        """Clause introducing an insert-or-update."""

    def join_syntax(self, join_type: JoinType) -> str:
        return {
            JoinType.INNER: "INNER JOIN",
            JoinType.LEFT: "LEFT JOIN",
            JoinType.RIGHT: "RIGHT JOIN",
        }[join_type]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SQLiteDialect(Dialect):
    """SQLite. RIGHT JOIN falls back to LEFT JOIN."""

    kind = SQLDialect.SQLITE

    def insert_ignore_syntax(self) -> str:
        return "INSERT OR IGNORE INTO"

    def upsert_syntax(self) -> str:
        return "ON CONFLICT"

    def join_syntax(self, join_type: JoinType) -> str:
        if join_type == JoinType.RIGHT:
            return "LEFT JOIN"
        return super().join_syntax(join_type)


class PostgresDialect(Dialect):
    kind = SQLDialect.POSTGRESQL

    def insert_ignore_syntax(self) -> str:
        return "INSERT INTO"

    def insert_ignore_suffix(self) -> str:
        return "ON CONFLICT DO NOTHING"

    def upsert_syntax(self) -> str:
        return "ON CONFLICT"


class MySQLDialect(Dialect):
    kind = SQLDialect.MYSQL

    def insert_ignore_syntax(self) -> str:
        return "INSERT IGNORE INTO"

    def upsert_syntax(self) -> str:
        return "ON DUPLICATE KEY UPDATE"


_DIALECTS: Dict[SQLDialect, Type[Dialect]] = {
    SQLDialect.SQLITE: SQLiteDialect,
    SQLDialect.POSTGRESQL: PostgresDialect,
    SQLDialect.MYSQL: MySQLDialect,
}


def dialect_for(kind: SQLDialect) -> Dialect:
    """Get the dialect implementation for a dialect kind."""
    try:
        return _DIALECTS[kind]()
    except KeyError:
        raise ValueError(f"No dialect implementation for {kind.value}") from None


__all__ = [
    "Dialect",
    "JoinType",
    "SQLiteDialect",
    "PostgresDialect",
    "MySQLDialect",
    "dialect_for",
]
