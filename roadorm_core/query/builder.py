"""RoadORM Statement Assembler - Parameterized SQL text.

Turns column lists, key predicates and values into SQL strings with
positional ``?`` placeholders. Values never appear in the SQL text; they
travel alongside it in ``Statement.params``, in placeholder order.

Architecture:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       Statement Assembler                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐                 │
    │  │   Query     │──│   Query     │──│  Statement  │                 │
    │  │  (entry)    │  │  Builder    │  │ (sql, args) │                 │
    │  └─────────────┘  └─────────────┘  └─────────────┘                 │
    │         │               │                                           │
    │  ┌─────────────┐  ┌─────────────┐                                   │
    │  │  Predicate  │  │ Insert with │                                   │
    │  │  Helpers    │  │  conflicts  │                                   │
    │  └─────────────┘  └─────────────┘                                   │
    └─────────────────────────────────────────────────────────────────────┘

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from roadorm_core.dialect import Dialect, JoinType


class Statement(NamedTuple):
    """SQL text plus its positional parameters."""

    sql: str
    params: Tuple[Any, ...] = ()

    def __str__(self) -> str:
        return self.sql


class ConflictPolicy(Enum):
    """How an insert treats an existing row with the same key."""

    FAIL = "fail"
    IGNORE = "ignore"
    UPDATE = "update"


# =============================================================================
# Predicate Helpers
# =============================================================================


def qualify(column: str, alias: Optional[str] = None) -> str:
    return f"{alias}.{column}" if alias else column


def predicate(columns: Sequence[str], alias: Optional[str] = None) -> str:
    """``a = ? AND b = ?`` over the given columns."""
    return " AND ".join(f"{qualify(c, alias)} = ?" for c in columns)


def null_predicate(columns: Sequence[str], alias: Optional[str] = None) -> str:
    """``a IS NULL AND b IS NULL`` over the given columns."""
    return " AND ".join(f"{qualify(c, alias)} IS NULL" for c in columns)


def join_condition(
    left_columns: Sequence[str],
    left_alias: str,
    right_columns: Sequence[str],
    right_alias: str,
) -> str:
    """Pairwise equality between two column lists."""
    if len(left_columns) != len(right_columns):
        raise ValueError("Join column lists differ in length")
    return " AND ".join(
        f"{left_alias}.{lc} = {right_alias}.{rc}" for lc, rc in zip(left_columns, right_columns)
    )


# =============================================================================
# Insert
# =============================================================================


def insert_sql(
    table: str,
    columns: Sequence[str],
    dialect: Optional[Dialect] = None,
    policy: ConflictPolicy = ConflictPolicy.FAIL,
    key_columns: Sequence[str] = (),
) -> str:
    """``INSERT`` with one placeholder per column, honoring a conflict policy.

    Args:
        table: Table name
        columns: Column names, in parameter order
        dialect: Dialect supplying insert-ignore and upsert fragments
        policy: Conflict policy
        key_columns: Conflict target for upserts (primary key)

    Returns:
        SQL text; bind one parameter tuple per row
    """
    if not columns:
        raise ValueError("No columns to insert")

    column_list = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    values = f"({column_list}) VALUES ({placeholders})"

    if policy == ConflictPolicy.FAIL or dialect is None:
        return f"INSERT INTO {table} {values}"

    if policy == ConflictPolicy.IGNORE:
        parts = [dialect.insert_ignore_syntax(), table, values]
        suffix = dialect.insert_ignore_suffix()
        if suffix:
            parts.append(suffix)
        return " ".join(parts)

    update_columns = [c for c in columns if c not in key_columns]
    return f"INSERT INTO {table} {values} {upsert_clause(dialect, key_columns, update_columns)}"


def upsert_clause(dialect: Dialect, key_columns: Sequence[str], update_columns: Sequence[str]) -> str:
    """Trailing insert-or-update clause in the dialect's syntax."""
    syntax = dialect.upsert_syntax()

    if syntax.startswith("ON CONFLICT"):
        target = f"{syntax} ({', '.join(key_columns)})"
        if not update_columns:
            return f"{target} DO NOTHING"
        assignments = ", ".join(f"{c} = excluded.{c}" for c in update_columns)
        return f"{target} DO UPDATE SET {assignments}"

    # ON DUPLICATE KEY UPDATE needs at least one assignment
    targets = list(update_columns) or list(key_columns[:1])
    assignments = ", ".join(f"{c} = VALUES({c})" for c in targets)
    return f"{syntax} {assignments}"


# =============================================================================
# Query Builder
# =============================================================================


class Query:
    """Entry points for building statements."""

    @classmethod
    def select(cls, *columns: str) -> "QueryBuilder":
        """Start building a SELECT query."""
        return QueryBuilder().select(*columns)

    @classmethod
    def update(cls, table: str) -> "QueryBuilder":
        """Start building an UPDATE statement."""
        return QueryBuilder().update(table)

    @classmethod
    def delete_from(cls, table: str) -> "QueryBuilder":
        """Start building a DELETE statement."""
        return QueryBuilder().delete_from(table)


class QueryBuilder:
    """Fluent builder producing parameterized statements."""

    def __init__(self):
        self._type: Optional[str] = None
        self._columns: List[str] = []
        self._table: Optional[str] = None
        self._joins: List[Dict[str, Any]] = []
        self._where: List[str] = []
        self._where_params: List[Any] = []
        self._set_params: List[Any] = []
        self._set_sql: List[str] = []

    def select(self, *columns: str) -> "QueryBuilder":
        self._type = "SELECT"
        self._columns = list(columns) if columns else ["*"]
        return self

    def from_(self, table: str, alias: Optional[str] = None) -> "QueryBuilder":
        self._table = f"{table} {alias}" if alias else table
        return self

    def join(
        self,
        table: str,
        on: str,
        alias: Optional[str] = None,
        type: JoinType = JoinType.INNER,
    ) -> "QueryBuilder":
        self._joins.append({"table": f"{table} {alias}" if alias else table, "on": on, "type": type})
        return self

    def where(self, condition: str, *params: Any) -> "QueryBuilder":
        """Add an AND-ed condition; ``params`` bind its placeholders."""
        self._where.append(condition)
        self._where_params.extend(params)
        return self

    def where_equals(self, columns: Sequence[str], values: Sequence[Any], alias: Optional[str] = None) -> "QueryBuilder":
        if len(columns) != len(values):
            raise ValueError("Predicate columns and values differ in length")
        return self.where(predicate(columns, alias), *values)

    def update(self, table: str) -> "QueryBuilder":
        self._type = "UPDATE"
        self._table = table
        return self

    def set(self, values: Mapping[str, Any]) -> "QueryBuilder":
        """Assign values (bound as parameters) in mapping order."""
        for column, value in values.items():
            self._set_sql.append(f"{column} = ?")
            self._set_params.append(value)
        return self

    def set_null(self, columns: Sequence[str]) -> "QueryBuilder":
        for column in columns:
            self._set_sql.append(f"{column} = NULL")
        return self

    def delete_from(self, table: str) -> "QueryBuilder":
        self._type = "DELETE"
        self._table = table
        return self

    def build(self, dialect: Optional[Dialect] = None) -> Statement:
        """Build the statement.

        Args:
            dialect: Supplies join keywords; ANSI joins when omitted
        """
        if self._type == "SELECT":
            return Statement(self._build_select(dialect), tuple(self._where_params))
        elif self._type == "UPDATE":
            return Statement(self._build_update(), tuple(self._set_params + self._where_params))
        elif self._type == "DELETE":
            return Statement(self._build_delete(), tuple(self._where_params))
        else:
            raise ValueError("Query type not set")

    def _build_select(self, dialect: Optional[Dialect]) -> str:
        if not self._table:
            raise ValueError("FROM clause is required")

        parts = ["SELECT", ", ".join(self._columns), "FROM", self._table]

        for join in self._joins:
            keyword = dialect.join_syntax(join["type"]) if dialect else f"{join['type'].name} JOIN"
            parts.append(f"{keyword} {join['table']} ON {join['on']}")

        if self._where:
            parts.extend(["WHERE", " AND ".join(self._where)])

        return " ".join(parts)

    def _build_update(self) -> str:
        if not self._set_sql:
            raise ValueError("No values to update")

        parts = [f"UPDATE {self._table} SET {', '.join(self._set_sql)}"]

        if self._where:
            parts.extend(["WHERE", " AND ".join(self._where)])

        return " ".join(parts)

    def _build_delete(self) -> str:
        parts = [f"DELETE FROM {self._table}"]

        if self._where:
            parts.extend(["WHERE", " AND ".join(self._where)])

        return " ".join(parts)


__all__ = [
    "Statement",
    "ConflictPolicy",
    "Query",
    "QueryBuilder",
    "predicate",
    "null_predicate",
    "join_condition",
    "qualify",
    "insert_sql",
    "upsert_clause",
]
