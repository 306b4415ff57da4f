"""RoadORM Connections - Thin wrappers over DB-API drivers.

Every connection speaks the same narrow interface to the executor:
``execute(sql, params) -> QueryResult``, ``executemany``, a dialect, a
scoped ``transaction()`` and ``close()``. SQL always arrives with ``?``
placeholders; connections for ``format``-style drivers translate them.

Architecture:
    DatabaseConnection
    ├── SQLiteConnection      (sqlite3, standard library)
    ├── PostgresConnection    (psycopg2, optional extra)
    └── MySQLConnection       (pymysql, optional extra)

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Type

import yaml

from roadorm_core.dialect import Dialect, MySQLDialect, PostgresDialect, SQLiteDialect
from roadorm_core.errors import ConnectionFailedError, ConstraintError, DuplicateKeyError

logger = logging.getLogger(__name__)

RowType = Dict[str, Any]


class ProviderType(Enum):
    """Supported database providers."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


@dataclass
class DatabaseConfig:
    """Configuration for opening a connection and running the executor."""

    provider: ProviderType = ProviderType.SQLITE
    path: Optional[Path] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    foreign_keys: bool = False
    atomic: bool = True
    log_destination: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.provider, str):
            self.provider = ProviderType(self.provider)
        if isinstance(self.path, str):
            self.path = Path(self.path)

    @classmethod
    def from_yaml(cls, path: Path) -> "DatabaseConfig":
        """Load configuration from YAML file."""
        with Path(path).open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {path} must be a mapping at the top level")
        return cls(**data)

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Load configuration from environment variables."""
        port = os.getenv("ROADORM_PORT")
        return cls(
            provider=ProviderType(os.getenv("ROADORM_PROVIDER", "sqlite")),
            path=Path(os.getenv("ROADORM_PATH", "./data/roadorm.db")),
            host=os.getenv("ROADORM_HOST"),
            port=int(port) if port else None,
            database=os.getenv("ROADORM_DATABASE"),
            username=os.getenv("ROADORM_USERNAME"),
            password=os.getenv("ROADORM_PASSWORD"),
            foreign_keys=os.getenv("ROADORM_FOREIGN_KEYS", "false").lower() in ("1", "true", "yes"),
            atomic=os.getenv("ROADORM_ATOMIC", "true").lower() in ("1", "true", "yes"),
            log_destination=os.getenv("ROADORM_LOG"),
        )


@dataclass
class QueryResult:
    """Result of a statement: rows for queries, a count for updates."""

    rows: List[RowType]
    columns: List[str]
    row_count: int
    affected_rows: int = 0
    last_insert_id: Optional[int] = None
    execution_time_ms: float = 0.0

    def __iter__(self) -> Iterator[RowType]:
        return iter(self.rows)

    def __len__(self) -> int:
        return self.row_count

    def first(self) -> Optional[RowType]:
        """Return first row or None."""
        return self.rows[0] if self.rows else None

    def scalar(self) -> Any:
        """Return single value from first row."""
        if self.rows and self.columns:
            return self.rows[0].get(self.columns[0])
        return None

    def to_json(self) -> str:
        """Serialize result to JSON."""
        return json.dumps({
            "columns": self.columns,
            "rows": self.rows,
            "row_count": self.row_count,
            "affected_rows": self.affected_rows,
            "execution_time_ms": self.execution_time_ms,
        }, default=str)


class DatabaseConnection(ABC):
    """Database connection over a DB-API 2.0 driver.

    Statements on one connection are serialized by a lock; the connection
    is still meant to be used from one thread at a time.
    """

    #: Driver exception classes that signal a constraint violation
    integrity_errors: Tuple[Type[BaseException], ...] = ()

    #: Driver paramstyle; ``format`` drivers get ``?`` rewritten to ``%s``
    paramstyle = "qmark"

    def __init__(self, config: DatabaseConfig, dialect: Dialect):
        self.config = config
        self.dialect = dialect
        self.query_count = 0
        self._raw = self._connect()
        self._depth = 0
        self._closed = False
        self._lock = threading.RLock()

    @abstractmethod
    def _connect(self) -> Any:
        """Open the underlying driver connection."""

    @abstractmethod
    def _begin(self) -> None:
        """Start a driver transaction."""

    @abstractmethod
    def _commit(self) -> None:
        """Commit the driver transaction."""

    @abstractmethod
    def _rollback(self) -> None:
        """Roll back the driver transaction."""

    def is_duplicate_key(self, error: BaseException) -> bool:
        """Classify an integrity error as a duplicate-key violation."""
        message = str(error).lower()
        return "unique" in message or "duplicate" in message or "primary key" in message

    @property
    def raw(self) -> Any:
        """The underlying driver connection."""
        return self._raw

    @property
    def is_active(self) -> bool:
        """Check if connection is active and usable."""
        return not self._closed

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def get_dialect(self) -> Dialect:
        return self.dialect

    def _prepare(self, sql: str) -> str:
        if self.paramstyle == "format":
            return sql.replace("?", "%s")
        return sql

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult:
        """Execute a statement and return its rows or affected-row count."""
        if self._closed:
            raise RuntimeError("Connection is closed")

        with self._lock:
            self.query_count += 1
            start_time = time.perf_counter()
            cursor = self._raw.cursor()
            try:
                cursor.execute(self._prepare(sql), tuple(params or ()))
                result = self._result(cursor)
            except self.integrity_errors as e:
                logger.error(f"Constraint violation: {e}")
                raise self._constraint_error(e, sql) from e
            except Exception as e:
                logger.error(f"Query execution failed: {e}")
                raise
            finally:
                cursor.close()

            result.execution_time_ms = (time.perf_counter() - start_time) * 1000
            return result

    def executemany(self, sql: str, params_list: Sequence[Sequence[Any]]) -> QueryResult:
        """Execute a statement once per parameter set, as one batch."""
        if self._closed:
            raise RuntimeError("Connection is closed")

        with self._lock:
            self.query_count += 1
            start_time = time.perf_counter()
            cursor = self._raw.cursor()
            try:
                cursor.executemany(self._prepare(sql), [tuple(p) for p in params_list])
                affected = cursor.rowcount if cursor.rowcount is not None else -1
            except self.integrity_errors as e:
                logger.error(f"Constraint violation: {e}")
                raise self._constraint_error(e, sql) from e
            except Exception as e:
                logger.error(f"Batch execution failed: {e}")
                raise
            finally:
                cursor.close()

            return QueryResult(
                rows=[],
                columns=[],
                row_count=0,
                affected_rows=max(affected, 0),
                execution_time_ms=(time.perf_counter() - start_time) * 1000,
            )

    def _result(self, cursor: Any) -> QueryResult:
        if cursor.description:
            columns = [d[0] for d in cursor.description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
            return QueryResult(rows=rows, columns=columns, row_count=len(rows))
        return QueryResult(
            rows=[],
            columns=[],
            row_count=0,
            affected_rows=max(cursor.rowcount or 0, 0),
            last_insert_id=getattr(cursor, "lastrowid", None),
        )

    def _constraint_error(self, error: BaseException, sql: str) -> ConstraintError:
        if self.is_duplicate_key(error):
            return DuplicateKeyError(str(error), sql)
        return ConstraintError(str(error), sql)

    @contextmanager
    def transaction(self) -> Iterator["DatabaseConnection"]:
        """Scoped transaction: commit on success, roll back on any exception.

        Nested scopes join the outermost one.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self._begin()
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                self._rollback()
                logger.info("Transaction rolled back")
                raise
            else:
                self._depth = 0
                self._commit()

    def close(self) -> None:
        """Close the connection."""
        if self._closed:
            return
        if self._depth:
            self._rollback()
            self._depth = 0
        self._raw.close()
        self._closed = True
        logger.debug(f"{self.__class__.__name__} closed")

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


class SQLiteConnection(DatabaseConnection):
    """SQLite connection in autocommit mode with explicit transactions."""

    integrity_errors = (sqlite3.IntegrityError,)

    def __init__(self, config: Optional[DatabaseConfig] = None):
        super().__init__(config or DatabaseConfig(), SQLiteDialect())

    def _connect(self) -> sqlite3.Connection:
        target = str(self.config.path) if self.config.path else ":memory:"
        if self.config.path and target != ":memory:":
            Path(target).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(target, isolation_level=None)
        except sqlite3.Error as e:
            raise ConnectionFailedError(f"Failed to open SQLite database {target}: {e}") from e
        if self.config.foreign_keys:
            conn.execute("PRAGMA foreign_keys = ON")
        logger.info(f"SQLite connection opened: {target}")
        return conn

    def _begin(self) -> None:
        self._raw.execute("BEGIN")

    def _commit(self) -> None:
        self._raw.execute("COMMIT")

    def _rollback(self) -> None:
        self._raw.execute("ROLLBACK")


class PostgresConnection(DatabaseConnection):
    """PostgreSQL connection through psycopg2."""

    paramstyle = "format"

    def __init__(self, config: DatabaseConfig):
        import psycopg2

        self._driver = psycopg2
        self.integrity_errors = (psycopg2.IntegrityError,)
        super().__init__(config, PostgresDialect())

    def _connect(self) -> Any:
        try:
            conn = self._driver.connect(
                host=self.config.host or "localhost",
                port=self.config.port or 5432,
                dbname=self.config.database,
                user=self.config.username,
                password=self.config.password,
            )
        except self._driver.Error as e:
            raise ConnectionFailedError(f"Failed to connect to PostgreSQL: {e}") from e
        conn.autocommit = True
        logger.info(f"PostgreSQL connection opened: {self.config.host}/{self.config.database}")
        return conn

    def is_duplicate_key(self, error: BaseException) -> bool:
        return getattr(error, "pgcode", None) == "23505" or super().is_duplicate_key(error)

    def _begin(self) -> None:
        with self._raw.cursor() as cursor:
            cursor.execute("BEGIN")

    def _commit(self) -> None:
        with self._raw.cursor() as cursor:
            cursor.execute("COMMIT")

    def _rollback(self) -> None:
        with self._raw.cursor() as cursor:
            cursor.execute("ROLLBACK")


class MySQLConnection(DatabaseConnection):
    """MySQL connection through PyMySQL."""

    paramstyle = "format"

    def __init__(self, config: DatabaseConfig):
        import pymysql

        self._driver = pymysql
        self.integrity_errors = (pymysql.err.IntegrityError,)
        super().__init__(config, MySQLDialect())

    def _connect(self) -> Any:
        try:
            conn = self._driver.connect(
                host=self.config.host or "localhost",
                port=self.config.port or 3306,
                database=self.config.database,
                user=self.config.username,
                password=self.config.password or "",
                autocommit=True,
                # UPDATE reports matched rows, not changed rows
                client_flag=self._driver.constants.CLIENT.FOUND_ROWS,
            )
        except self._driver.err.MySQLError as e:
            raise ConnectionFailedError(f"Failed to connect to MySQL: {e}") from e
        logger.info(f"MySQL connection opened: {self.config.host}/{self.config.database}")
        return conn

    def is_duplicate_key(self, error: BaseException) -> bool:
        args = getattr(error, "args", ())
        return bool(args) and args[0] == 1062 or super().is_duplicate_key(error)

    def _begin(self) -> None:
        self._raw.begin()

    def _commit(self) -> None:
        self._raw.commit()

    def _rollback(self) -> None:
        self._raw.rollback()


def create_connection(config: DatabaseConfig) -> DatabaseConnection:
    """Open a connection for the configured provider."""
    if config.provider == ProviderType.SQLITE:
        return SQLiteConnection(config)
    if config.provider == ProviderType.POSTGRESQL:
        return PostgresConnection(config)
    if config.provider == ProviderType.MYSQL:
        return MySQLConnection(config)
    raise ValueError(f"Unsupported provider: {config.provider}")


__all__ = [
    "ProviderType",
    "DatabaseConfig",
    "QueryResult",
    "DatabaseConnection",
    "SQLiteConnection",
    "PostgresConnection",
    "MySQLConnection",
    "create_connection",
]
