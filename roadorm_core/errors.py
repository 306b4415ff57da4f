"""RoadORM Errors - Exception hierarchy.

Usage errors are raised before any SQL is issued. Constraint errors wrap
integrity failures reported by the driver. "Not found" is never an error.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import Iterable, Optional


class ORMError(Exception):
    """Base class for all RoadORM errors."""


class UsageError(ORMError, ValueError):
    """The caller used the API in a way the schema does not allow."""


class PrimaryKeyMismatchError(UsageError):
    """Supplied key columns do not match the table's declared primary key."""

    def __init__(self, table: str, expected: Iterable[str], given: Iterable[str]):
        self.table = table
        self.expected = list(expected)
        self.given = list(given)
        super().__init__(
            f"Primary key of '{table}' is ({', '.join(self.expected)}), "
            f"got ({', '.join(self.given)})"
        )


class InvalidValueError(UsageError):
    """Entity values rejected by their column types."""

    def __init__(self, table: str, errors: Iterable[str]):
        self.table = table
        self.errors = list(errors)
        super().__init__(f"Invalid values for '{table}': {'; '.join(self.errors)}")


class MappingError(UsageError):
    """Entity class and table declaration do not line up."""


class UnsupportedTypeError(MappingError):
    """Column carries a type outside the supported semantic kinds."""


class ForeignKeyNotFoundError(UsageError, LookupError):
    """No foreign key is declared between two tables."""

    def __init__(self, table: str, related: str):
        self.table = table
        self.related = related
        super().__init__(f"No foreign key from '{table}' to '{related}'")


class ConstraintError(ORMError):
    """The database rejected a statement because of a constraint."""

    def __init__(self, message: str, statement: Optional[str] = None):
        self.statement = statement
        super().__init__(message)


class DuplicateKeyError(ConstraintError):
    """A row with the same primary or unique key already exists."""


class ConnectionFailedError(ORMError):
    """The driver could not open a connection."""


__all__ = [
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
