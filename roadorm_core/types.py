"""RoadORM Types - Semantic column types and value coercion.

Provides the small, closed set of semantic types a mapped column may carry:
- Integer
- String (VARCHAR with a length) and Text (unbounded)
- Boolean
- Decimal (fixed-point, precision/scale)
- Date

Each type supports:
- Validation of Python values
- Serialization to a driver-friendly value
- Deserialization of a stored value back into the Python type
- SQL type mapping per dialect

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal as PyDecimal
from decimal import InvalidOperation
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional, Type


class SQLDialect(PyEnum):
    """Supported SQL dialects for type mapping."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    STANDARD = "standard"


@dataclass
class ValidationError:
    """Validation error details."""

    field: str
    message: str
    value: Any
    constraint: Optional[str] = None


class DataType(ABC):
    """Base class for all column types.

    All types must implement:
    - validate(): Check if a value conforms to the type
    - serialize(): Convert Python value to a driver parameter
    - deserialize(): Convert a stored value to the Python value
    - sql_type(): Get SQL type declaration for dialect
    """

    @abstractmethod
    def validate(self, value: Any) -> List[ValidationError]:
        """Validate a value against this type.

        Args:
            value: Value to validate

        Returns:
            List of validation errors (empty if valid)
        """

    @abstractmethod
    def serialize(self, value: Any) -> Any:
        """Serialize value for a statement parameter."""

    @abstractmethod
    def deserialize(self, value: Any) -> Any:
        """Deserialize a value read from a result row."""

    @abstractmethod
    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        """Get SQL type declaration for the dialect."""

    def copy(self) -> "DataType":
        """Return an equivalent type instance (used for derived key columns)."""
        clone = object.__new__(type(self))
        clone.__dict__.update(self.__dict__)
        return clone

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# =============================================================================
# Numeric Types
# =============================================================================


class Integer(DataType):
    """Integer type."""

    def __init__(self, *, size: str = "integer"):
        self.size = size.lower()

    def validate(self, value: Any) -> List[ValidationError]:
        if value is None:
            return []
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return [ValidationError("value", f"Expected integer, got {type(value).__name__}", value, "type")]
        if isinstance(value, float) and not value.is_integer():
            return [ValidationError("value", "Float value has fractional part", value, "type")]
        return []

    def serialize(self, value: Any) -> Optional[int]:
        if value is None:
            return None
        return int(value)

    def deserialize(self, value: Any) -> Optional[int]:
        if value is None:
            return None
        return int(value)

    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        if self.size == "bigint":
            return "BIGINT"
        return "INTEGER"

    def __repr__(self) -> str:
        return f"Integer({self.size.upper()})"


class Decimal(DataType):
    """Fixed-precision decimal type.

    Stores exact decimal values without floating-point errors. Values are
    bound as strings so drivers without native decimals (SQLite) keep
    every digit.
    """

    def __init__(self, precision: int = 10, scale: int = 2):
        self.precision = precision
        self.scale = scale

    def validate(self, value: Any) -> List[ValidationError]:
        errors = []

        if value is None:
            return errors

        try:
            dec = PyDecimal(str(value))
        except InvalidOperation:
            errors.append(ValidationError("value", f"Cannot convert to Decimal: {value}", value, "type"))
            return errors

        sign, digits, exponent = dec.as_tuple()
        total_digits = len(digits)
        decimal_places = -exponent if exponent < 0 else 0

        if total_digits > self.precision:
            errors.append(ValidationError("value", f"Too many digits (max {self.precision})", value, "precision"))
        if decimal_places > self.scale:
            errors.append(ValidationError("value", f"Too many decimal places (max {self.scale})", value, "scale"))

        return errors

    def serialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(PyDecimal(str(value)))

    def deserialize(self, value: Any) -> Optional[PyDecimal]:
        if value is None:
            return None
        if isinstance(value, PyDecimal):
            return value
        return PyDecimal(str(value))

    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        return f"DECIMAL({self.precision}, {self.scale})"

    def __repr__(self) -> str:
        return f"Decimal({self.precision}, {self.scale})"


# =============================================================================
# String Types
# =============================================================================


class String(DataType):
    """Variable-length string type.

    Supports:
    - VARCHAR (variable length with max)
    - TEXT (unlimited length, when no length is given)
    """

    def __init__(self, length: Optional[int] = None):
        self.length = length

    def validate(self, value: Any) -> List[ValidationError]:
        if value is None:
            return []
        if not isinstance(value, str):
            return [ValidationError("value", f"Expected string, got {type(value).__name__}", value, "type")]
        if self.length is not None and len(value) > self.length:
            return [ValidationError("value", f"String too long (max {self.length})", value, "max_length")]
        return []

    def serialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    def deserialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        if self.length is None:
            return "TEXT"
        return f"VARCHAR({self.length})"

    def __repr__(self) -> str:
        if self.length is None:
            return "Text()"
        return f"String({self.length})"


class Text(String):
    """Unlimited length text type."""

    def __init__(self):
        super().__init__(length=None)


# =============================================================================
# Temporal Types
# =============================================================================


class Date(DataType):
    """Calendar date type, stored as an ISO-8601 string where the driver has no date type."""

    def validate(self, value: Any) -> List[ValidationError]:
        if value is None:
            return []
        if isinstance(value, str):
            try:
                date.fromisoformat(value)
            except ValueError:
                return [ValidationError("value", f"Invalid date string: {value}", value, "format")]
            return []
        if not isinstance(value, date):
            return [ValidationError("value", f"Expected date, got {type(value).__name__}", value, "type")]
        return []

    def serialize(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, str):
            value = date.fromisoformat(value)
        return value.isoformat()

    def deserialize(self, value: Any) -> Optional[date]:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value)[:10])

    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        return "DATE"


# =============================================================================
# Boolean Type
# =============================================================================


class Boolean(DataType):
    """Boolean type."""

    def validate(self, value: Any) -> List[ValidationError]:
        if value is None:
            return []
        if not isinstance(value, bool) and value not in (0, 1, "true", "false", "True", "False"):
            return [ValidationError("value", f"Expected boolean, got {type(value).__name__}", value, "type")]
        return []

    def serialize(self, value: Any) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, str):
            return value.lower() in ("1", "true", "t")
        return bool(value)

    def deserialize(self, value: Any) -> Optional[bool]:
        if value is None:
            return None
        if isinstance(value, str):
            return value.lower() in ("1", "true", "t")
        return bool(value)

    def sql_type(self, dialect: SQLDialect = SQLDialect.STANDARD) -> str:
        if dialect == SQLDialect.SQLITE:
            return "INTEGER"
        return "BOOLEAN"


# =============================================================================
# Type Registry
# =============================================================================


# Semantic kinds an entity field may be mapped to.
SUPPORTED_TYPES = (Integer, String, Boolean, Decimal, Date)


def is_supported(data_type: DataType) -> bool:
    """Check whether a column type is one of the supported semantic kinds."""
    return isinstance(data_type, SUPPORTED_TYPES)


class TypeRegistry:
    """Registry of column types for name-based resolution (YAML/CLI)."""

    _types: Dict[str, Type[DataType]] = {
        "integer": Integer,
        "int": Integer,
        "decimal": Decimal,
        "string": String,
        "varchar": String,
        "text": Text,
        "date": Date,
        "boolean": Boolean,
        "bool": Boolean,
    }

    @classmethod
    def get(cls, type_name: str) -> Optional[Type[DataType]]:
        """Get a type class by name."""
        return cls._types.get(type_name.lower())


__all__ = [
    # Base
    "DataType",
    "ValidationError",
    "SQLDialect",
    "TypeRegistry",
    "SUPPORTED_TYPES",
    "is_supported",
    # Numeric
    "Integer",
    "Decimal",
    # String
    "String",
    "Text",
    # Temporal
    "Date",
    # Boolean
    "Boolean",
]
