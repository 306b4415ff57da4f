"""RoadORM Schema - Table, column and relation declarations.

Provides a declarative way to describe how entity classes map to tables:
- Table definitions with typed columns and primary keys (composite allowed)
- Foreign keys derived from relations
- Relations (one-to-one, one-to-many, many-to-one, many-to-many) with
  cascade policies and explicit entity accessors
- Join tables for many-to-many relations
- Schema-wide DDL generation and validation

Architecture:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Schema System                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐                 │
    │  │   Table     │  │   Column    │  │  Relation   │                 │
    │  │ Definition  │──│ Definition  │──│ Definition  │                 │
    │  └─────────────┘  └─────────────┘  └─────────────┘                 │
    │         │               │               │                           │
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐                 │
    │  │ Foreign Key │  │ Join Table  │  │   Schema    │                 │
    │  │ Definition  │──│ Definition  │──│  Validator  │                 │
    │  └─────────────┘  └─────────────┘  └─────────────┘                 │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    from roadorm_core.schema import Table, CascadeType

    professors = Table("professors", Professor)
    professors.varchar("surname", 255, primary_key=True)
    professors.varchar("faculty", 255, primary_key=True)

    students = Table("students", Student)
    students.varchar("surname", 255, primary_key=True)
    students.integer("student_index", primary_key=True)

    students.many_to_one(professors, attribute="professor")
    professors.one_to_many(students, cascade=CascadeType.UPDATE)

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Set

from roadorm_core.errors import PrimaryKeyMismatchError, UnsupportedTypeError, UsageError
from roadorm_core.types import Boolean, DataType, Date, Decimal, Integer, SQLDialect, String, Text, TypeRegistry

if TYPE_CHECKING:
    from roadorm_core.codec import EntityCodec

logger = logging.getLogger(__name__)


# =============================================================================
# Policies
# =============================================================================


class CascadeType(Enum):
    """What happens to the other side of a relation when the owning row changes."""

    NONE = "none"
    ALL = "all"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def deletes(self) -> bool:
        return self in (CascadeType.ALL, CascadeType.DELETE)

    @property
    def updates(self) -> bool:
        return self in (CascadeType.ALL, CascadeType.UPDATE)


class RelationType(Enum):
    """Kinds of relations between tables."""

    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    MANY_TO_MANY = "many_to_many"


# =============================================================================
# Column Definition
# =============================================================================


@dataclass(eq=False)
class Column:
    """Column definition.

    Columns compare by identity: two tables may both have a ``surname``
    column and they are different columns.
    """

    name: str
    type: DataType
    primary_key: bool = False
    nullable: bool = False
    unique: bool = False
    comment: Optional[str] = None

    # Back-reference, set when the column is added to a table
    table: Optional["Table"] = field(default=None, repr=False)

    # Set on columns derived from a relation
    foreign_key: Optional["ForeignKey"] = field(default=None, repr=False)

    def __post_init__(self):
        if self.primary_key:
            self.unique = True
            self.nullable = False

    @property
    def length(self) -> Optional[int]:
        return getattr(self.type, "length", None)

    @property
    def precision(self) -> Optional[int]:
        return getattr(self.type, "precision", None)

    @property
    def scale(self) -> Optional[int]:
        return getattr(self.type, "scale", None)

    @property
    def qualified_name(self) -> str:
        if self.table is None:
            return self.name
        return f"{self.table.name}.{self.name}"

    def eq(self, value: Any) -> "ColumnValue":
        """Pair this column with a value (key conditions and update targets)."""
        return ColumnValue(self, value)

    def sql(self, dialect: SQLDialect = SQLDialect.STANDARD, inline_primary_key: bool = True) -> str:
        """Generate SQL column definition.

        Args:
            dialect: Target SQL dialect
            inline_primary_key: Emit PRIMARY KEY on the column itself
                (only for single-column keys)

        Returns:
            SQL column definition string
        """
        parts = [self.name, self.type.sql_type(dialect)]

        if self.primary_key and inline_primary_key:
            parts.append("PRIMARY KEY")

        if not self.nullable:
            parts.append("NOT NULL")

        if self.unique and not self.primary_key:
            parts.append("UNIQUE")

        return " ".join(parts)

    def validate(self, value: Any) -> List[str]:
        """Validate a value against this column.

        Args:
            value: Value to validate

        Returns:
            List of error messages
        """
        errors = []

        if value is None:
            if not self.nullable:
                errors.append(f"Column {self.name} does not allow NULL")
            return errors

        for error in self.type.validate(value):
            errors.append(f"Column {self.name}: {error.message}")

        return errors

    def __repr__(self) -> str:
        return f"Column({self.qualified_name}, {self.type!r})"


@dataclass(frozen=True)
class ColumnValue:
    """A (column, value) pair used for key predicates and update targets."""

    column: Column
    value: Any


# =============================================================================
# Constraints
# =============================================================================


@dataclass
class ForeignKey:
    """Foreign key constraint.

    Describes the constraint only: ``columns`` are the local column names,
    ``target_columns`` the referenced primary-key column names, in the same
    order.
    """

    target_table: str
    target_columns: List[str]
    cascade: CascadeType = CascadeType.NONE
    columns: List[str] = field(default_factory=list)
    name: Optional[str] = None

    def sql(self, table_name: str) -> str:
        """Generate SQL."""
        constraint_name = self.name or f"fk_{table_name}_{'_'.join(self.columns)}"
        cols = ", ".join(self.columns)
        ref_cols = ", ".join(self.target_columns)
        cascade_sql = {
            CascadeType.ALL: " ON DELETE CASCADE ON UPDATE CASCADE",
            CascadeType.DELETE: " ON DELETE CASCADE",
            CascadeType.UPDATE: " ON UPDATE CASCADE",
            CascadeType.NONE: "",
        }[self.cascade]

        return (
            f"CONSTRAINT {constraint_name} FOREIGN KEY ({cols}) "
            f"REFERENCES {self.target_table} ({ref_cols}){cascade_sql}"
        )


# =============================================================================
# Relation Definition
# =============================================================================


class Relation:
    """Relation from ``source`` to ``target``.

    Carries an explicit entity accessor pair so the executor never has to
    guess which attribute holds the related entity (or collection). By
    default the pair reads and writes ``attribute``; ``getter`` and
    ``setter`` replace it for entities that keep the relation elsewhere.
    ``attribute`` still names the constructor parameter the codec fills.
    """

    def __init__(
        self,
        type: RelationType,
        source: "Table",
        target: "Table",
        cascade: CascadeType = CascadeType.NONE,
        attribute: Optional[str] = None,
        join_table_name: Optional[str] = None,
        purge_orphans: bool = True,
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
    ):
        self.type = type
        self.source = source
        self.target = target
        self.cascade = cascade
        self.attribute = attribute or target.name.lower()
        self.join_table_name = join_table_name
        self.purge_orphans = purge_orphans

        # Set by Table when the relation is declared
        self.foreign_key: Optional[ForeignKey] = None
        self.join_table: Optional[JoinTable] = None

        attribute_name = self.attribute
        self._getter: Callable[[Any], Any] = getter or (lambda entity: getattr(entity, attribute_name, None))
        self._setter: Callable[[Any, Any], None] = setter or (lambda entity, value: setattr(entity, attribute_name, value))

    @property
    def is_collection(self) -> bool:
        return self.type in (RelationType.ONE_TO_MANY, RelationType.MANY_TO_MANY)

    @property
    def holds_foreign_key(self) -> bool:
        """Whether the source table carries the foreign-key columns."""
        return self.type in (RelationType.ONE_TO_ONE, RelationType.MANY_TO_ONE)

    def get(self, entity: Any) -> Any:
        return self._getter(entity)

    def set(self, entity: Any, value: Any) -> None:
        self._setter(entity, value)

    def back_reference_columns(self) -> List[Column]:
        """Columns on the target table that point back at the source's primary key.

        Empty when the target declares no foreign key to the source, and for
        many-to-many relations, whose links live in the join table.
        """
        if self.type == RelationType.MANY_TO_MANY:
            return []
        fk = self.target.foreign_key_to(self.source.name)
        if fk is None:
            return []
        return [self.target.column(name) for name in fk.columns]

    def __repr__(self) -> str:
        return (
            f"Relation({self.type.name}, {self.source.name} -> {self.target.name}, "
            f"cascade={self.cascade.name}, attribute={self.attribute!r})"
        )


# =============================================================================
# Table Definition
# =============================================================================


class Table:
    """Table definition.

    Maps one entity class to one table: columns, primary key, derived
    foreign keys and outgoing relations.
    """

    def __init__(
        self,
        name: str,
        entity_class: Optional[type] = None,
        *columns: Column,
        comment: Optional[str] = None,
    ):
        """Initialize table.

        Args:
            name: Table name
            entity_class: Class instantiated for rows of this table
            *columns: Column definitions
            comment: Table comment
        """
        self.name = name
        self.entity_class = entity_class
        self.comment = comment
        self.columns: List[Column] = []
        self.foreign_keys: List[ForeignKey] = []
        self.relations: List[Relation] = []
        self._codec: Optional["EntityCodec"] = None

        for column in columns:
            self.add_column(column)

    # -------------------------------------------------------------------------
    # Columns
    # -------------------------------------------------------------------------

    @property
    def primary_key(self) -> List[Column]:
        """Primary-key columns in declaration order."""
        return [c for c in self.columns if c.primary_key]

    @property
    def primary_key_names(self) -> List[str]:
        return [c.name for c in self.primary_key]

    @property
    def foreign_columns(self) -> List[Column]:
        """Columns derived from relations."""
        return [c for c in self.columns if c.foreign_key is not None]

    def add_column(self, column: Column) -> Column:
        """Add a column to the table."""
        if self.get_column(column.name) is not None:
            raise UsageError(f"Duplicate column '{column.name}' in table '{self.name}'")
        column.table = self
        self.columns.append(column)
        self._codec = None
        return column

    def integer(self, name: str, **flags: Any) -> Column:
        """Add an INTEGER column."""
        return self.add_column(Column(name, Integer(), **flags))

    def varchar(self, name: str, length: int, **flags: Any) -> Column:
        """Add a VARCHAR(length) column."""
        return self.add_column(Column(name, String(length), **flags))

    def text(self, name: str, **flags: Any) -> Column:
        """Add a TEXT column."""
        return self.add_column(Column(name, Text(), **flags))

    def boolean(self, name: str, **flags: Any) -> Column:
        """Add a BOOLEAN column."""
        return self.add_column(Column(name, Boolean(), **flags))

    def date(self, name: str, **flags: Any) -> Column:
        """Add a DATE column."""
        return self.add_column(Column(name, Date(), **flags))

    def decimal(self, name: str, precision: int, scale: int, **flags: Any) -> Column:
        """Add a DECIMAL(precision, scale) column."""
        return self.add_column(Column(name, Decimal(precision, scale), **flags))

    def typed(self, name: str, type_name: str, *type_args: Any, **flags: Any) -> Column:
        """Add a column whose type is given by registry name, e.g. ``typed("price", "decimal", 8, 2)``."""
        type_class = TypeRegistry.get(type_name)
        if type_class is None:
            raise UnsupportedTypeError(f"Unknown column type '{type_name}' for {self.name}.{name}")
        return self.add_column(Column(name, type_class(*type_args), **flags))

    def get_column(self, name: str) -> Optional[Column]:
        """Get column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def column(self, name: str) -> Column:
        """Get column by name, failing when it does not exist."""
        col = self.get_column(name)
        if col is None:
            raise UsageError(f"Table '{self.name}' has no column '{name}'")
        return col

    # -------------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------------

    def one_to_one(
        self,
        target: "Table",
        cascade: CascadeType = CascadeType.NONE,
        attribute: Optional[str] = None,
        **accessors: Callable,
    ) -> Relation:
        """Declare a one-to-one relation; adds unique foreign-key columns here."""
        return self._add_relation(RelationType.ONE_TO_ONE, target, cascade, attribute, **accessors)

    def many_to_one(
        self,
        target: "Table",
        cascade: CascadeType = CascadeType.NONE,
        attribute: Optional[str] = None,
        **accessors: Callable,
    ) -> Relation:
        """Declare a many-to-one relation; adds foreign-key columns here."""
        return self._add_relation(RelationType.MANY_TO_ONE, target, cascade, attribute, **accessors)

    def one_to_many(
        self,
        target: "Table",
        cascade: CascadeType = CascadeType.NONE,
        attribute: Optional[str] = None,
        **accessors: Callable,
    ) -> Relation:
        """Declare a one-to-many relation; the target holds the foreign key."""
        return self._add_relation(RelationType.ONE_TO_MANY, target, cascade, attribute, **accessors)

    def many_to_many(
        self,
        target: "Table",
        cascade: CascadeType = CascadeType.NONE,
        attribute: Optional[str] = None,
        join_table: Optional[str] = None,
        purge_orphans: bool = True,
        **accessors: Callable,
    ) -> Relation:
        """Declare a many-to-many relation through a join table.

        The join table defaults to ``{source}_{target}``. The mirrored side
        should pass the same ``join_table`` name so both relations share it.
        """
        relation = Relation(
            RelationType.MANY_TO_MANY,
            self,
            target,
            cascade=cascade,
            attribute=attribute,
            join_table_name=join_table or f"{self.name}_{target.name}",
            purge_orphans=purge_orphans,
            **accessors,
        )
        relation.join_table = self._join_table_for(relation)
        self.relations.append(relation)
        self._codec = None
        logger.debug(f"Declared {relation!r}")
        return relation

    def _add_relation(
        self,
        type: RelationType,
        target: "Table",
        cascade: CascadeType,
        attribute: Optional[str],
        **accessors: Callable,
    ) -> Relation:
        relation = Relation(type, self, target, cascade=cascade, attribute=attribute, **accessors)

        if relation.holds_foreign_key:
            if not target.primary_key:
                raise UsageError(f"Cannot reference '{target.name}': it has no primary key")
            fk_columns = []
            for target_column in target.primary_key:
                column = Column(
                    f"{target.name}_{target_column.name}",
                    target_column.type.copy(),
                    nullable=True,
                    unique=type == RelationType.ONE_TO_ONE and len(target.primary_key) == 1,
                )
                fk_columns.append(self.add_column(column))
            foreign_key = ForeignKey(
                target_table=target.name,
                target_columns=target.primary_key_names,
                cascade=cascade,
                columns=[c.name for c in fk_columns],
            )
            for column in fk_columns:
                column.foreign_key = foreign_key
            self.foreign_keys.append(foreign_key)
            relation.foreign_key = foreign_key

        self.relations.append(relation)
        self._codec = None
        logger.debug(f"Declared {relation!r}")
        return relation

    def _join_table_for(self, relation: Relation) -> "JoinTable":
        """Reuse the mirrored relation's join table, or create one."""
        for other in relation.target.relations:
            if (
                other.type == RelationType.MANY_TO_MANY
                and other.target is self
                and other.join_table is not None
                and other.join_table.name == relation.join_table_name
            ):
                return other.join_table
        return JoinTable(relation.join_table_name, self, relation.target)

    def relations_to(self, target: "Table") -> List[Relation]:
        """All relations from this table to ``target``."""
        return [r for r in self.relations if r.target is target]

    def foreign_key_to(self, target_name: str) -> Optional[ForeignKey]:
        """Get the foreign key referencing ``target_name``."""
        for fk in self.foreign_keys:
            if fk.target_table == target_name:
                return fk
        return None

    # -------------------------------------------------------------------------
    # Keys and mapping
    # -------------------------------------------------------------------------

    def key_values(self, conditions: Sequence[ColumnValue]) -> List[Any]:
        """Order key conditions by the primary key, validating their shape.

        Raises:
            PrimaryKeyMismatchError: unless the condition columns are exactly
                this table's primary-key columns
        """
        expected = self.primary_key
        given = [cv.column for cv in conditions]
        given_names = [c.name for c in given]

        if not expected:
            raise PrimaryKeyMismatchError(self.name, [], given_names)

        by_name: Dict[str, ColumnValue] = {}
        for cv in conditions:
            if cv.column.table is not None and cv.column.table is not self:
                raise PrimaryKeyMismatchError(self.name, self.primary_key_names, [cv.column.qualified_name])
            if cv.column.name in by_name:
                raise PrimaryKeyMismatchError(self.name, self.primary_key_names, given_names)
            by_name[cv.column.name] = cv

        if set(by_name) != set(self.primary_key_names):
            raise PrimaryKeyMismatchError(self.name, self.primary_key_names, given_names)

        return [by_name[name].value for name in self.primary_key_names]

    @property
    def codec(self) -> "EntityCodec":
        """Entity codec for this table, built and validated on first use."""
        if self._codec is None:
            from roadorm_core.codec import EntityCodec

            self._codec = EntityCodec(self)
        return self._codec

    def validate_mapping(self) -> None:
        """Check the entity class against the declared columns and relations.

        Raises:
            MappingError: if the entity cannot be built from this table
        """
        self._codec = None
        self.codec

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_sql(self, dialect: SQLDialect = SQLDialect.STANDARD, if_not_exists: bool = True) -> str:
        """Generate SQL CREATE TABLE statement.

        Args:
            dialect: Target SQL dialect
            if_not_exists: Add IF NOT EXISTS clause

        Returns:
            SQL CREATE TABLE statement
        """
        header = ["CREATE TABLE"]

        if if_not_exists:
            header.append("IF NOT EXISTS")

        header.extend([self.name, "("])
        parts = [" ".join(header)]

        composite = len(self.primary_key) > 1
        column_defs = [col.sql(dialect, inline_primary_key=not composite) for col in self.columns]

        if composite:
            column_defs.append(f"PRIMARY KEY ({', '.join(self.primary_key_names)})")

        for fk in self.foreign_keys:
            column_defs.append(fk.sql(self.name))

        parts.append("    " + ",\n    ".join(column_defs))
        parts.append(")")

        return "\n".join(parts)

    def drop_sql(self, dialect: SQLDialect = SQLDialect.STANDARD, if_exists: bool = True, cascade: bool = False) -> str:
        """Generate SQL DROP TABLE statement."""
        parts = ["DROP TABLE"]

        if if_exists:
            parts.append("IF EXISTS")

        parts.append(self.name)

        if cascade and dialect == SQLDialect.POSTGRESQL:
            parts.append("CASCADE")

        return " ".join(parts)

    def validate_row(self, row: Dict[str, Any], partial: bool = False) -> List[str]:
        """Validate a column-value mapping against this table.

        Args:
            row: Dictionary of column name -> value
            partial: Skip the check for missing required columns (updates)

        Returns:
            List of error messages
        """
        errors = []

        for col in self.columns:
            if not partial and col.name not in row and not col.nullable:
                errors.append(f"Missing required column: {col.name}")

        for col_name, value in row.items():
            col = self.get_column(col_name)
            if col:
                errors.extend(col.validate(value))
            else:
                errors.append(f"Unknown column: {col_name}")

        return errors

    def __repr__(self) -> str:
        return f"Table({self.name!r})"


class JoinTable(Table):
    """Auxiliary table pairing primary keys of a many-to-many relation.

    Every column is part of the primary key, so a pair is stored once.
    """

    def __init__(self, name: str, left: Table, right: Table):
        super().__init__(name)
        self.left = left
        self.right = right

        self_referencing = left is right
        for side, prefix in ((left, ""), (right, "related_" if self_referencing else "")):
            fk_columns = []
            for pk in side.primary_key:
                column = Column(f"{prefix}{side.name}_{pk.name}", pk.type.copy(), primary_key=True)
                fk_columns.append(self.add_column(column))
            foreign_key = ForeignKey(
                target_table=side.name,
                target_columns=side.primary_key_names,
                columns=[c.name for c in fk_columns],
            )
            for column in fk_columns:
                column.foreign_key = foreign_key
            self.foreign_keys.append(foreign_key)

    def columns_for(self, side: Table, related: bool = False) -> List[Column]:
        """Join columns referencing ``side``.

        For a self-referencing join table ``related=True`` selects the second
        set of columns.
        """
        if self.left is self.right:
            fk = self.foreign_keys[1 if related else 0]
        else:
            fk = self.foreign_key_to(side.name)
        return [self.column(name) for name in fk.columns]


# =============================================================================
# Schema Definition
# =============================================================================


class Schema:
    """Database schema definition.

    Contains multiple tables and their relationships.
    """

    def __init__(self, tables: Optional[List[Table]] = None, name: Optional[str] = None):
        """Initialize schema.

        Args:
            tables: List of tables
            name: Schema name
        """
        self.tables = list(tables or [])
        self.name = name

    def add_table(self, table: Table) -> "Schema":
        """Add a table to the schema."""
        self.tables.append(table)
        return self

    def get_table(self, name: str) -> Optional[Table]:
        """Get table by name."""
        for table in self.tables:
            if table.name == name:
                return table
        for join_table in self.join_tables:
            if join_table.name == name:
                return join_table
        return None

    @property
    def join_tables(self) -> List[JoinTable]:
        """Join tables of all many-to-many relations, each once."""
        seen: List[JoinTable] = []
        for table in self.tables:
            for relation in table.relations:
                if relation.join_table is not None and all(relation.join_table is not j for j in seen):
                    seen.append(relation.join_table)
        return seen

    def create_all_sql(self, dialect: SQLDialect = SQLDialect.STANDARD) -> List[str]:
        """Generate SQL to create all tables, join tables last.

        Args:
            dialect: Target SQL dialect

        Returns:
            List of SQL statements
        """
        return [table.create_sql(dialect) for table in self.sorted_tables()]

    def drop_all_sql(self, dialect: SQLDialect = SQLDialect.STANDARD) -> List[str]:
        """Generate SQL to drop all tables in reverse dependency order."""
        return [table.drop_sql(dialect, cascade=True) for table in reversed(self.sorted_tables())]

    def sorted_tables(self) -> List[Table]:
        """Sort tables by dependencies (foreign keys)."""
        all_tables: List[Table] = self.tables + self.join_tables
        sorted_tables: List[Table] = []
        remaining = [t.name for t in all_tables]

        while remaining:
            for table in all_tables:
                if table.name not in remaining:
                    continue

                deps = {fk.target_table for fk in table.foreign_keys} - {table.name}

                if not deps & set(remaining):
                    sorted_tables.append(table)
                    remaining.remove(table.name)
                    break
            else:
                # Circular dependency - add remaining in order
                for table in all_tables:
                    if table.name in remaining:
                        sorted_tables.append(table)
                        remaining.remove(table.name)

        return sorted_tables

    def __iter__(self):
        return iter(self.tables)


# =============================================================================
# Schema Validator
# =============================================================================


class SchemaValidator:
    """Validates schema definitions."""

    RESERVED_WORDS = {
        "select", "from", "where", "insert", "update", "delete", "create",
        "table", "index", "view", "drop", "alter", "add", "column", "primary",
        "key", "foreign", "references", "unique", "check", "default",
        "constraint", "null", "not", "and", "or", "in", "like", "between",
        "order", "by", "group", "having", "limit", "offset", "join", "left",
        "right", "inner", "outer", "full", "cross", "on", "as",
    }

    def validate_table(self, table: Table) -> List[str]:
        """Validate a table definition.

        Args:
            table: Table to validate

        Returns:
            List of validation errors
        """
        errors = []

        if not table.name:
            errors.append("Table name is required")
        elif table.name.lower() in self.RESERVED_WORDS:
            errors.append(f"Table name '{table.name}' is a reserved word")

        if not table.columns:
            errors.append(f"Table '{table.name}' must have at least one column")

        column_names: Set[str] = set()
        for col in table.columns:
            if not col.name:
                errors.append("Column name is required")
            elif col.name.lower() in self.RESERVED_WORDS:
                errors.append(f"Column name '{col.name}' is a reserved word")
            else:
                column_names.add(col.name)

        if not table.primary_key:
            errors.append(f"Table '{table.name}' has no primary key")

        for fk in table.foreign_keys:
            for col in fk.columns:
                if col not in column_names:
                    errors.append(f"Foreign key references unknown column: {col}")

        if table.entity_class is not None:
            try:
                table.validate_mapping()
            except UsageError as e:
                errors.append(str(e))

        return errors

    def validate_schema(self, schema: Schema) -> List[str]:
        """Validate entire schema.

        Args:
            schema: Schema to validate

        Returns:
            List of validation errors
        """
        errors = []

        table_names: Set[str] = set()
        for table in schema.tables:
            if table.name in table_names:
                errors.append(f"Duplicate table name: {table.name}")
            else:
                table_names.add(table.name)

            errors.extend(self.validate_table(table))

        for table in schema.tables:
            for fk in table.foreign_keys:
                if fk.target_table not in table_names:
                    errors.append(f"Foreign key references unknown table: {fk.target_table}")

        return errors

    def unmirrored_relations(self, schema: Schema) -> List[Relation]:
        """Relations whose target declares nothing pointing back.

        Symmetry is not enforced; a one-sided declaration is legal but means
        cascades only run from the declaring side.
        """
        return [
            relation
            for table in schema.tables
            for relation in table.relations
            if not relation.target.relations_to(table)
        ]


__all__ = [
    # Core
    "Schema",
    "Table",
    "JoinTable",
    "Column",
    "ColumnValue",
    # Relations
    "Relation",
    "RelationType",
    "CascadeType",
    # Constraints
    "ForeignKey",
    # Validation
    "SchemaValidator",
]
