"""RoadORM Command Executor - Relationship-aware find/persist/update/delete.

The executor is the only component that issues multi-statement sequences
touching more than one table for a single logical operation. It reads
relations and cascade policies from the schema, turns rows into entities
through each table's codec and sends parameterized statements to the
connection it was given.

Architecture:
    CommandExecutor
    ├── find ──────────── SELECT by key ─── relation loading (join queries)
    ├── persist ───────── parents ─ INSERT batch ─ children ─ join rows
    ├── update ────────── UPDATE by old key ─┐
    ├── delete ────────── relation walk ─────┴─ DELETE / NULLIFY / REKEY
    ├── find_orphans ──── SELECT where foreign key IS NULL
    └── slay_orphans ──── DELETE where foreign key IS NULL

Every public call runs inside one ``connection.transaction()`` unless the
context is created with ``atomic=False``.

Usage:
    context = ExecutionContext(SQLiteConnection())
    executor = CommandExecutor(context)

    executor.create_all(schema)
    executor.persist(professors, Professor("Mrozek", "WIMIR"))
    professor = executor.find(
        professors,
        professors.column("surname").eq("Mrozek"),
        professors.column("faculty").eq("WIMIR"),
    )

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from roadorm_core.connection import DatabaseConfig, DatabaseConnection, QueryResult, create_connection
from roadorm_core.dialect import Dialect
from roadorm_core.errors import ForeignKeyNotFoundError, InvalidValueError, UsageError
from roadorm_core.logger import MultiDestinationLogger
from roadorm_core.query.builder import (
    ConflictPolicy,
    Query,
    Statement,
    insert_sql,
    join_condition,
    null_predicate,
)
from roadorm_core.schema import Column, ColumnValue, Relation, RelationType, Schema, Table

logger = logging.getLogger(__name__)


class CascadeAction(Enum):
    """What the relation walk does to rows pointing at a changed key."""

    DELETE = auto()
    NULLIFY = auto()
    REKEY = auto()


@dataclass
class ExecutionContext:
    """Everything the executor needs, owned by the caller.

    Attributes:
        connection: Open database connection
        logger: Statement log writer, optional
        log_destination: Destination passed to ``logger.log``
        atomic: Wrap each public executor call in a transaction
    """

    connection: DatabaseConnection
    logger: Optional[MultiDestinationLogger] = None
    log_destination: Optional[str] = None
    atomic: bool = True

    def __post_init__(self):
        if self.log_destination and self.logger is None:
            self.logger = MultiDestinationLogger()
        if self.logger is not None and self.log_destination:
            self.logger.initialize_destination(self.log_destination)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "ExecutionContext":
        """Open a connection and statement log as configured."""
        return cls(
            connection=create_connection(config),
            log_destination=config.log_destination,
            atomic=config.atomic,
        )

    @property
    def dialect(self) -> Dialect:
        return self.connection.get_dialect()

    def record(self, message: str) -> None:
        """Write to the statement log, if one is configured."""
        if self.logger is not None and self.log_destination:
            self.logger.log(self.log_destination, message)

    def close(self) -> None:
        self.connection.close()
        if self.logger is not None:
            self.logger.close_all()

    def __enter__(self) -> "ExecutionContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


@dataclass
class _PendingChildren:
    relation: Relation
    owner: Any
    entities: List[Any] = field(default_factory=list)


class CommandExecutor:
    """Runs entity operations against one connection.

    Example:
        executor = CommandExecutor(ExecutionContext(connection))
        executor.persist(husbands, husband)
        found = executor.find(husbands, husbands.column("surname").eq("Kowalski"))
        executor.delete(husbands, husbands.column("surname").eq("Kowalski"))
    """

    def __init__(self, context: ExecutionContext):
        self.context = context
        self.connection = context.connection
        self.dialect = context.dialect
        self._metrics: Dict[str, int] = defaultdict(int)

    # -------------------------------------------------------------------------
    # Statement plumbing
    # -------------------------------------------------------------------------

    @contextmanager
    def _scope(self) -> Iterator[None]:
        if self.context.atomic:
            with self.connection.transaction():
                yield
        else:
            yield

    def _execute(self, statement: Statement) -> QueryResult:
        sql, params = statement
        logger.debug(f"Executing: {sql} {list(params)}")
        self.context.record(f"{sql} {list(params)}" if params else sql)
        self._metrics["statements"] += 1
        return self.connection.execute(sql, params)

    def _execute_batch(self, sql: str, params_list: List[Sequence[Any]]) -> QueryResult:
        logger.debug(f"Executing batch of {len(params_list)}: {sql}")
        self.context.record(f"{sql} x{len(params_list)}")
        self._metrics["statements"] += 1
        return self.connection.executemany(sql, params_list)

    @staticmethod
    def _bind(columns: Sequence[Column], values: Sequence[Any]) -> List[Any]:
        """Serialize values for the driver, column by column."""
        return [column.type.serialize(value) for column, value in zip(columns, values)]

    @staticmethod
    def _validate(table: Table, values: Dict[str, Any], partial: bool = False) -> None:
        errors = table.validate_row(values, partial=partial)
        if errors:
            raise InvalidValueError(table.name, errors)

    def _select_columns(self, table: Table, alias: Optional[str] = None) -> List[str]:
        if alias is None:
            return [c.name for c in table.columns]
        return [f"{alias}.{c.name} AS {c.name}" for c in table.columns]

    # -------------------------------------------------------------------------
    # find
    # -------------------------------------------------------------------------

    def find(self, table: Table, *key: ColumnValue) -> Optional[Any]:
        """Load one entity by primary key, with its relations.

        Args:
            table: Table to read
            *key: One ``ColumnValue`` per primary-key column

        Returns:
            The entity, or None when no row matches

        Raises:
            PrimaryKeyMismatchError: if ``key`` is not exactly the primary key
        """
        values = table.key_values(key)
        codec = table.codec

        with self._scope():
            statement = (
                Query.select(*self._select_columns(table))
                .from_(table.name)
                .where_equals(table.primary_key_names, self._bind(table.primary_key, values))
                .build(self.dialect)
            )
            row = self._execute(statement).first()
            if row is None:
                logger.debug(f"No {table.name} row for key {values}")
                return None

            entity = codec.to_entity(row)
            self._load_relations(table, entity, values)
            return entity

    def _load_relations(self, table: Table, entity: Any, key: Sequence[Any]) -> None:
        for relation in table.relations:
            statement = self._relation_query(table, relation, key)
            if statement is None:
                continue

            target_codec = relation.target.codec
            related = [target_codec.to_entity(row) for row in self._execute(statement)]

            if relation.is_collection:
                self._fill_collection(table, relation, entity, related)
            elif related and relation.get(entity) is None:
                # First match wins; extra rows are dropped
                relation.set(entity, related[0])

    def _fill_collection(self, table: Table, relation: Relation, entity: Any, related: List[Any]) -> None:
        collection = relation.get(entity)
        if collection is None:
            factory = table.codec.collection_factory(relation.attribute) or list
            collection = factory()
            relation.set(entity, collection)

        collection.clear()
        if hasattr(collection, "extend"):
            collection.extend(related)
        else:
            collection.update(related)

    def _relation_query(self, table: Table, relation: Relation, key: Sequence[Any]) -> Optional[Statement]:
        """Join query selecting the target rows related to ``key``."""
        target = relation.target
        pk_names = table.primary_key_names
        builder = Query.select(*self._select_columns(target, "t2")).from_(table.name, "t1")

        if relation.holds_foreign_key:
            on = join_condition(relation.foreign_key.columns, "t1", target.primary_key_names, "t2")
            builder.join(target.name, on, "t2")
        elif relation.type == RelationType.ONE_TO_MANY:
            back = relation.back_reference_columns()
            if not back:
                logger.warning(f"{relation!r} has no foreign key back to {table.name}; not loaded")
                return None
            on = join_condition([c.name for c in back], "t2", pk_names, "t1")
            builder.join(target.name, on, "t2")
        else:
            join_table = relation.join_table
            source_columns = [c.name for c in join_table.columns_for(table)]
            target_columns = [c.name for c in join_table.columns_for(target, related=target is table)]
            builder.join(join_table.name, join_condition(source_columns, "j", pk_names, "t1"), "j")
            builder.join(target.name, join_condition(target.primary_key_names, "t2", target_columns, "j"), "t2")

        return builder.where_equals(pk_names, self._bind(table.primary_key, key), "t1").build(self.dialect)

    # -------------------------------------------------------------------------
    # persist
    # -------------------------------------------------------------------------

    def persist(self, table: Table, *entities: Any, on_conflict: ConflictPolicy = ConflictPolicy.FAIL) -> int:
        """Insert entities and, structurally, every entity they reference.

        Parents referenced through one-to-one and many-to-one relations are
        written before the batch, children of one-to-many and many-to-many
        relations after it. Related entities are written with insert-ignore
        (or upsert under ``ConflictPolicy.UPDATE``) so that rows already
        stored are left alone.

        Args:
            table: Table of ``entities``
            *entities: Entities to insert
            on_conflict: Policy for rows whose key already exists

        Returns:
            Number of rows inserted into ``table`` by the top-level batch

        Raises:
            DuplicateKeyError: under ``ConflictPolicy.FAIL``, if a key exists
        """
        if not entities:
            return 0

        with self._scope():
            inserted = self._persist(table, entities, on_conflict, set())
        logger.info(f"Persisted {len(entities)} {table.name} entities")
        return inserted

    def _persist(self, table: Table, entities: Iterable[Any], policy: ConflictPolicy, visited: Set[int]) -> int:
        codec = table.codec
        batch: List[Dict[str, Any]] = []
        children: List[_PendingChildren] = []
        related_policy = ConflictPolicy.UPDATE if policy == ConflictPolicy.UPDATE else ConflictPolicy.IGNORE

        for entity in entities:
            if id(entity) in visited:
                continue
            visited.add(id(entity))

            values = codec.from_entity(entity)
            self._validate(table, values)

            for relation in table.relations:
                related = relation.get(entity)
                if related is None:
                    continue
                if relation.holds_foreign_key:
                    self._persist(relation.target, [related], related_policy, visited)
                else:
                    children.append(_PendingChildren(relation, entity, list(related)))

            batch.append(values)

        inserted = 0
        if batch:
            columns = table.columns
            sql = insert_sql(
                table.name,
                [c.name for c in columns],
                self.dialect,
                policy,
                table.primary_key_names,
            )
            params = [self._bind(columns, [values[c.name] for c in columns]) for values in batch]
            inserted = self._execute_batch(sql, params).affected_rows

        for pending in children:
            relation = pending.relation
            if relation.type == RelationType.ONE_TO_MANY:
                self._link_back(relation, pending.owner, pending.entities)
            self._persist(relation.target, pending.entities, related_policy, visited)
            if relation.type == RelationType.MANY_TO_MANY:
                self._insert_join_rows(table, relation, pending.owner, pending.entities)

        return inserted

    def _link_back(self, relation: Relation, owner: Any, children: List[Any]) -> None:
        """Point unset child back-references at ``owner`` before the children are written."""
        for back in relation.target.relations_to(relation.source):
            if not back.holds_foreign_key:
                continue
            for child in children:
                if back.get(child) is None:
                    back.set(child, owner)

    def _insert_join_rows(self, table: Table, relation: Relation, owner: Any, related: List[Any]) -> None:
        if not related:
            return

        join_table = relation.join_table
        target = relation.target
        source_columns = join_table.columns_for(table)
        target_columns = join_table.columns_for(target, related=target is table)
        columns = source_columns + target_columns

        owner_key = table.codec.primary_key_values(owner)
        params = [
            self._bind(columns, owner_key + target.codec.primary_key_values(item))
            for item in related
        ]
        sql = insert_sql(join_table.name, [c.name for c in columns], self.dialect, ConflictPolicy.IGNORE)
        self._execute_batch(sql, params)

    # -------------------------------------------------------------------------
    # update
    # -------------------------------------------------------------------------

    def update(self, table: Table, entity: Any, *new_values: ColumnValue) -> Optional[Any]:
        """Update the row of ``entity``, located by its current primary key.

        With no ``new_values`` every non-key column is rewritten from the
        entity. When ``new_values`` change the primary key, relations are
        walked: cascading ones re-key the rows pointing here, the others
        are nulled.

        Returns:
            A fresh entity with the merged values (relations not loaded), or
            None when no row matched
        """
        codec = table.codec
        current = codec.from_entity(entity)
        old_key = [current[name] for name in table.primary_key_names]
        if not table.primary_key or any(value is None for value in old_key):
            raise UsageError(f"{type(entity).__name__} has no complete primary key for '{table.name}'")

        assignments: Dict[str, Any] = {}
        if new_values:
            for cv in new_values:
                if cv.column.table is not table:
                    raise UsageError(f"Column {cv.column.qualified_name} is not a column of '{table.name}'")
                if cv.column.name in assignments:
                    raise UsageError(f"Column {cv.column.name} is assigned twice")
                assignments[cv.column.name] = cv.value
        else:
            assignments = {c.name: current[c.name] for c in table.columns if not c.primary_key}

        if not assignments:
            raise UsageError(f"Nothing to update in '{table.name}'")
        self._validate(table, assignments, partial=True)

        merged = dict(current)
        merged.update(assignments)
        new_key = [merged[name] for name in table.primary_key_names]

        with self._scope():
            statement = (
                Query.update(table.name)
                .set({name: table.column(name).type.serialize(value) for name, value in assignments.items()})
                .where_equals(table.primary_key_names, self._bind(table.primary_key, old_key))
                .build(self.dialect)
            )
            if self._execute(statement).affected_rows == 0:
                logger.debug(f"No {table.name} row for key {old_key}")
                return None

            if new_key != old_key:
                self._walk_relations(
                    table,
                    lambda r: CascadeAction.REKEY if r.cascade.updates else CascadeAction.NULLIFY,
                    old_key,
                    new_key,
                )

        logger.info(f"Updated {table.name} {old_key}")
        return codec.to_entity(merged)

    # -------------------------------------------------------------------------
    # delete
    # -------------------------------------------------------------------------

    def delete(self, table: Table, *key: ColumnValue) -> bool:
        """Delete a row by primary key after cascading to its relations.

        Cascading relations (``ALL``/``DELETE``) delete the rows pointing at
        this one; the others null their foreign-key columns. Many-to-many
        relations always drop their join rows.

        Returns:
            True if the row existed and was removed

        Raises:
            PrimaryKeyMismatchError: if ``key`` is not exactly the primary key
        """
        values = table.key_values(key)

        with self._scope():
            self._walk_relations(
                table,
                lambda r: CascadeAction.DELETE if r.cascade.deletes else CascadeAction.NULLIFY,
                values,
            )
            statement = (
                Query.delete_from(table.name)
                .where_equals(table.primary_key_names, self._bind(table.primary_key, values))
                .build(self.dialect)
            )
            deleted = self._execute(statement).affected_rows > 0

        logger.info(f"Deleted {table.name} {values}: {deleted}")
        return deleted

    # -------------------------------------------------------------------------
    # Relation walk
    # -------------------------------------------------------------------------

    def _walk_relations(
        self,
        table: Table,
        action_for: Callable[[Relation], CascadeAction],
        old_key: Sequence[Any],
        new_key: Optional[Sequence[Any]] = None,
    ) -> None:
        """Apply one cascade action per relation to the rows that reference ``old_key``.

        Many-to-one relations are skipped: the rows they point at do not
        depend on this one. Cascades are one level deep.
        """
        for relation in table.relations:
            if relation.type == RelationType.MANY_TO_ONE:
                continue

            action = action_for(relation)
            if relation.type == RelationType.MANY_TO_MANY:
                self._walk_join_rows(relation, action, old_key, new_key)
                continue

            columns = relation.back_reference_columns()
            if not columns:
                logger.warning(f"{relation!r} has no foreign key back to {table.name}; skipped")
                continue
            self._apply(relation.target.name, columns, action, old_key, new_key)

    @staticmethod
    def _join_sides(relation: Relation) -> List[Tuple[List[Column], List[Column]]]:
        """(source columns, target columns) pairs of a join table.

        A self-referencing join table holds the source on either side, so
        both orientations are returned.
        """
        join_table = relation.join_table
        if join_table.left is join_table.right:
            first = join_table.columns_for(relation.source)
            second = join_table.columns_for(relation.source, related=True)
            return [(first, second), (second, first)]
        return [(join_table.columns_for(relation.source), join_table.columns_for(relation.target))]

    def _walk_join_rows(
        self,
        relation: Relation,
        action: CascadeAction,
        old_key: Sequence[Any],
        new_key: Optional[Sequence[Any]],
    ) -> None:
        """Delete or re-key the join rows of ``old_key``; purge targets left unlinked."""
        sides = self._join_sides(relation)
        purge = action == CascadeAction.DELETE and relation.purge_orphans
        linked = self._linked_keys(relation, sides, old_key) if purge else []

        # Join rows cannot hold NULL keys; unlinking removes them
        if action == CascadeAction.NULLIFY:
            action = CascadeAction.DELETE
        for source_columns, _ in sides:
            self._apply(relation.join_table.name, source_columns, action, old_key, new_key)

        if linked:
            self._purge_unlinked(relation, sides, linked, old_key)

    def _linked_keys(
        self,
        relation: Relation,
        sides: List[Tuple[List[Column], List[Column]]],
        old_key: Sequence[Any],
    ) -> List[Tuple[Any, ...]]:
        """Target keys joined to ``old_key``, as stored in the join table."""
        keys: Dict[Tuple[Any, ...], None] = {}
        for source_columns, target_columns in sides:
            statement = (
                Query.select(*[c.name for c in target_columns])
                .from_(relation.join_table.name)
                .where_equals([c.name for c in source_columns], self._bind(source_columns, old_key))
                .build(self.dialect)
            )
            for row in self._execute(statement):
                keys[tuple(row[c.name] for c in target_columns)] = None
        return list(keys)

    def _purge_unlinked(
        self,
        relation: Relation,
        sides: List[Tuple[List[Column], List[Column]]],
        keys: List[Tuple[Any, ...]],
        old_key: Sequence[Any],
    ) -> int:
        """Delete the given target rows if no join row references them any more."""
        target = relation.target
        join_table = relation.join_table
        references = " OR ".join(
            f"({join_condition([c.name for c in target_columns], 'j', target.primary_key_names, target.name)})"
            for _, target_columns in sides
        )
        unlinked = f"NOT EXISTS (SELECT 1 FROM {join_table.name} j WHERE {references})"

        # The row being deleted goes through its own DELETE
        own_key = tuple(self._bind(relation.source.primary_key, old_key))

        purged = 0
        for key in keys:
            if target is relation.source and key == own_key:
                continue
            statement = (
                Query.delete_from(target.name)
                .where_equals(target.primary_key_names, list(key))
                .where(unlinked)
                .build(self.dialect)
            )
            purged += self._execute(statement).affected_rows
        if purged:
            logger.debug(f"Purged {purged} unlinked rows of {target.name}")
        return purged

    def _apply(
        self,
        table_name: str,
        columns: List[Column],
        action: CascadeAction,
        old_key: Sequence[Any],
        new_key: Optional[Sequence[Any]] = None,
    ) -> int:
        names = [c.name for c in columns]
        old = self._bind(columns, old_key)

        if action == CascadeAction.DELETE:
            builder = Query.delete_from(table_name)
        elif action == CascadeAction.NULLIFY:
            builder = Query.update(table_name).set_null(names)
        else:
            if new_key is None:
                raise UsageError("Re-keying needs the new key values")
            builder = Query.update(table_name).set(dict(zip(names, self._bind(columns, new_key))))

        result = self._execute(builder.where_equals(names, old).build(self.dialect))
        if result.affected_rows:
            logger.debug(f"{action.name} {result.affected_rows} rows of {table_name}")
        return result.affected_rows

    # -------------------------------------------------------------------------
    # Orphans
    # -------------------------------------------------------------------------

    def _orphan_columns(self, table: Table, related: Table) -> List[str]:
        foreign_key = table.foreign_key_to(related.name)
        if foreign_key is None:
            raise ForeignKeyNotFoundError(table.name, related.name)
        return foreign_key.columns

    def find_orphans(self, table: Table, related: Table) -> List[Any]:
        """Rows of ``table`` whose foreign key to ``related`` is entirely NULL.

        Raises:
            ForeignKeyNotFoundError: if ``table`` declares no foreign key to ``related``
        """
        columns = self._orphan_columns(table, related)
        codec = table.codec

        with self._scope():
            statement = (
                Query.select(*self._select_columns(table))
                .from_(table.name)
                .where(null_predicate(columns))
                .build(self.dialect)
            )
            return [codec.to_entity(row) for row in self._execute(statement)]

    def slay_orphans(self, table: Table, related: Table) -> int:
        """Delete the rows ``find_orphans`` would return.

        Returns:
            Number of rows deleted
        """
        columns = self._orphan_columns(table, related)

        with self._scope():
            statement = Query.delete_from(table.name).where(null_predicate(columns)).build(self.dialect)
            deleted = self._execute(statement).affected_rows

        logger.info(f"Slayed {deleted} orphans of {table.name}")
        return deleted

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table(self, table: Table) -> None:
        """Create a table (no-op if it exists)."""
        with self._scope():
            self._execute(Statement(table.create_sql(self.dialect.kind)))
        logger.info(f"Created table {table.name}")

    def drop_table(self, table: Table) -> None:
        """Drop a table if it exists."""
        with self._scope():
            self._execute(Statement(table.drop_sql(self.dialect.kind)))
        logger.info(f"Dropped table {table.name}")

    def create_all(self, schema: Schema) -> None:
        """Create every table and join table, dependencies first."""
        with self._scope():
            for sql in schema.create_all_sql(self.dialect.kind):
                self._execute(Statement(sql))
        logger.info(f"Created {len(schema.sorted_tables())} tables")

    def drop_all(self, schema: Schema) -> None:
        """Drop every table and join table, dependents first."""
        with self._scope():
            for sql in schema.drop_all_sql(self.dialect.kind):
                self._execute(Statement(sql))
        logger.info(f"Dropped {len(schema.sorted_tables())} tables")

    @property
    def stats(self) -> Dict[str, Any]:
        """Executor statistics."""
        return {
            "dialect": self.dialect.kind.value,
            "statements_executed": self._metrics["statements"],
            "atomic": self.context.atomic,
        }


__all__ = [
    "CascadeAction",
    "ExecutionContext",
    "CommandExecutor",
]
