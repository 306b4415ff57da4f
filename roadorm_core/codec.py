"""RoadORM Entity Codec - Entity <-> column-value mapping.

The codec is built once per table. It inspects the entity constructor a
single time and records, for every parameter, whether it is fed from a
column, from a relation, or left to its default. Rows are then decoded
and entities encoded without further introspection.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional

from roadorm_core.errors import MappingError, UnsupportedTypeError
from roadorm_core.types import is_supported

if TYPE_CHECKING:
    from roadorm_core.schema import Column, Relation, Table

logger = logging.getLogger(__name__)


class EntityCodec:
    """Bidirectional mapping between entity instances and rows of one table."""

    def __init__(self, table: "Table"):
        if table.entity_class is None:
            raise MappingError(f"Table '{table.name}' has no entity class")

        self.table = table
        self.entity_class = table.entity_class

        try:
            signature = inspect.signature(self.entity_class)
        except (TypeError, ValueError) as e:
            raise MappingError(f"{self.entity_class.__name__} has no usable constructor: {e}") from e

        for column in table.columns:
            if not is_supported(column.type):
                raise UnsupportedTypeError(
                    f"Column {column.qualified_name} has unsupported type {column.type!r}"
                )

        relations = {r.attribute: r for r in table.relations}
        factories = self._collection_factories()

        self._scalars: Dict[str, "Column"] = {}
        self._relations: Dict[str, "Relation"] = {}
        self._collections: Dict[str, Callable[[], Any]] = {}

        for name, param in signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            column = table.get_column(name)
            if column is not None:
                self._scalars[name] = column
            elif name in relations:
                relation = relations[name]
                self._relations[name] = relation
                if relation.is_collection:
                    self._collections[name] = factories.get(name, list)
            elif param.default is param.empty:
                raise MappingError(
                    f"{self.entity_class.__name__}.__init__ parameter '{name}' "
                    f"matches no column or relation of '{table.name}'"
                )

        logger.debug(
            f"Codec for {table.name}: {len(self._scalars)} columns, {len(self._relations)} relations"
        )

    def _collection_factories(self) -> Dict[str, Callable[[], Any]]:
        """Empty-collection factories declared on dataclass fields."""
        if not dataclasses.is_dataclass(self.entity_class):
            return {}
        return {
            f.name: f.default_factory
            for f in dataclasses.fields(self.entity_class)
            if f.default_factory is not dataclasses.MISSING
        }

    def to_entity(self, row: Mapping[str, Any]) -> Any:
        """Build an entity from a row.

        Relation attributes are left empty: single relations get ``None``,
        collections an empty collection. Loading them is the executor's job.

        Raises:
            MappingError: if the row lacks a mapped column
        """
        kwargs: Dict[str, Any] = {}

        for name, column in self._scalars.items():
            try:
                value = row[column.name]
            except KeyError:
                raise MappingError(f"Row for '{self.table.name}' has no column '{column.name}'") from None
            kwargs[name] = column.type.deserialize(value)

        for name, relation in self._relations.items():
            kwargs[name] = self._collections[name]() if relation.is_collection else None

        return self.entity_class(**kwargs)

    def from_entity(self, entity: Any) -> Dict[str, Any]:
        """Read every declared column from an entity.

        Foreign-key columns derived from relations are filled from the related
        entity's primary key, as ``{target}_{pk}``.

        Raises:
            MappingError: if a non-derived column has no matching attribute
        """
        values: Dict[str, Any] = {}
        related_keys: Dict[str, Any] = {}

        for relation in self.table.relations:
            if not relation.holds_foreign_key:
                continue
            related = relation.get(entity)
            if related is None:
                continue
            key = relation.target.codec.primary_key_values(related)
            related_keys.update(zip(relation.foreign_key.columns, key))

        for column in self.table.columns:
            if column.foreign_key is not None:
                if column.name in related_keys:
                    values[column.name] = related_keys[column.name]
                else:
                    values[column.name] = getattr(entity, column.name, None)
                continue
            try:
                values[column.name] = getattr(entity, column.name)
            except AttributeError:
                raise MappingError(
                    f"{type(entity).__name__} has no attribute for column {column.qualified_name}"
                ) from None

        return values

    def primary_key_values(self, entity: Any) -> List[Any]:
        """Primary-key values of an entity, in key column order."""
        try:
            return [getattr(entity, column.name) for column in self.table.primary_key]
        except AttributeError as e:
            raise MappingError(f"{type(entity).__name__} lacks a primary-key attribute: {e}") from None

    def collection_factory(self, attribute: str) -> Optional[Callable[[], Any]]:
        return self._collections.get(attribute)


__all__ = ["EntityCodec"]
