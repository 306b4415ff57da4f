"""RoadORM statement assembly.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadorm_core.query.builder import (
    ConflictPolicy,
    Query,
    QueryBuilder,
    Statement,
    insert_sql,
    predicate,
)

__all__ = [
    "ConflictPolicy",
    "Query",
    "QueryBuilder",
    "Statement",
    "insert_sql",
    "predicate",
]
