"""mortarQL – PostgreSQL query building and execution.

Public API
----------
``Db``
    Hands out chainable :class:`Query` objects per table of a
    :class:`SchemaSnapshot`; queries compile to ``$n``-parameterized SQL and
    execute on an :class:`Adapter`.

``SQLBuilder``
    Compiles a query (or its :class:`QueryData` descriptor) without
    executing it.

``MigrationLedger``
    Self-bootstrapping record of applied migration versions.

Example::

    from mortarql import AdapterConfig, Db, PostgresAdapter

    db = Db(PostgresAdapter(AdapterConfig.from_env()), snapshot)
    user = await db("user").create({"name": "Bob", "profile": {"create": {"bio": "hi"}}})

Re-exported types
-----------------
Schema models, relation variants, value expressions, adapter types and all
error classes.
"""

from __future__ import annotations

from mortarql.errors import (
    CompilationError,
    MortarQLError,
    NotFoundError,
    QueryUsageError,
    RelationResolutionError,
    UnknownRelationError,
)
from mortarql.schema import (
    UNDEFINED,
    BelongsTo,
    ColumnInfo,
    Expression,
    Func,
    HasAndBelongsToMany,
    HasMany,
    HasOne,
    JsonInsert,
    JsonPathQuery,
    JsonRemove,
    JsonSet,
    RawSQL,
    SchemaSnapshot,
    TableInfo,
    raw,
)
from mortarql.query import CopyProgram, Db, OnConflictBuilder, Query, QueryData
from mortarql.compile import CompiledSQL, PostgresCompiler, SQLBuilder, SQLCompiler
from mortarql.adapter import Adapter, PostgresAdapter, QueryResult
from mortarql.config import AdapterConfig
from mortarql.migrations import MigrationLedger
from mortarql.schema.converters import schema_from_sqlalchemy

__all__ = [
    # Entry points
    "Db",
    "Query",
    "SQLBuilder",
    "MigrationLedger",
    "schema_from_sqlalchemy",
    # Compilation
    "CompiledSQL",
    "SQLCompiler",
    "PostgresCompiler",
    "QueryData",
    "OnConflictBuilder",
    "CopyProgram",
    # Schema
    "ColumnInfo",
    "TableInfo",
    "SchemaSnapshot",
    "BelongsTo",
    "HasOne",
    "HasMany",
    "HasAndBelongsToMany",
    # Expressions
    "UNDEFINED",
    "Expression",
    "RawSQL",
    "raw",
    "Func",
    "JsonSet",
    "JsonInsert",
    "JsonRemove",
    "JsonPathQuery",
    # Adapter
    "Adapter",
    "AdapterConfig",
    "PostgresAdapter",
    "QueryResult",
    # Errors
    "MortarQLError",
    "QueryUsageError",
    "CompilationError",
    "NotFoundError",
    "RelationResolutionError",
    "UnknownRelationError",
]
