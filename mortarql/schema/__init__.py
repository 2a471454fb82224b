"""mortarQL schema models: tables, columns, relations and value expressions."""
from mortarql.schema.expressions import (
    UNDEFINED,
    Expression,
    Func,
    JsonInsert,
    JsonPathQuery,
    JsonRemove,
    JsonSet,
    RawSQL,
    raw,
)
from mortarql.schema.relations import (
    BelongsTo,
    HasAndBelongsToMany,
    HasMany,
    HasOne,
    Relation,
    classify_relation,
)
from mortarql.schema.snapshot import ColumnInfo, SchemaSnapshot, TableInfo

__all__ = [
    "UNDEFINED",
    "Expression",
    "Func",
    "JsonInsert",
    "JsonPathQuery",
    "JsonRemove",
    "JsonSet",
    "RawSQL",
    "raw",
    "BelongsTo",
    "HasAndBelongsToMany",
    "HasMany",
    "HasOne",
    "Relation",
    "classify_relation",
    "ColumnInfo",
    "SchemaSnapshot",
    "TableInfo",
]
