"""Column, value and predicate SQL compilers.

``ColumnRenderer``, ``ValueResolver`` and ``PredicateBuilder`` are tightly
coupled - predicates contain values, values contain sub-queries and function
calls whose arguments are columns - so they share a module.

All three receive the :class:`~mortarql.compile.context.SqlContext` of the
current render (the only state they touch is its value list) and a
:class:`Scope` describing the table the statement targets.
"""
from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mortarql.compile.context import SqlContext
from mortarql.errors import CompilationError
from mortarql.schema.expressions import (
    JSON_TYPES,
    Expression,
    Func,
    JsonInsert,
    JsonPathQuery,
    JsonRemove,
    JsonSet,
    is_op_arg,
)
from mortarql.schema.snapshot import ColumnInfo

if TYPE_CHECKING:
    from mortarql.query.query import Query

#: Compiles a nested query into a child context and returns its SQL.
SubqueryFn = Callable[["Query", SqlContext], str]

ORDER_DIRECTIONS = frozenset(
    {
        "ASC",
        "DESC",
        "ASC NULLS FIRST",
        "ASC NULLS LAST",
        "DESC NULLS FIRST",
        "DESC NULLS LAST",
    }
)


def is_query(value: Any) -> bool:
    from mortarql.query.query import Query

    return isinstance(value, Query)


# ---------------------------------------------------------------------------
# Column references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Scope:
    """The table a statement targets, as seen by column references.

    Attributes:
        table: Table name.
        quoted_as: Quoted qualifier for columns (the alias, or the table).
        shape: Column key → metadata, used for declared-name translation.
        aliases: Qualifiers that refer to this table (table name and alias).
        has_joins: Whether other tables are joined in.
    """

    table: str
    quoted_as: str
    shape: dict[str, ColumnInfo] = field(default_factory=dict)
    aliases: frozenset[str] = frozenset()
    has_joins: bool = False

    def sql_name(self, key: str) -> str:
        column = self.shape.get(key)
        return column.sql_name if column is not None else key


class ColumnRenderer:
    """Renders ``"column"``, ``"table.column"`` and ``"*"`` references."""

    def __init__(self, ctx: SqlContext, scope: Scope) -> None:
        self._ctx = ctx
        self._scope = scope

    def column(self, ref: str, quoted_as: str | None = None) -> str:
        """Qualified reference; unqualified columns belong to ``quoted_as``."""
        quote = self._ctx.quote
        if ref == "*":
            return self.star()
        if "." in ref:
            table, column = ref.split(".", 1)
            if column == "*":
                return f"{quote(table)}.*"
            if table in self._scope.aliases:
                column = self._scope.sql_name(column)
            return f"{quote(table)}.{quote(column)}"
        qualifier = quoted_as or self._scope.quoted_as
        if quoted_as is None or quoted_as == self._scope.quoted_as:
            ref = self._scope.sql_name(ref)
        return f"{qualifier}.{quote(ref)}"

    def select_column(self, ref: str) -> str:
        """Like :meth:`column`, aliased back to its key when renamed."""
        sql = self.column(ref)
        if ref == "*" or ref.endswith(".*"):
            return sql
        table, _, key = ref.rpartition(".")
        if (not table or table in self._scope.aliases) and self._scope.sql_name(key) != key:
            return f"{sql} AS {self._ctx.quote(key)}"
        return sql

    @property
    def quoted_as(self) -> str:
        return self._scope.quoted_as

    def star(self) -> str:
        if self._scope.has_joins:
            return f"{self._scope.quoted_as}.*"
        return "*"

    def bare(self, key: str) -> str:
        """Unqualified quoted name of a column of the target table."""
        return self._ctx.quote(self._scope.sql_name(key))


# ---------------------------------------------------------------------------
# Value resolver
# ---------------------------------------------------------------------------


class ValueResolver:
    """Turns a value of unknown shape into SQL, binding literals.

    Resolution order:

    1. JSON operation → jsonb function / operator syntax
    2. :class:`~mortarql.schema.expressions.Expression` → renders itself
    3. ``Query`` → parenthesised sub-query sharing the parameter list
    4. ``{"op": ..., "arg": ...}`` → ``"<column>" <op> <param>``
    5. anything else → bound parameter

    Shared by the UPDATE SET list and the SELECT list; it has no side
    effects besides appending to the context's values.
    """

    def __init__(
        self,
        ctx: SqlContext,
        columns: ColumnRenderer,
        build_subquery: SubqueryFn,
    ) -> None:
        self._ctx = ctx
        self._cols = columns
        self._build_subquery = build_subquery

    def resolve(self, value: Any, key: str | None = None) -> str:
        if isinstance(value, JSON_TYPES):
            return self._json(value, key)
        if isinstance(value, Expression):
            return value.to_sql(self._ctx, self._cols.quoted_as)
        if isinstance(value, Func):
            return self.func(value)
        if is_query(value):
            return f"({self._build_subquery(value, self._ctx.child())})"
        if is_op_arg(value):
            if key is None:
                raise CompilationError(
                    "An {op, arg} value needs a column to operate on.", clause="SET"
                )
            return f"{self._cols.bare(key)} {value['op']} {self._ctx.add_value(value['arg'])}"
        return self._ctx.add_value(value)

    def operand(self, value: Any) -> str:
        """Resolve a predicate operand: expressions and sub-queries, or a literal."""
        if isinstance(value, Expression):
            return value.to_sql(self._ctx, self._cols.quoted_as)
        if is_query(value):
            return f"({self._build_subquery(value, self._ctx.child())})"
        return self._ctx.add_value(value)

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def _json(self, op: Any, key: str | None) -> str:
        target = op.column if op.column is not None else key
        if target is None:
            raise CompilationError(
                f"{type(op).__name__} needs a column when not used as an update value.",
                clause="json",
            )
        if isinstance(target, str):
            column = self._cols.column(target)
        else:
            column = self._json(target, key)

        if isinstance(op, JsonSet):
            path = self._ctx.add_value(op.path_array)
            value = self._ctx.add_value(json.dumps(op.value))
            tail = "" if op.create_if_missing else ", false"
            return f"jsonb_set({column}, {path}, {value}{tail})"
        if isinstance(op, JsonInsert):
            path = self._ctx.add_value(op.path_array)
            value = self._ctx.add_value(json.dumps(op.value))
            tail = ", true" if op.insert_after else ""
            return f"jsonb_insert({column}, {path}, {value}{tail})"
        if isinstance(op, JsonRemove):
            return f"({column} #- {self._ctx.add_value(op.path_array)})"
        if isinstance(op, JsonPathQuery):
            return f"jsonb_path_query_first({column}, {self._ctx.add_value(op.json_path)})"
        raise CompilationError(f"Unknown JSON operation: {type(op).__name__}", clause="json")

    # ------------------------------------------------------------------
    # Functions, windows and ordering
    # ------------------------------------------------------------------

    def func(self, fn: Func) -> str:
        args = ", ".join(self._func_arg(a) for a in fn.args)
        if fn.distinct:
            args = f"DISTINCT {args}"
        sql = f"{fn.name}({args})"
        if fn.over is None:
            return sql
        if isinstance(fn.over, str):
            return f"{sql} OVER {self._ctx.quote(fn.over)}"
        return f"{sql} OVER ({self.window_spec(fn.over)})"

    def _func_arg(self, arg: Any) -> str:
        if arg == "*":
            return "*"
        if isinstance(arg, str):
            return self._cols.column(arg)
        return self.resolve(arg)

    def window_spec(self, spec: dict[str, Any] | Expression) -> str:
        if isinstance(spec, Expression):
            return spec.to_sql(self._ctx, self._cols.quoted_as)
        parts: list[str] = []
        partition = spec.get("partition_by")
        if partition:
            items = partition if isinstance(partition, list) else [partition]
            parts.append(f"PARTITION BY {', '.join(self.expression(p) for p in items)}")
        order = spec.get("order")
        if order:
            items = order if isinstance(order, list) else [order]
            parts.append(f"ORDER BY {self.order(items)}")
        return " ".join(parts)

    def expression(self, item: Any) -> str:
        """A column name, raw SQL, or function used in GROUP BY / PARTITION BY."""
        if isinstance(item, str):
            return self._cols.column(item)
        return self.resolve(item)

    def order(self, items: list[Any]) -> str:
        parts: list[str] = []
        for item in items:
            if isinstance(item, dict):
                for column, direction in item.items():
                    if direction.upper() not in ORDER_DIRECTIONS:
                        raise CompilationError(
                            f"Invalid sort direction '{direction}'.", clause="ORDER BY"
                        )
                    parts.append(f"{self.expression(column)} {direction.upper()}")
            else:
                parts.append(self.expression(item))
        return ", ".join(parts)


# ---------------------------------------------------------------------------
# Predicate builder
# ---------------------------------------------------------------------------


class PredicateBuilder:
    """Compiles where items (dicts and raw SQL) to SQL conditions.

    A dict maps column references to values (equality, ``IS NULL`` for
    ``None``) or to ``{operator: value}`` dicts.  The keys ``AND``, ``OR``
    and ``NOT`` nest further where items::

        {"name": "Bob", "age": {"gte": 18}}
        {"OR": [{"id": 1}, {"id": 2}]}
        {"NOT": {"active": False}}
    """

    def __init__(
        self,
        ctx: SqlContext,
        columns: ColumnRenderer,
        values: ValueResolver,
    ) -> None:
        self._ctx = ctx
        self._cols = columns
        self._values = values

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, and_: list[Any], or_: list[list[Any]] | None = None) -> str:
        """Render an AND list combined with optional OR groups."""
        groups: list[list[str]] = []
        and_parts = self.conditions(and_)
        if and_parts:
            groups.append(and_parts)
        for group in or_ or []:
            parts = self.conditions(group)
            if parts:
                groups.append(parts)
        if not groups:
            return ""
        if len(groups) == 1:
            return " AND ".join(groups[0])
        return " OR ".join(f"({' AND '.join(g)})" for g in groups)

    def conditions(self, items: list[Any]) -> list[str]:
        parts: list[str] = []
        for item in items:
            parts.extend(self._item(item))
        return parts

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def _item(self, item: Any) -> list[str]:
        if isinstance(item, Expression):
            return [item.to_sql(self._ctx, self._cols.quoted_as)]
        if not isinstance(item, dict):
            raise CompilationError(f"Invalid where item: {item!r}", clause="WHERE")

        parts: list[str] = []
        for key, value in item.items():
            if key == "AND":
                nested = self.conditions(value if isinstance(value, list) else [value])
                if nested:
                    parts.append(" AND ".join(nested))
            elif key == "OR":
                options = value if isinstance(value, list) else [value]
                rendered = [self._group(option) for option in options]
                rendered = [r for r in rendered if r]
                if rendered:
                    parts.append(f"({' OR '.join(rendered)})")
            elif key == "NOT":
                nested = self.conditions(value if isinstance(value, list) else [value])
                if nested:
                    parts.append(f"NOT {self._wrap(nested)}")
            else:
                parts.extend(self._column_condition(key, value))
        return parts

    def _group(self, item: Any) -> str:
        nested = self._item(item)
        if len(nested) > 1:
            return f"({' AND '.join(nested)})"
        return nested[0] if nested else ""

    @staticmethod
    def _wrap(parts: list[str]) -> str:
        return f"({' AND '.join(parts)})"

    def _column_condition(self, key: str, value: Any) -> list[str]:
        column = self._cols.column(key)
        if value is None:
            return [f"{column} IS NULL"]
        if isinstance(value, dict) and value and all(op in OPERATORS for op in value):
            return [self._operator(column, op, arg) for op, arg in value.items()]
        return [f"{column} = {self._values.operand(value)}"]

    def _operator(self, column: str, op: str, arg: Any) -> str:
        return OPERATORS[op](self, column, arg)

    # ------------------------------------------------------------------
    # Operator handlers
    # ------------------------------------------------------------------

    def _eq(self, column: str, arg: Any) -> str:
        if arg is None:
            return f"{column} IS NULL"
        return f"{column} = {self._values.operand(arg)}"

    def _ne(self, column: str, arg: Any) -> str:
        if arg is None:
            return f"{column} IS NOT NULL"
        return f"{column} <> {self._values.operand(arg)}"

    def _in(self, column: str, arg: Any, negate: bool = False) -> str:
        keyword = "NOT IN" if negate else "IN"
        if is_query(arg):
            return f"{column} {keyword} {self._values.operand(arg)}"
        if isinstance(arg, Expression):
            return f"{column} {keyword} ({self._values.operand(arg)})"
        items = list(arg)
        if not items:
            return "true" if negate else "false"
        values = ", ".join(self._ctx.add_value(v) for v in items)
        return f"{column} {keyword} ({values})"

    def _not_in(self, column: str, arg: Any) -> str:
        return self._in(column, arg, negate=True)

    def _contains(self, column: str, arg: Any) -> str:
        return f"{column} ILIKE '%' || {self._values.operand(arg)} || '%'"

    def _starts_with(self, column: str, arg: Any) -> str:
        return f"{column} ILIKE {self._values.operand(arg)} || '%'"

    def _ends_with(self, column: str, arg: Any) -> str:
        return f"{column} ILIKE '%' || {self._values.operand(arg)}"

    def _between(self, column: str, arg: Any) -> str:
        low, high = arg
        return f"{column} BETWEEN {self._values.operand(low)} AND {self._values.operand(high)}"


#: ``(builder, quoted_column, argument) -> sql``
OperatorHandler = Callable[[PredicateBuilder, str, Any], str]


def _compare(sql_op: str) -> OperatorHandler:
    def handler(builder: PredicateBuilder, column: str, arg: Any) -> str:
        return f"{column} {sql_op} {builder._values.operand(arg)}"

    return handler


OPERATORS: dict[str, OperatorHandler] = {
    "eq": PredicateBuilder._eq,
    "ne": PredicateBuilder._ne,
    "lt": _compare("<"),
    "lte": _compare("<="),
    "gt": _compare(">"),
    "gte": _compare(">="),
    "in": PredicateBuilder._in,
    "not_in": PredicateBuilder._not_in,
    "contains": PredicateBuilder._contains,
    "starts_with": PredicateBuilder._starts_with,
    "ends_with": PredicateBuilder._ends_with,
    "between": PredicateBuilder._between,
}
