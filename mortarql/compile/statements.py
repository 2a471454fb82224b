"""Per-statement SQL renderers.

One :class:`StatementRenderer` is created per descriptor render (the main
statement and every sub-query get their own).  It wires the column, value,
predicate and clause builders around the render's
:class:`~mortarql.compile.context.SqlContext`, then assembles the clauses of
the descriptor's statement kind in their fixed order.  Empty clauses are
omitted.
"""
from __future__ import annotations

from typing import Any

from mortarql.compile.clause_builders import (
    CopyOptionsBuilder,
    JoinClauseBuilder,
    OnConflictClauseBuilder,
    SelectListBuilder,
    WindowClauseBuilder,
)
from mortarql.compile.context import SqlContext
from mortarql.compile.expression_builder import (
    ColumnRenderer,
    PredicateBuilder,
    Scope,
    SubqueryFn,
    ValueResolver,
)
from mortarql.errors import CompilationError
from mortarql.query.data import SINGLE_ROW_RETURN_TYPES, CopyProgram, QueryData
from mortarql.schema.expressions import UNDEFINED, Expression, RawSQL


class StatementRenderer:
    """Renders one :class:`~mortarql.query.data.QueryData` into ``ctx``.

    Args:
        ctx: Context receiving SQL fragments and bound values.
        data: The descriptor to render.
        build_subquery: Renders nested queries into a child context.
    """

    def __init__(self, ctx: SqlContext, data: QueryData, build_subquery: SubqueryFn) -> None:
        self._ctx = ctx
        self._data = data
        quoted_as = ctx.quote(data.alias or data.table)
        scope = Scope(
            table=data.table,
            quoted_as=quoted_as,
            shape=data.shape,
            aliases=frozenset(n for n in (data.table, data.alias) if n),
            has_joins=bool(data.joins),
        )
        self._cols = ColumnRenderer(ctx, scope)
        self._values = ValueResolver(ctx, self._cols, build_subquery)
        self._predicates = PredicateBuilder(ctx, self._cols, self._values)
        self._select_list = SelectListBuilder(ctx, self._cols, self._values)
        self._joins = JoinClauseBuilder(ctx, self._cols)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def render(self) -> None:
        renderers = {
            "select": self.select,
            "insert": self.insert,
            "update": self.update,
            "delete": self.delete,
            "truncate": self.truncate,
            "copy": self.copy,
        }
        try:
            renderer = renderers[self._data.kind]
        except KeyError:
            raise CompilationError(f"Unknown statement kind '{self._data.kind}'.") from None
        renderer()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def select(self) -> None:
        data = self._data
        push = self._ctx.push

        head = "SELECT"
        if data.distinct is not None:
            head += " DISTINCT"
            if data.distinct:
                exprs = ", ".join(self._values.expression(d) for d in data.distinct)
                head += f" ON ({exprs})"
        push(f"{head} {self._select_list.build(data.select)}")
        push(f"FROM {self._table_with_alias()}")

        for join in data.joins:
            push(self._joins.build(join))

        self._where()

        if data.group:
            push(f"GROUP BY {', '.join(self._values.expression(g) for g in data.group)}")

        if data.having:
            having = self._predicates.build(data.having)
            if having:
                push(f"HAVING {having}")

        if data.window:
            window = WindowClauseBuilder(self._ctx, self._values).build(data.window)
            if window:
                push(window)

        if data.order:
            push(f"ORDER BY {self._values.order(data.order)}")

        if data.limit is not None:
            push(f"LIMIT {self._ctx.add_value(data.limit)}")
        elif data.return_type in SINGLE_ROW_RETURN_TYPES:
            push("LIMIT 1")

        if data.offset is not None:
            push(f"OFFSET {self._ctx.add_value(data.offset)}")

    def insert(self) -> None:
        data = self._data
        push = self._ctx.push

        columns = ", ".join(self._cols.bare(c) for c in data.columns)
        push(f"INSERT INTO {self._table_with_alias()}({columns})" if columns else
             f"INSERT INTO {self._table_with_alias()}")

        if isinstance(data.values, RawSQL):
            push(f"VALUES {data.values.to_sql(self._ctx, self._cols.quoted_as)}")
        elif not data.columns:
            if len(data.values) > 1:
                raise CompilationError(
                    "Cannot insert several empty records in one statement.", clause="VALUES"
                )
            push("DEFAULT VALUES")
        else:
            push(f"VALUES {', '.join(self._row(row) for row in data.values)}")

        if data.on_conflict is not None:
            builder = OnConflictClauseBuilder(self._ctx, self._cols, self._values)
            push(builder.build(data.on_conflict, data.columns))

        self._returning()

    def update(self) -> None:
        data = self._data
        set_items = self._set_items(data.update_data)
        if not set_items:
            if not (data.after and data.select is not None):
                raise CompilationError(
                    f"Nothing to update in table '{data.table}'.", clause="SET"
                )
            # Only related rows change; fetch the keys the after hooks need.
            self._ctx.push(f"SELECT {self._select_list.build(data.select)}")
            self._ctx.push(f"FROM {self._table_with_alias()}")
            self._where()
            return
        self._ctx.push(f"UPDATE {self._table_with_alias()}")
        self._ctx.push(f"SET {', '.join(set_items)}")
        self._where()
        self._returning()

    def delete(self) -> None:
        data = self._data
        push = self._ctx.push

        push(f"DELETE FROM {self._table_with_alias()}")

        join_conditions: list[str] = []
        if data.joins:
            push(f"USING {', '.join(self._joins.target(j) for j in data.joins)}")
            for join in data.joins:
                join_conditions.extend(self._joins.conditions(join))

        where = self._predicates.build(data.and_, data.or_)
        if where and join_conditions and data.or_:
            where = f"({where})"
        conditions = [c for c in (where, *join_conditions) if c]
        if conditions:
            push(f"WHERE {' AND '.join(conditions)}")

        self._returning()

    def truncate(self) -> None:
        sql = f"TRUNCATE {self._ctx.compiler.quote_table(self._data.table, self._data.schema)}"
        if self._data.restart_identity:
            sql += " RESTART IDENTITY"
        if self._data.cascade:
            sql += " CASCADE"
        self._ctx.push(sql)

    def copy(self) -> None:
        data = self._data
        options = data.copy
        if options is None:
            raise CompilationError("COPY statement has no options.", clause="COPY")

        target = self._ctx.compiler.quote_table(data.table, data.schema)
        if options.columns:
            target += f"({', '.join(self._cols.bare(c) for c in options.columns)})"
        self._ctx.push(f"COPY {target}")

        literal = self._ctx.compiler.quote_literal
        direction = "FROM" if options.direction == "from" else "TO"
        if isinstance(options.source, CopyProgram):
            self._ctx.push(f"{direction} PROGRAM {literal(options.source.program)}")
        else:
            self._ctx.push(f"{direction} {literal(options.source)}")

        with_options = CopyOptionsBuilder(self._ctx, self._cols).build(options)
        if with_options:
            self._ctx.push(with_options)

    # ------------------------------------------------------------------
    # Shared clauses
    # ------------------------------------------------------------------

    def _table_with_alias(self) -> str:
        data = self._data
        quoted_table = self._ctx.compiler.quote_table(data.table, data.schema)
        if data.alias and data.alias != data.table:
            return f"{quoted_table} AS {self._ctx.quote(data.alias)}"
        return quoted_table

    def _where(self) -> None:
        where = self._predicates.build(self._data.and_, self._data.or_)
        if where:
            self._ctx.push(f"WHERE {where}")

    def _returning(self) -> None:
        if self._data.select is None:
            return
        self._ctx.push(f"RETURNING {self._select_list.build(self._data.select)}")

    def _row(self, row: list[Any]) -> str:
        cells = [
            "DEFAULT" if value is UNDEFINED else self._values.resolve(value)
            for value in row
        ]
        return f"({', '.join(cells)})"

    def _set_items(self, update_data: list[Any]) -> list[str]:
        """Render the SET list.

        Callables are invoked with the item list; what they return is
        appended and rendered after the items already queued.
        """
        items = list(update_data)
        parts: list[str] = []
        index = 0
        while index < len(items):
            item = items[index]
            index += 1
            if isinstance(item, Expression):
                parts.append(item.to_sql(self._ctx, self._cols.quoted_as))
            elif isinstance(item, dict):
                for key, value in item.items():
                    if value is UNDEFINED:
                        continue
                    parts.append(f"{self._cols.bare(key)} = {self._values.resolve(value, key)}")
            elif callable(item):
                result = item(items)
                if result is not None:
                    items.append(result)
            else:
                raise CompilationError(f"Invalid update item: {item!r}", clause="SET")
        return parts
