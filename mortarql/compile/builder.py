"""Core QueryData → SQL compilation logic.

``SQLBuilder`` is the top-level entry point.  It creates one
:class:`~mortarql.compile.context.SqlContext` per ``build()`` call and hands
it to a :class:`~mortarql.compile.statements.StatementRenderer`; all
dialect-specific spelling is delegated to the injected ``SQLCompiler``.

Sub-builder hierarchy
---------------------
SQLBuilder
  └── StatementRenderer        (statements.py, one per descriptor)
        ├── ColumnRenderer     (expression_builder.py)
        ├── ValueResolver      (expression_builder.py)
        ├── PredicateBuilder   (expression_builder.py)
        ├── SelectListBuilder  (clause_builders.py)
        ├── JoinClauseBuilder  (clause_builders.py)
        ├── WindowClauseBuilder, OnConflictClauseBuilder, CopyOptionsBuilder

Parameter sharing
-----------------
Sub-queries are rendered by a fresh ``StatementRenderer`` over a child
context that shares the outer value list, so ``$n`` positions are unique
across the whole statement and never renumbered.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Union

from mortarql.compile.base import CompiledSQL, SQLCompiler
from mortarql.compile.context import SqlContext
from mortarql.compile.postgres import PostgresCompiler
from mortarql.compile.statements import StatementRenderer
from mortarql.query.data import QueryData

if TYPE_CHECKING:
    from mortarql.query.query import Query


class SQLBuilder:
    """Compiles query descriptors to parameterized SQL.

    Args:
        compiler: Dialect-specific compiler instance.  Defaults to
            :class:`~mortarql.compile.postgres.PostgresCompiler`.
    """

    def __init__(self, compiler: SQLCompiler | None = None) -> None:
        self._compiler = compiler or PostgresCompiler()

    @property
    def compiler(self) -> SQLCompiler:
        return self._compiler

    def build(self, query: Union[Query, QueryData]) -> CompiledSQL:
        """Compile ``query`` to SQL text and its bound values.

        Args:
            query: A :class:`~mortarql.query.query.Query` or its descriptor.

        Returns:
            :class:`~mortarql.compile.base.CompiledSQL`.

        Raises:
            CompilationError: If the descriptor cannot be rendered.
        """
        data = query if isinstance(query, QueryData) else query.query_data
        ctx = SqlContext(compiler=self._compiler)
        self.render(data, ctx)
        return CompiledSQL(text=ctx.text(), values=ctx.values)

    def render(self, data: QueryData, ctx: SqlContext) -> str:
        """Render ``data`` into ``ctx`` and return the context's text."""
        StatementRenderer(ctx, data, self._render_subquery).render()
        return ctx.text()

    def _render_subquery(self, query: Query, ctx: SqlContext) -> str:
        return self.render(query.query_data, ctx)
