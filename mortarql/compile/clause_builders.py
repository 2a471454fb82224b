"""Clause-level SQL builders.

Each class handles exactly one SQL clause and returns its text (or an empty
string when the clause has nothing to emit).  Values are bound through the
shared :class:`~mortarql.compile.context.SqlContext`.

Classes
-------
SelectListBuilder        the SELECT list, also used for RETURNING
JoinClauseBuilder        ``JOIN … ON …`` and the ON conditions alone (DELETE … USING)
WindowClauseBuilder      ``WINDOW "name" AS (…)``
OnConflictClauseBuilder  ``ON CONFLICT … DO NOTHING | DO UPDATE SET …``
CopyOptionsBuilder       ``WITH (FORMAT …, …)``
"""
from __future__ import annotations

from typing import Any

from mortarql.compile.context import SqlContext
from mortarql.compile.expression_builder import ColumnRenderer, ValueResolver
from mortarql.errors import CompilationError
from mortarql.query.data import (
    COMPARISON_OPERATORS,
    COPY_OPTION_ORDER,
    CopyOptions,
    JoinCondition,
    JoinItem,
    OnConflict,
)
from mortarql.schema.expressions import JSON_TYPES, Expression, Func


class SelectListBuilder:
    """Builds a comma-separated select list.

    Items: ``"*"``, column references (``"id"``, ``"profile.id"``,
    ``"profile.*"``), raw expressions, :class:`Func` calls, JSON operations,
    and ``{alias: value}`` dicts.
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

    def build(self, items: list[Any] | None) -> str:
        if not items:
            return self._cols.star()
        return ", ".join(self._build_item(item) for item in items)

    def _build_item(self, item: Any) -> str:
        if isinstance(item, str):
            return self._cols.select_column(item)
        if isinstance(item, dict):
            parts = []
            for alias, value in item.items():
                sql = self._cols.column(value) if isinstance(value, str) else self._values.resolve(value)
                parts.append(f"{sql} AS {self._ctx.quote(alias)}")
            return ", ".join(parts)
        if isinstance(item, (Expression, Func, *JSON_TYPES)):
            return self._values.resolve(item)
        raise CompilationError(f"Invalid select item: {item!r}", clause="SELECT")


class JoinClauseBuilder:
    """Builds ``JOIN`` clauses and their ON conditions."""

    def __init__(self, ctx: SqlContext, columns: ColumnRenderer) -> None:
        self._ctx = ctx
        self._cols = columns

    def target(self, join: JoinItem) -> str:
        """The joined table, aliased when the alias differs."""
        quoted_table = self._ctx.compiler.quote_table(join.table, join.schema)
        quoted_as = self._ctx.quote(join.alias or join.table)
        if quoted_as != quoted_table:
            return f"{quoted_table} AS {quoted_as}"
        return quoted_table

    def conditions(self, join: JoinItem) -> list[str]:
        joined_as = self._ctx.quote(join.alias or join.table)
        parts: list[str] = []
        for cond in join.conditions:
            if isinstance(cond, Expression):
                parts.append(cond.to_sql(self._ctx, joined_as))
                continue
            if cond.op not in COMPARISON_OPERATORS:
                raise CompilationError(f"Invalid join operator '{cond.op}'.", clause="JOIN")
            parts.append(f"{self._joined_column(join, cond)} {cond.op} {self._cols.column(cond.right)}")
        return parts

    def build(self, join: JoinItem) -> str:
        sql = f"{join.kind} {self.target(join)}"
        conditions = self.conditions(join)
        if conditions:
            sql += f" ON {' AND '.join(conditions)}"
        return sql

    def _joined_column(self, join: JoinItem, cond: JoinCondition) -> str:
        joined = join.alias or join.table
        prefix, dot, key = cond.left.rpartition(".")
        if dot and prefix != joined:
            return self._cols.column(cond.left)
        column = join.shape.get(key)
        name = column.sql_name if column is not None else key
        return f"{self._ctx.quote(joined)}.{self._ctx.quote(name)}"


class WindowClauseBuilder:
    """Builds ``WINDOW "w" AS (PARTITION BY … ORDER BY …)``."""

    def __init__(self, ctx: SqlContext, values: ValueResolver) -> None:
        self._ctx = ctx
        self._values = values

    def build(self, windows: list[dict[str, Any]]) -> str:
        parts: list[str] = []
        for window in windows:
            for name, spec in window.items():
                parts.append(f"{self._ctx.quote(name)} AS ({self._values.window_spec(spec)})")
        return f"WINDOW {', '.join(parts)}" if parts else ""


class OnConflictClauseBuilder:
    """Builds the ``ON CONFLICT`` clause of an insert."""

    def __init__(
        self,
        ctx: SqlContext,
        columns: ColumnRenderer,
        values: ValueResolver,
    ) -> None:
        self._ctx = ctx
        self._cols = columns
        self._values = values

    def build(self, on_conflict: OnConflict, inserted: list[str]) -> str:
        sql = f"ON CONFLICT{self._target(on_conflict.target)}"
        if on_conflict.action == "ignore":
            return f"{sql} DO NOTHING"

        update = on_conflict.update
        if isinstance(update, Expression):
            return f"{sql} DO UPDATE SET {update.to_sql(self._ctx, self._cols.quoted_as)}"
        if isinstance(update, dict):
            set_items = [
                f"{self._cols.bare(key)} = {self._values.resolve(value, key)}"
                for key, value in update.items()
            ]
        else:
            if update is None:
                targets = self._target_columns(on_conflict.target)
                names = [c for c in inserted if c not in targets]
            else:
                names = [update] if isinstance(update, str) else list(update)
            set_items = [
                f"{self._cols.bare(name)} = excluded.{self._cols.bare(name)}" for name in names
            ]
        if not set_items:
            return f"{sql} DO NOTHING"
        return f"{sql} DO UPDATE SET {', '.join(set_items)}"

    def _target(self, target: Any) -> str:
        if target is None:
            return ""
        if isinstance(target, Expression):
            return f" {target.to_sql(self._ctx, self._cols.quoted_as)}"
        names = [target] if isinstance(target, str) else list(target)
        return f" ({', '.join(self._cols.bare(n) for n in names)})"

    @staticmethod
    def _target_columns(target: Any) -> set[str]:
        if isinstance(target, str):
            return {target}
        if isinstance(target, list):
            return set(target)
        return set()


class CopyOptionsBuilder:
    """Builds the ``WITH (...)`` option list of a COPY statement."""

    def __init__(self, ctx: SqlContext, columns: ColumnRenderer) -> None:
        self._ctx = ctx
        self._cols = columns

    def build(self, options: CopyOptions) -> str:
        literal = self._ctx.compiler.quote_literal
        parts: list[str] = []
        for name in COPY_OPTION_ORDER:
            value = getattr(options, name)
            if value is None:
                continue
            keyword = name.upper()
            if name == "format":
                parts.append(f"{keyword} {value}")
            elif name in ("freeze", "header"):
                parts.append(f"{keyword} {self._flag(value)}")
            elif name in ("force_quote", "force_not_null", "force_null"):
                parts.append(f"{keyword} {self._column_list(value)}")
            else:
                parts.append(f"{keyword} {literal(value)}")
        return f"WITH ({', '.join(parts)})" if parts else ""

    @staticmethod
    def _flag(value: bool | str) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return value

    def _column_list(self, value: list[str] | str) -> str:
        if value == "*":
            return "*"
        return f"({', '.join(self._cols.bare(c) for c in value)})"
