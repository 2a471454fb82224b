"""Compilation context: the per-render accumulator of SQL and values."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mortarql.compile.base import SQLCompiler


@dataclass
class SqlContext:
    """Accumulates SQL fragments and bound values during one render.

    Parameter positions are assigned strictly in emission order and never
    renumbered.  A :meth:`child` context used for a sub-query has its own
    fragment list but shares ``values``, so placeholders stay unique across
    the whole statement.

    Attributes:
        compiler: Dialect-specific compiler instance.
        sql: SQL fragments, joined with single spaces at the end.
        values: Bound values in placeholder order.
    """

    compiler: SQLCompiler
    sql: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)

    def add_value(self, value: Any) -> str:
        """Store a literal value and return its placeholder."""
        self.values.append(value)
        return self.compiler.param_placeholder(len(self.values))

    def push(self, fragment: str) -> None:
        self.sql.append(fragment)

    def child(self) -> SqlContext:
        """Return a context for a sub-query sharing this context's values."""
        return SqlContext(compiler=self.compiler, values=self.values)

    def text(self) -> str:
        return " ".join(self.sql)

    def quote(self, name: str) -> str:
        return self.compiler.quote_identifier(name)
