"""PostgreSQL dialect compiler."""

from __future__ import annotations

from mortarql.compile.base import SQLCompiler


class PostgresCompiler(SQLCompiler):
    """Spells SQL tokens the PostgreSQL way.

    Parameter style: ``$1``, ``$2``, ... - the server-side placeholder
    syntax, sent unchanged by ``psycopg.AsyncRawCursor``.
    """

    @property
    def dialect_name(self) -> str:
        return "postgres"

    def param_placeholder(self, position: int) -> str:
        return f"${position}"

    def quote_identifier(self, name: str) -> str:
        escaped = name.replace('"', '""')
        return f'"{escaped}"'

    def quote_literal(self, value: str) -> str:
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
