"""Compiler abstractions: CompiledSQL and the SQLCompiler ABC.

The Strategy pattern is used: the statement renderers only talk to a
``SQLCompiler`` for identifier quoting and placeholder syntax, and
``PostgresCompiler`` supplies the PostgreSQL spelling.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CompiledSQL:
    """The output of a successful compilation.

    Attributes:
        text: The SQL string with positional placeholders.
        values: Bound values; ``values[i]`` belongs to placeholder ``i + 1``.
    """

    text: str
    values: list[Any] = field(default_factory=list)


class SQLCompiler(ABC):
    """Abstract base for the dialect-specific spelling of SQL tokens."""

    @abstractmethod
    def param_placeholder(self, position: int) -> str:
        """Return the placeholder for the 1-based parameter ``position``."""

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier.

        Args:
            name: Unquoted identifier (table or column name).

        Returns:
            Quoted identifier.
        """

    @abstractmethod
    def quote_literal(self, value: str) -> str:
        """Return ``value`` as an inline string literal."""

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the canonical dialect name."""

    def quote_table(self, name: str, schema: str | None = None) -> str:
        """Quote a table name, prefixed by its schema when given."""
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(name)}"
        return self.quote_identifier(name)
