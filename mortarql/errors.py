"""Custom exception hierarchy for mortarQL.

All library errors inherit from :class:`MortarQLError` so callers can catch
the base class for any mortarQL-specific failure.  Errors raised by the
database driver (unique violations, foreign-key violations, ...) are never
wrapped; they reach the caller unchanged.
"""
from __future__ import annotations

from typing import Any

#: SQLSTATE reported by PostgreSQL when a relation does not exist.
UNDEFINED_TABLE = "42P01"


class MortarQLError(Exception):
    """Base exception for all mortarQL errors."""


class QueryUsageError(MortarQLError):
    """Raised synchronously when a query method is called incorrectly.

    These are programmer errors (e.g. ``find(None)``) detected before any
    statement is built.  They are never retried.

    Args:
        message: Human-readable description.
        table: The table of the query the method was called on.
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.table = table


class CompilationError(MortarQLError):
    """Raised when a query descriptor cannot be rendered to SQL.

    Args:
        message: Human-readable description.
        clause: The SQL clause being compiled when the error occurred.
    """

    def __init__(self, message: str, clause: str | None = None) -> None:
        super().__init__(message)
        self.clause = clause


class NotFoundError(MortarQLError):
    """Raised when a throwing single-row query returns no row.

    Args:
        table: The table that was queried.
    """

    def __init__(self, table: str) -> None:
        super().__init__(f"Record not found in table '{table}'.")
        self.table = table


class UnknownRelationError(MortarQLError):
    """Raised when a hook references a relation the table does not declare."""

    def __init__(self, table: str, relation: str) -> None:
        super().__init__(f"Table '{table}' has no relation named '{relation}'.")
        self.table = table
        self.relation = relation


class RelationResolutionError(MortarQLError):
    """Raised when a nested relation payload cannot be resolved.

    Typically a ``connect`` whose ``where`` matches no row.  Raised from
    inside a before/after hook, so it aborts the enclosing transaction.

    Args:
        relation: Name of the relation being resolved.
        message: Human-readable description.
        details: Extra context (e.g. the ``where`` that matched nothing).
    """

    def __init__(
        self,
        relation: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.relation = relation
        self.details: dict[str, Any] = details or {}


def sqlstate_of(exc: BaseException) -> str | None:
    """Return the SQLSTATE carried by a driver error, or ``None``.

    ``psycopg`` exposes it as ``sqlstate``; other drivers commonly use
    ``code``.
    """
    state = getattr(exc, "sqlstate", None)
    if state is None:
        state = getattr(exc, "code", None)
    return state if isinstance(state, str) else None
