"""Value and expression types that can appear inside query data.

Anything that is not one of these types (and not a
:class:`~mortarql.query.query.Query`) is treated as a literal and bound as a
parameter.

``RawSQL``
    Verbatim SQL.  ``$name`` tokens are bound from ``values``::

        RawSQL("age > $min AND age < $max", {"min": 18, "max": 65})

JSON operations
    ``JsonSet``, ``JsonInsert``, ``JsonRemove`` and ``JsonPathQuery`` render
    as jsonb functions/operators.  ``column`` may itself be a JSON operation,
    which allows chaining several modifications of one document.  When used
    as an update value, ``column`` defaults to the key being updated.

``Func``
    A function call, optionally with an ``OVER`` window (a named window or
    an inline ``{"partition_by": ..., "order": ...}`` spec).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from mortarql.errors import CompilationError

if TYPE_CHECKING:
    from mortarql.compile.context import SqlContext


class _Undefined:
    """Marks a column a record did not provide; rendered as ``DEFAULT``."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


class Expression:
    """Base class for values that render themselves."""

    def to_sql(self, ctx: SqlContext, quoted_as: str | None = None) -> str:
        raise NotImplementedError


_RAW_PARAM = re.compile(r"\$([A-Za-z_]\w*)")


@dataclass(frozen=True)
class RawSQL(Expression):
    """Verbatim SQL with optional ``$name`` value bindings."""

    sql: str
    values: dict[str, Any] | None = None

    def to_sql(self, ctx: SqlContext, quoted_as: str | None = None) -> str:
        if not self.values:
            return self.sql
        values = self.values

        def _bind(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in values:
                raise CompilationError(
                    f"Raw SQL references ${name} but no value was provided.",
                    clause="raw",
                )
            return ctx.add_value(values[name])

        return _RAW_PARAM.sub(_bind, self.sql)


def raw(sql: str, values: dict[str, Any] | None = None, **kwargs: Any) -> RawSQL:
    """Shorthand for :class:`RawSQL`; keyword arguments become values."""
    merged = {**(values or {}), **kwargs}
    return RawSQL(sql, merged or None)


# ---------------------------------------------------------------------------
# JSON operations
# ---------------------------------------------------------------------------

JsonColumn = Union[str, "JsonOperation", None]


@dataclass(frozen=True)
class JsonOperation:
    """Base of the jsonb operations; ``path`` is a list of keys/indexes."""

    path: list[str | int]
    column: JsonColumn = None

    @property
    def path_array(self) -> list[str]:
        return [str(p) for p in self.path]


@dataclass(frozen=True)
class JsonSet(JsonOperation):
    """``jsonb_set(column, path, value[, create_if_missing])``."""

    value: Any = None
    create_if_missing: bool = True


@dataclass(frozen=True)
class JsonInsert(JsonOperation):
    """``jsonb_insert(column, path, value[, insert_after])``."""

    value: Any = None
    insert_after: bool = False


@dataclass(frozen=True)
class JsonRemove(JsonOperation):
    """``column #- path``."""


@dataclass(frozen=True)
class JsonPathQuery:
    """``jsonb_path_query_first(column, jsonpath)``."""

    json_path: str
    column: JsonColumn = None


JSON_TYPES = (JsonSet, JsonInsert, JsonRemove, JsonPathQuery)


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Func:
    """A function call such as ``count("id")`` or ``row_number() OVER "w"``.

    Attributes:
        name: Function name, emitted as given.
        args: Arguments; strings are column references, ``"*"`` is literal,
            everything else goes through value resolution.
        over: Named window or inline window spec.
        distinct: Emit ``name(DISTINCT ...)``.
    """

    name: str
    args: list[Any] = field(default_factory=list)
    over: str | dict[str, Any] | None = None
    distinct: bool = False


def is_op_arg(value: Any) -> bool:
    """Return True for ``{"op": ..., "arg": ...}`` update values."""
    return isinstance(value, dict) and set(value) == {"op", "arg"}
