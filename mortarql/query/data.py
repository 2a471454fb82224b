"""The query descriptor: accumulated state of one pending statement.

A :class:`QueryData` is owned by exactly one :class:`~mortarql.query.query.Query`.
Public chain methods clone it before mutating (:meth:`QueryData.clone`), so a
partially built query can be reused as the base of several statements.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Literal, Union

from pydantic import BaseModel, ConfigDict

from mortarql.schema.expressions import Expression, RawSQL
from mortarql.schema.snapshot import ColumnInfo

if TYPE_CHECKING:
    from mortarql.query.hooks import HookCommand

StatementKind = Literal["select", "insert", "update", "delete", "truncate", "copy"]

ReturnType = Literal[
    "all",
    "one",
    "one_or_throw",
    "rows",
    "pluck",
    "value",
    "value_or_throw",
    "row_count",
    "void",
]

#: Return types that fetch at most one row.
SINGLE_ROW_RETURN_TYPES: frozenset[str] = frozenset(
    {"one", "one_or_throw", "value", "value_or_throw"}
)

JOIN_KINDS = frozenset({"JOIN", "INNER JOIN", "LEFT JOIN", "RIGHT JOIN", "FULL JOIN"})

COMPARISON_OPERATORS = frozenset({"=", "!=", "<>", "<", "<=", ">", ">="})


@dataclass(frozen=True)
class JoinCondition:
    """``<left> <op> <right>``; ``left`` belongs to the joined table."""

    left: str
    op: str
    right: str


@dataclass(frozen=True)
class JoinItem:
    """A table joined into a statement.

    Attributes:
        kind: ``JOIN``, ``LEFT JOIN``, ...
        table: Joined table name.
        schema: Optional schema of the joined table.
        alias: Optional alias of the joined table.
        shape: Column metadata of the joined table.
        conditions: ON conditions, AND-ed together.
    """

    kind: str
    table: str
    schema: str | None = None
    alias: str | None = None
    shape: dict[str, ColumnInfo] = field(default_factory=dict)
    conditions: tuple[JoinCondition | Expression, ...] = ()


@dataclass(frozen=True)
class OnConflict:
    """An insert's conflict target and resolution action.

    Attributes:
        action: ``ignore`` (``DO NOTHING``) or ``merge`` (``DO UPDATE``).
        target: Column, column list, raw expression, or ``None`` for any conflict.
        update: For ``merge``: column, column list, partial record, raw
            expression, or ``None`` for every non-target inserted column.
    """

    action: Literal["ignore", "merge"]
    target: str | list[str] | RawSQL | None = None
    update: str | list[str] | dict[str, Any] | RawSQL | None = None


#: Canonical emission order of the COPY ... WITH (...) options.
COPY_OPTION_ORDER: tuple[str, ...] = (
    "format",
    "freeze",
    "delimiter",
    "null",
    "header",
    "quote",
    "escape",
    "force_quote",
    "force_not_null",
    "force_null",
    "encoding",
)


class CopyProgram(BaseModel):
    """``PROGRAM 'command'`` as a COPY source or destination."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    program: str


class CopyOptions(BaseModel):
    """Arguments of a ``COPY`` statement.

    Attributes:
        direction: ``from`` (load into the table) or ``to`` (export).
        source: File path, or :class:`CopyProgram`.
        columns: Column keys to copy; translated through declared names.
        format ... encoding: Options of the ``WITH (...)`` list.  Only the
            ones explicitly supplied are emitted.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    direction: Literal["from", "to"]
    source: Union[str, CopyProgram]
    columns: list[str] | None = None
    format: Literal["text", "csv", "binary"] | None = None
    freeze: bool | None = None
    delimiter: str | None = None
    null: str | None = None
    header: bool | Literal["match"] | None = None
    quote: str | None = None
    escape: str | None = None
    force_quote: list[str] | Literal["*"] | None = None
    force_not_null: list[str] | None = None
    force_null: list[str] | None = None
    encoding: str | None = None


@dataclass
class QueryData:
    """Mutable state of one query-building chain snapshot.

    The value matrix invariant: every row of ``values`` has exactly
    ``len(columns)`` entries, with ``UNDEFINED`` where the source record
    omitted the column.
    """

    table: str
    schema: str | None = None
    alias: str | None = None
    shape: dict[str, ColumnInfo] = field(default_factory=dict)
    kind: StatementKind = "select"
    return_type: ReturnType = "all"

    # SELECT / RETURNING list; None means "not selected".
    select: list[Any] | None = None
    distinct: list[Any] | None = None
    and_: list[Any] = field(default_factory=list)
    or_: list[list[Any]] = field(default_factory=list)
    joins: list[JoinItem] = field(default_factory=list)
    group: list[Any] = field(default_factory=list)
    having: list[Any] = field(default_factory=list)
    window: list[dict[str, Any]] = field(default_factory=list)
    order: list[Any] = field(default_factory=list)
    limit: int | None = None
    offset: int | None = None

    # INSERT
    columns: list[str] = field(default_factory=list)
    values: list[list[Any]] | RawSQL = field(default_factory=list)
    on_conflict: OnConflict | None = None
    defaults: dict[str, Any] | None = None

    # UPDATE
    update_data: list[Any] = field(default_factory=list)

    # TRUNCATE / COPY
    restart_identity: bool = False
    cascade: bool = False
    copy: CopyOptions | None = None

    # Execution
    before: list[HookCommand] = field(default_factory=list)
    after: list[HookCommand] = field(default_factory=list)
    wrap_in_transaction: bool = False

    def clone(self) -> QueryData:
        """Return an independent snapshot; leaf values are shared."""
        return replace(
            self,
            select=list(self.select) if self.select is not None else None,
            distinct=list(self.distinct) if self.distinct is not None else None,
            and_=list(self.and_),
            or_=[list(group) for group in self.or_],
            joins=list(self.joins),
            group=list(self.group),
            having=list(self.having),
            window=list(self.window),
            order=list(self.order),
            columns=list(self.columns),
            values=(
                [list(row) for row in self.values]
                if isinstance(self.values, list)
                else self.values
            ),
            defaults=dict(self.defaults) if self.defaults is not None else None,
            update_data=list(self.update_data),
            before=list(self.before),
            after=list(self.after),
        )

    @property
    def has_where(self) -> bool:
        return bool(self.and_ or self.or_)
