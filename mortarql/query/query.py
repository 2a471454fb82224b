"""The chainable query API.

Every public method clones the query and applies the ``_``-prefixed
in-place variant to the clone, so intermediate queries can be reused::

    db = Db(adapter, snapshot)
    active = db("user").where({"active": True})

    names = await active.pluck("name")
    bob = await active.find_by(name="Bob")
    count = await active.where({"age": {"lt": 18}}).update({"active": False})

A query is awaitable; ``await query`` is the same as
``await query.execute()``.
"""
from __future__ import annotations

from collections.abc import AsyncIterator, Generator
from contextlib import asynccontextmanager
from typing import Any

from mortarql.adapter.base import Adapter
from mortarql.compile.base import CompiledSQL
from mortarql.compile.builder import SQLBuilder
from mortarql.errors import QueryUsageError
from mortarql.query.conflict import ConflictTarget, OnConflictBuilder
from mortarql.query.data import JOIN_KINDS, CopyOptions, JoinCondition, JoinItem, QueryData
from mortarql.query.executor import StatementExecutor
from mortarql.query.hooks import Callback, ResolveChildren, RunCallback, UpdateChildren
from mortarql.query.mutations import InsertData, apply_insert, apply_update
from mortarql.schema.expressions import Expression, RawSQL
from mortarql.schema.relations import returning_key
from mortarql.schema.snapshot import SchemaSnapshot, TableInfo

_builder = SQLBuilder()
_executor = StatementExecutor(_builder)


class Query:
    """A query against one table.

    Args:
        table: Metadata of the target table.
        snapshot: All known tables; used to resolve joined and related tables.
        adapter: Adapter the query executes on.
        data: Descriptor to start from (a fresh one by default).
    """

    def __init__(
        self,
        table: TableInfo,
        snapshot: SchemaSnapshot | None = None,
        adapter: Adapter | None = None,
        data: QueryData | None = None,
    ) -> None:
        self.table = table
        self.snapshot = snapshot
        self.adapter = adapter
        self.query_data = data or QueryData(
            table=table.name, schema=table.schema_name, shape=table.shape
        )

    def __repr__(self) -> str:
        return f"<Query {self.query_data.kind} {self.table.name!r}>"

    def clone(self) -> Query:
        return Query(self.table, self.snapshot, self.adapter, self.query_data.clone())

    def bind(self, adapter: Adapter) -> Query:
        """Return a clone executing on ``adapter``."""
        query = self.clone()
        query.adapter = adapter
        return query

    def sibling(self, table_name: str) -> Query:
        """A fresh query on another table, sharing snapshot and adapter.

        Tables missing from the snapshot (e.g. bare join tables) get an
        empty shape.
        """
        table = self.snapshot.get_table(table_name) if self.snapshot else None
        if table is None:
            table = TableInfo(name=table_name)
        return Query(table, self.snapshot, self.adapter)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def to_sql(self) -> CompiledSQL:
        """Compile without executing."""
        return _builder.build(self.query_data)

    async def execute(self) -> Any:
        return await _executor.execute(self)

    def __await__(self) -> Generator[Any, None, Any]:
        return self.execute().__await__()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, *columns: Any) -> Query:
        return self.clone()._select(*columns)

    def _select(self, *columns: Any) -> Query:
        qd = self.query_data
        qd.select = (qd.select or []) + list(columns)
        return self

    def select_all(self) -> Query:
        return self.clone()._select_all()

    def _select_all(self) -> Query:
        self.query_data.select = ["*"]
        return self

    def distinct(self, *columns: Any) -> Query:
        """``SELECT DISTINCT``, or ``DISTINCT ON (columns)``."""
        return self.clone()._distinct(*columns)

    def _distinct(self, *columns: Any) -> Query:
        qd = self.query_data
        qd.distinct = (qd.distinct or []) + list(columns)
        return self

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def where(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self.clone()._where(*conditions, **columns)

    def _where(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        self.query_data.and_.extend(_conditions(conditions, columns))
        return self

    def or_where(self, *conditions: dict[str, Any] | RawSQL) -> Query:
        """Each argument becomes an alternative: ``... OR (cond)``."""
        return self.clone()._or_where(*conditions)

    def _or_where(self, *conditions: dict[str, Any] | RawSQL) -> Query:
        self.query_data.or_.extend([condition] for condition in conditions)
        return self

    def where_not(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self.clone()._where_not(*conditions, **columns)

    def _where_not(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        self.query_data.and_.append({"NOT": _conditions(conditions, columns)})
        return self

    def find(self, value: Any) -> Query:
        """Single row by primary key; raises ``NotFoundError`` when missing."""
        return self.clone()._find(value)

    def _find(self, value: Any) -> Query:
        return self._where(self._primary_key_condition(value))._take()

    def find_optional(self, value: Any) -> Query:
        return self.clone()._find_optional(value)

    def _find_optional(self, value: Any) -> Query:
        return self._where(self._primary_key_condition(value))._take_optional()

    def find_by(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self.clone()._find_by(*conditions, **columns)

    def _find_by(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self._where(*conditions, **columns)._take()

    def find_by_optional(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self.clone()._find_by_optional(*conditions, **columns)

    def _find_by_optional(self, *conditions: dict[str, Any] | RawSQL, **columns: Any) -> Query:
        return self._where(*conditions, **columns)._take_optional()

    def _primary_key_condition(self, value: Any) -> dict[str, Any] | RawSQL:
        if value is None:
            raise QueryUsageError(
                f"find() on '{self.table.name}' needs a value, got None.",
                table=self.table.name,
            )
        if isinstance(value, RawSQL):
            return value
        keys = self.table.primary_keys
        if len(keys) != 1:
            raise QueryUsageError(
                f"find() needs exactly one primary key column; '{self.table.name}' "
                f"has {len(keys)}.",
                table=self.table.name,
            )
        return {keys[0]: value}

    # ------------------------------------------------------------------
    # Joins
    # ------------------------------------------------------------------

    def join(self, table: str, *on: Any, alias: str | None = None) -> Query:
        """Inner join.

        ``on`` is ``(left, right)``, ``(left, op, right)`` or a single raw
        expression; ``left`` is a column of the joined table.
        """
        return self.clone()._join("JOIN", table, *on, alias=alias)

    def left_join(self, table: str, *on: Any, alias: str | None = None) -> Query:
        return self.clone()._join("LEFT JOIN", table, *on, alias=alias)

    def _join(self, kind: str, table: str, *on: Any, alias: str | None = None) -> Query:
        if kind not in JOIN_KINDS:
            raise QueryUsageError(f"Unknown join kind '{kind}'.", table=self.table.name)
        joined = self.snapshot.get_table(table) if self.snapshot else None

        if len(on) == 1 and isinstance(on[0], Expression):
            conditions: tuple[Any, ...] = (on[0],)
        elif len(on) == 2:
            conditions = (JoinCondition(on[0], "=", on[1]),)
        elif len(on) == 3:
            conditions = (JoinCondition(on[0], on[1], on[2]),)
        else:
            raise QueryUsageError(
                "join() takes (left, right), (left, op, right) or a raw expression.",
                table=self.table.name,
            )

        self.query_data.joins.append(
            JoinItem(
                kind=kind,
                table=table,
                schema=joined.schema_name if joined else None,
                alias=alias,
                shape=joined.shape if joined else {},
                conditions=conditions,
            )
        )
        return self

    # ------------------------------------------------------------------
    # Grouping, windows, ordering, paging
    # ------------------------------------------------------------------

    def group(self, *columns: Any) -> Query:
        return self.clone()._group(*columns)

    def _group(self, *columns: Any) -> Query:
        self.query_data.group.extend(columns)
        return self

    def having(self, *conditions: dict[str, Any] | RawSQL) -> Query:
        return self.clone()._having(*conditions)

    def _having(self, *conditions: dict[str, Any] | RawSQL) -> Query:
        self.query_data.having.extend(conditions)
        return self

    def window(self, **windows: dict[str, Any] | RawSQL) -> Query:
        """Named windows: ``window(w={"partition_by": "dept", "order": {"id": "DESC"}})``."""
        return self.clone()._window(**windows)

    def _window(self, **windows: dict[str, Any] | RawSQL) -> Query:
        self.query_data.window.append(windows)
        return self

    def order(self, *items: Any) -> Query:
        """Columns, ``{column: direction}`` dicts, or raw expressions."""
        return self.clone()._order(*items)

    def _order(self, *items: Any) -> Query:
        self.query_data.order.extend(items)
        return self

    def limit(self, value: int | None) -> Query:
        return self.clone()._limit(value)

    def _limit(self, value: int | None) -> Query:
        self.query_data.limit = value
        return self

    def offset(self, value: int | None) -> Query:
        return self.clone()._offset(value)

    def _offset(self, value: int | None) -> Query:
        self.query_data.offset = value
        return self

    def as_(self, alias: str) -> Query:
        return self.clone()._as(alias)

    def _as(self, alias: str) -> Query:
        self.query_data.alias = alias
        return self

    def with_schema(self, schema: str) -> Query:
        return self.clone()._with_schema(schema)

    def _with_schema(self, schema: str) -> Query:
        self.query_data.schema = schema
        return self

    # ------------------------------------------------------------------
    # Return types
    # ------------------------------------------------------------------

    def all(self) -> Query:
        return self.clone()._all()

    def _all(self) -> Query:
        self.query_data.return_type = "all"
        return self

    def take(self) -> Query:
        """First row; raises ``NotFoundError`` when there is none."""
        return self.clone()._take()

    def _take(self) -> Query:
        self.query_data.return_type = "one_or_throw"
        return self

    def take_optional(self) -> Query:
        return self.clone()._take_optional()

    def _take_optional(self) -> Query:
        self.query_data.return_type = "one"
        return self

    def rows(self) -> Query:
        """Rows as tuples."""
        return self.clone()._rows()

    def _rows(self) -> Query:
        self.query_data.return_type = "rows"
        return self

    def pluck(self, column: Any) -> Query:
        """A list of one column's values."""
        return self.clone()._pluck(column)

    def _pluck(self, column: Any) -> Query:
        self._select_single(column)
        self.query_data.return_type = "pluck"
        return self

    def get(self, column: Any) -> Query:
        """A single value; raises ``NotFoundError`` when there is no row."""
        return self.clone()._get(column)

    def _get(self, column: Any) -> Query:
        self._select_single(column)
        self.query_data.return_type = "value_or_throw"
        return self

    def get_optional(self, column: Any) -> Query:
        return self.clone()._get_optional(column)

    def _get_optional(self, column: Any) -> Query:
        self._select_single(column)
        self.query_data.return_type = "value"
        return self

    def _select_single(self, column: Any) -> None:
        """Select ``column`` first, keeping keys queued relation hooks read back."""
        select = [column]
        for command in self.query_data.after:
            if isinstance(command, (ResolveChildren, UpdateChildren)):
                key = returning_key(self.table.relations[command.relation])
                if key not in select:
                    select.append(key)
        self.query_data.select = select

    def exec(self) -> Query:
        """Run for side effects only; resolves to ``None``."""
        return self.clone()._exec()

    def _exec(self) -> Query:
        self.query_data.return_type = "void"
        return self

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def defaults(self, data: dict[str, Any]) -> Query:
        """Values merged under every record of a following insert."""
        return self.clone()._defaults(data)

    def _defaults(self, data: dict[str, Any]) -> Query:
        self.query_data.defaults = dict(data)
        return self

    def insert(self, data: InsertData) -> Query:
        """Insert one record (or a list of records).

        Resolves to the row count unless columns were selected before, in
        which case it resolves to the row (or the list of rows).
        """
        return self.clone()._insert(data)

    def _insert(self, data: InsertData) -> Query:
        return apply_insert(self, data)

    def create(self, data: InsertData) -> Query:
        """Like :meth:`insert`, returning every column unless selected."""
        return self.clone()._create(data)

    def _create(self, data: InsertData) -> Query:
        if self.query_data.select is None:
            self.query_data.select = ["*"]
        return self._insert(data)

    def update(self, data: dict[str, Any] | RawSQL) -> Query:
        return self.clone()._update(data)

    def _update(self, data: dict[str, Any] | RawSQL) -> Query:
        return apply_update(self, data)

    def increment(self, columns: str | dict[str, Any], by: Any = 1) -> Query:
        """``SET "c" = "c" + $n`` for one column or ``{column: amount}``."""
        return self.clone()._increment(columns, by)

    def _increment(self, columns: str | dict[str, Any], by: Any = 1, op: str = "+") -> Query:
        amounts = {columns: by} if isinstance(columns, str) else columns
        return self._update({key: {"op": op, "arg": value} for key, value in amounts.items()})

    def decrement(self, columns: str | dict[str, Any], by: Any = 1) -> Query:
        return self.clone()._decrement(columns, by)

    def _decrement(self, columns: str | dict[str, Any], by: Any = 1) -> Query:
        return self._increment(columns, by, op="-")

    def delete(self) -> Query:
        """Resolves to the row count unless columns were selected."""
        return self.clone()._delete()

    def _delete(self) -> Query:
        qd = self.query_data
        qd.kind = "delete"
        qd.return_type = "all" if qd.select is not None else "row_count"
        return self

    def truncate(self, *, restart_identity: bool = False, cascade: bool = False) -> Query:
        return self.clone()._truncate(restart_identity=restart_identity, cascade=cascade)

    def _truncate(self, *, restart_identity: bool = False, cascade: bool = False) -> Query:
        qd = self.query_data
        qd.kind = "truncate"
        qd.restart_identity = restart_identity
        qd.cascade = cascade
        qd.return_type = "void"
        return self

    def copy(self, **options: Any) -> Query:
        """``COPY``; keyword arguments are :class:`~mortarql.query.data.CopyOptions`."""
        return self.clone()._copy(**options)

    def _copy(self, **options: Any) -> Query:
        qd = self.query_data
        qd.kind = "copy"
        qd.copy = CopyOptions(**options)
        qd.return_type = "void"
        return self

    def on_conflict(self, target: ConflictTarget = None) -> OnConflictBuilder:
        return OnConflictBuilder(self, target)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def before_query(self, fn: Callback) -> Query:
        """Run ``fn(query)`` before the statement."""
        return self.clone()._before_query(fn)

    def _before_query(self, fn: Callback) -> Query:
        self.query_data.before.append(RunCallback(fn))
        return self

    def after_query(self, fn: Callback) -> Query:
        """Run ``fn(query, rows)`` after the statement."""
        return self.clone()._after_query(fn)

    def _after_query(self, fn: Callback) -> Query:
        self.query_data.after.append(RunCallback(fn))
        return self


def _conditions(conditions: tuple[Any, ...], columns: dict[str, Any]) -> list[Any]:
    items = list(conditions)
    if columns:
        items.append(columns)
    return items


class Db:
    """Entry point: hands out :class:`Query` objects per table.

    Args:
        adapter: Adapter every query executes on.
        snapshot: The tables queries can target.
    """

    def __init__(self, adapter: Adapter | None, snapshot: SchemaSnapshot) -> None:
        self.adapter = adapter
        self.snapshot = snapshot

    def __call__(self, table_name: str) -> Query:
        table = self.snapshot.get_table(table_name)
        if table is None:
            raise QueryUsageError(f"Unknown table '{table_name}'.", table=table_name)
        return Query(table, self.snapshot, self.adapter)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Db]:
        """Yield a ``Db`` whose queries share one transaction."""
        if self.adapter is None:
            raise QueryUsageError("Db has no adapter.")
        async with self.adapter.transaction() as tx:
            yield Db(tx, self.snapshot)

    async def close(self) -> None:
        if self.adapter is not None:
            await self.adapter.destroy()
