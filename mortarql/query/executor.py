"""Statement executor: runs hook commands, the statement, and shapes results.

Execution order for one call:

1. ``before`` commands, sequentially in queue order;
2. compile and dispatch the statement;
3. ``after`` commands, sequentially, with the fetched rows.

A statement followed by relation hooks is always fetched as dicts; tuple
return types are projected from them afterwards.

When ``wrap_in_transaction`` is set and the adapter is not already inside a
transaction, the whole sequence runs inside ``adapter.transaction()`` and
any failure rolls it back.
"""
from __future__ import annotations

import inspect
import logging
import time
from typing import TYPE_CHECKING, Any

from mortarql.adapter.base import Adapter, QueryResult
from mortarql.compile.builder import SQLBuilder
from mortarql.errors import (
    NotFoundError,
    QueryUsageError,
    RelationResolutionError,
    UnknownRelationError,
)
from mortarql.query import nested
from mortarql.query.hooks import (
    HookCommand,
    ResolveChildren,
    ResolveParents,
    RunCallback,
    UpdateChildren,
    UpdateParent,
)
from mortarql.schema.relations import Relation

if TYPE_CHECKING:
    from mortarql.query.query import Query

logger = logging.getLogger(__name__)

#: Return types fetched as positional rows.
_ARRAY_RETURN_TYPES = frozenset({"rows", "pluck", "value", "value_or_throw"})


class StatementExecutor:
    """Executes queries against their adapter.

    Args:
        builder: SQL builder used to compile statements.
    """

    def __init__(self, builder: SQLBuilder | None = None) -> None:
        self._builder = builder or SQLBuilder()

    async def execute(self, query: Query) -> Any:
        """Run ``query`` and return its result shaped by its return type.

        Raises:
            QueryUsageError: If ``query`` is not bound to an adapter.
            NotFoundError: For throwing single-row return types with no row.
        """
        adapter = query.adapter
        if adapter is None:
            raise QueryUsageError("Query is not bound to an adapter.", table=query.table.name)

        if query.query_data.wrap_in_transaction and not adapter.in_transaction:
            async with adapter.transaction() as tx:
                return await self._run(query.bind(tx))
        return await self._run(query.clone())

    async def _run(self, query: Query) -> Any:
        data = query.query_data
        adapter: Adapter = query.adapter  # type: ignore[assignment]

        for command in data.before:
            await self._before(query, command)

        compiled = self._builder.build(data)
        # Relation hooks read the owning rows by column name.
        keyed_rows = any(isinstance(c, (ResolveChildren, UpdateChildren)) for c in data.after)
        use_arrays = data.return_type in _ARRAY_RETURN_TYPES and not keyed_rows
        started = time.perf_counter()
        if use_arrays:
            result = await adapter.arrays(compiled.text, compiled.values)
        else:
            result = await adapter.query(compiled.text, compiled.values)
        logger.debug(
            "%s [%d values] %.1fms",
            compiled.text,
            len(compiled.values),
            (time.perf_counter() - started) * 1000,
        )

        for command in data.after:
            await self._after(query, command, result.rows)

        return self._shape(query, result)

    # ------------------------------------------------------------------
    # Hook commands
    # ------------------------------------------------------------------

    async def _before(self, query: Query, command: HookCommand) -> None:
        data = query.query_data
        if isinstance(command, ResolveParents):
            relation = self._relation(query, command.relation)
            executor = relation.nested_insert or nested.insert_executor(command.relation, relation)
            inserted = await executor(query, list(command.payloads))
            if len(inserted) != len(command.slots):
                raise RelationResolutionError(
                    command.relation,
                    f"Expected {len(command.slots)} '{command.relation}' record(s), "
                    f"got {len(inserted)}.",
                )
            for (row, column), record in zip(command.slots, inserted):
                data.values[row][column] = record[relation.primary_key]
        elif isinstance(command, UpdateParent):
            relation = self._relation(query, command.relation)
            executor = relation.nested_update or nested.update_executor(command.relation, relation)
            record = await executor(query, command.payload)
            key = record[relation.primary_key] if record is not None else None
            data.update_data.append({relation.foreign_key: key})
        elif isinstance(command, RunCallback):
            await _maybe_await(command.fn(query))
        else:
            raise QueryUsageError(
                f"{type(command).__name__} cannot run before the statement.",
                table=query.table.name,
            )

    async def _after(self, query: Query, command: HookCommand, rows: list[Any]) -> None:
        if isinstance(command, ResolveChildren):
            relation = self._relation(query, command.relation)
            executor = relation.nested_insert or nested.insert_executor(command.relation, relation)
            pairs = []
            for index, payload in command.items:
                if index >= len(rows):
                    raise RelationResolutionError(
                        command.relation,
                        f"Row {index} was not returned; cannot resolve '{command.relation}'.",
                    )
                pairs.append((rows[index], payload))
            await executor(query, pairs)
        elif isinstance(command, UpdateChildren):
            if not rows:
                return
            relation = self._relation(query, command.relation)
            executor = relation.nested_update or nested.update_executor(command.relation, relation)
            await executor(query, rows, command.payload)
        elif isinstance(command, RunCallback):
            await _maybe_await(command.fn(query, rows))
        else:
            raise QueryUsageError(
                f"{type(command).__name__} cannot run after the statement.",
                table=query.table.name,
            )

    @staticmethod
    def _relation(query: Query, name: str) -> Relation:
        try:
            return query.table.relations[name]
        except KeyError:
            raise UnknownRelationError(query.table.name, name) from None

    # ------------------------------------------------------------------
    # Result shaping
    # ------------------------------------------------------------------

    @staticmethod
    def _shape(query: Query, result: QueryResult) -> Any:
        return_type = query.query_data.return_type
        rows = result.rows
        if return_type in _ARRAY_RETURN_TYPES and rows and isinstance(rows[0], dict):
            rows = [tuple(row.values()) for row in rows]

        if return_type in ("all", "rows"):
            return rows
        if return_type == "one":
            return rows[0] if rows else None
        if return_type == "one_or_throw":
            if not rows:
                raise NotFoundError(query.table.name)
            return rows[0]
        if return_type == "pluck":
            return [row[0] for row in rows]
        if return_type == "value":
            return rows[0][0] if rows else None
        if return_type == "value_or_throw":
            if not rows:
                raise NotFoundError(query.table.name)
            return rows[0][0]
        if return_type == "row_count":
            return result.row_count
        return None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value
