"""Test fixtures: the sample schema snapshot and a recording adapter."""

from __future__ import annotations

from collections import deque
from contextlib import asynccontextmanager
from typing import Any

from mortarql.adapter.base import QueryResult
from mortarql.schema.snapshot import SchemaSnapshot

_SCHEMA = {
    "tables": [
        {
            "name": "user",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False, "primary_key": True},
                {"name": "name", "nullable": False},
                {"name": "password"},
                {"name": "active", "type": "boolean"},
                {"name": "age", "type": "integer"},
                {"name": "data", "type": "jsonb"},
            ],
            "relations": {
                "profile": {
                    "kind": "has_one",
                    "target": "profile",
                    "primary_key": "id",
                    "foreign_key": "userId",
                },
                "posts": {
                    "kind": "has_many",
                    "target": "post",
                    "primary_key": "id",
                    "foreign_key": "authorId",
                },
                "roles": {
                    "kind": "has_and_belongs_to_many",
                    "target": "role",
                    "primary_key": "id",
                    "foreign_key": "userId",
                    "association_primary_key": "id",
                    "association_foreign_key": "roleId",
                    "join_table": "user_role",
                },
                "comments": {
                    "kind": "has_many",
                    "target": "comment",
                    "through": "posts",
                    "source": "comments",
                },
            },
        },
        {
            "name": "profile",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False, "primary_key": True},
                {"name": "userId", "type": "integer"},
                {"name": "bio"},
            ],
            "relations": {
                "user": {
                    "kind": "belongs_to",
                    "target": "user",
                    "primary_key": "id",
                    "foreign_key": "userId",
                },
            },
        },
        {
            "name": "post",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False, "primary_key": True},
                {"name": "authorId", "type": "integer"},
                {"name": "title"},
            ],
            "relations": {
                "author": {
                    "kind": "belongs_to",
                    "target": "user",
                    "primary_key": "id",
                    "foreign_key": "authorId",
                },
            },
        },
        {
            "name": "role",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False, "primary_key": True},
                {"name": "name"},
            ],
        },
        {
            "name": "user_role",
            "columns": [
                {"name": "userId", "type": "integer"},
                {"name": "roleId", "type": "integer"},
            ],
        },
        {
            "name": "snake",
            "columns": [
                {"name": "id", "type": "integer", "nullable": False, "primary_key": True},
                {"name": "snakeName", "db_name": "snake_name"},
                {"name": "tailLength", "db_name": "tail_length", "type": "integer"},
            ],
        },
    ]
}


def load_schema_snapshot() -> SchemaSnapshot:
    """The sample snapshot: user, profile, post, role and snake tables."""
    return SchemaSnapshot.model_validate(_SCHEMA)


def line(sql: str) -> str:
    """Collapse whitespace so multi-line expectations compare to compiled SQL."""
    return " ".join(sql.split())


class FakeAdapter:
    """Records every statement and replays scripted results in order.

    Unscripted calls return an empty result.  ``fail`` queues an exception
    that the next call raises.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, list[Any]]] = []
        self._results: deque[QueryResult | BaseException] = deque()
        self._in_transaction = False
        self.committed = 0
        self.rolled_back = 0
        self.savepoint_rollbacks = 0
        self.destroyed = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def statements(self) -> list[str]:
        return [text for _, text, _ in self.calls]

    def respond(self, rows: list[Any] | None = None, row_count: int | None = None) -> FakeAdapter:
        rows = list(rows or [])
        self._results.append(
            QueryResult(rows=rows, row_count=len(rows) if row_count is None else row_count)
        )
        return self

    def fail(self, exc: BaseException) -> FakeAdapter:
        self._results.append(exc)
        return self

    async def query(self, text: str, values: list[Any] | None = None) -> QueryResult:
        return self._next("query", text, values)

    async def arrays(self, text: str, values: list[Any] | None = None) -> QueryResult:
        return self._next("arrays", text, values)

    def _next(self, method: str, text: str, values: list[Any] | None) -> QueryResult:
        self.calls.append((method, text, list(values or [])))
        if not self._results:
            return QueryResult()
        result = self._results.popleft()
        if isinstance(result, BaseException):
            raise result
        return result

    @asynccontextmanager
    async def transaction(self):
        if self._in_transaction:
            try:
                yield self
            except BaseException:
                self.savepoint_rollbacks += 1
                raise
            return
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self.rolled_back += 1
            raise
        else:
            self.committed += 1
        finally:
            self._in_transaction = False

    async def destroy(self) -> None:
        self.destroyed = True
