"""Execution through the recording adapter: return shapes, hooks, transactions."""

from __future__ import annotations

import logging

import pytest

from mortarql.errors import NotFoundError, QueryUsageError
from mortarql.query.query import Db
from tests.fixtures import FakeAdapter


@pytest.mark.asyncio
async def test_all_returns_row_dicts(db: Db, adapter: FakeAdapter):
    adapter.respond([{"id": 1}, {"id": 2}])
    assert await db("user") == [{"id": 1}, {"id": 2}]
    assert adapter.calls[0][0] == "query"


@pytest.mark.asyncio
async def test_rows_use_positional_results(db: Db, adapter: FakeAdapter):
    adapter.respond([(1, "a")])
    assert await db("user").select("id", "name").rows() == [(1, "a")]
    assert adapter.calls[0][0] == "arrays"


@pytest.mark.asyncio
async def test_pluck(db: Db, adapter: FakeAdapter):
    adapter.respond([("a",), ("b",)])
    assert await db("user").pluck("name") == ["a", "b"]
    assert adapter.statements == ['SELECT "user"."name" FROM "user"']


@pytest.mark.asyncio
async def test_get_returns_first_value(db: Db, adapter: FakeAdapter):
    adapter.respond([(42,)])
    assert await db("user").where({"id": 1}).get("age") == 42
    assert adapter.statements == [
        'SELECT "user"."age" FROM "user" WHERE "user"."id" = $1 LIMIT 1'
    ]


@pytest.mark.asyncio
async def test_get_without_row_raises(db: Db):
    with pytest.raises(NotFoundError) as exc_info:
        await db("user").get("age")
    assert exc_info.value.table == "user"


@pytest.mark.asyncio
async def test_get_optional_without_row_is_none(db: Db):
    assert await db("user").get_optional("age") is None


@pytest.mark.asyncio
async def test_take_without_row_raises(db: Db):
    with pytest.raises(NotFoundError):
        await db("user").find(1)


@pytest.mark.asyncio
async def test_take_optional(db: Db, adapter: FakeAdapter):
    assert await db("user").take_optional() is None
    adapter.respond([{"id": 1}])
    assert await db("user").take_optional() == {"id": 1}


@pytest.mark.asyncio
async def test_row_count_and_void(db: Db, adapter: FakeAdapter):
    adapter.respond(row_count=3)
    assert await db("user").where({"active": False}).delete() == 3
    assert await db("user").truncate() is None
    assert await db("user").exec() is None


@pytest.mark.asyncio
async def test_unbound_query_is_usage_error(snapshot):
    with pytest.raises(QueryUsageError):
        await Db(None, snapshot)("user")


@pytest.mark.asyncio
async def test_callbacks_run_around_the_statement(db: Db, adapter: FakeAdapter):
    seen = []

    async def before(query):
        seen.append(("before", query.table.name))

    def after(query, rows):
        seen.append(("after", rows))

    adapter.respond([{"id": 1}])
    await db("user").before_query(before).after_query(after)
    assert seen == [("before", "user"), ("after", [{"id": 1}])]


@pytest.mark.asyncio
async def test_callbacks_do_not_open_a_transaction(db: Db, adapter: FakeAdapter):
    await db("user").after_query(lambda query, rows: None)
    assert adapter.committed == 0


@pytest.mark.asyncio
async def test_db_transaction_shares_one_transaction(db: Db, adapter: FakeAdapter):
    adapter.respond([{"id": 1}])
    async with db.transaction() as tx:
        assert tx.adapter.in_transaction
        await tx("user").insert({"name": "a", "profile": {"create": {"bio": "b"}}})
    assert adapter.committed == 1
    assert len(adapter.calls) == 2


@pytest.mark.asyncio
async def test_statements_are_logged_at_debug(db: Db, caplog):
    with caplog.at_level(logging.DEBUG, logger="mortarql.query.executor"):
        await db("user").where({"id": 1})
    assert 'SELECT * FROM "user" WHERE "user"."id" = $1 [1 values]' in caplog.text


@pytest.mark.asyncio
async def test_close_destroys_the_adapter(db: Db, adapter: FakeAdapter):
    await db.close()
    assert adapter.destroyed
