"""Unit tests for UPDATE and DELETE compilation."""

from __future__ import annotations

import pytest

from mortarql.compile.builder import SQLBuilder
from mortarql.errors import CompilationError
from mortarql.query.query import Db
from mortarql.schema.expressions import UNDEFINED, JsonInsert, JsonRemove, JsonSet, raw
from tests.fixtures import line

# ---------------------------------------------------------------------------
# UPDATE
# ---------------------------------------------------------------------------


def test_update_set_then_where(db: Db):
    query = db("user").where({"id": 1}).update({"name": "new"})
    sql = query.to_sql()
    assert sql.text == 'UPDATE "user" SET "name" = $1 WHERE "user"."id" = $2'
    assert sql.values == ["new", 1]
    assert query.query_data.return_type == "row_count"


def test_update_returning_selected_columns(db: Db):
    query = db("user").select("id").where({"id": 1}).update({"name": "new"})
    assert query.to_sql().text == line(
        """
        UPDATE "user" SET "name" = $1 WHERE "user"."id" = $2 RETURNING "user"."id"
        """
    )
    assert query.query_data.return_type == "all"


def test_increment_and_decrement(db: Db):
    sql = db("user").where({"id": 1}).increment("age", 3).to_sql()
    assert sql.text == 'UPDATE "user" SET "age" = "age" + $1 WHERE "user"."id" = $2'
    assert sql.values == [3, 1]

    sql = db("snake").decrement({"tailLength": 2}).to_sql()
    assert sql.text == 'UPDATE "snake" SET "tail_length" = "tail_length" - $1'


def test_update_items_accumulate(db: Db):
    sql = db("user").update({"name": "a"}).update({"age": 2}).to_sql()
    assert sql.text == 'UPDATE "user" SET "name" = $1, "age" = $2'


def test_undefined_values_are_skipped(db: Db):
    sql = db("user").update({"name": UNDEFINED, "age": 1}).to_sql()
    assert sql.text == 'UPDATE "user" SET "age" = $1'


def test_empty_set_is_compilation_error(db: Db):
    with pytest.raises(CompilationError) as exc_info:
        db("user").update({"name": UNDEFINED}).to_sql()
    assert exc_info.value.clause == "SET"


def test_raw_update_item(db: Db):
    sql = db("user").update(raw('"age" = "age" * 2')).to_sql()
    assert sql.text == 'UPDATE "user" SET "age" = "age" * 2'


def test_json_set_and_insert(db: Db):
    sql = db("user").update({"data": JsonSet(["a", "b"], value=1)}).to_sql()
    assert sql.text == 'UPDATE "user" SET "data" = jsonb_set("user"."data", $1, $2)'
    assert sql.values == [["a", "b"], "1"]

    sql = db("user").update(
        {"data": JsonInsert(["tags", 0], value="x", insert_after=True)}
    ).to_sql()
    assert sql.text == 'UPDATE "user" SET "data" = jsonb_insert("user"."data", $1, $2, true)'
    assert sql.values == [["tags", "0"], '"x"']


def test_json_operations_nest(db: Db):
    value = JsonSet(["a"], value=1, create_if_missing=False, column=JsonRemove(["b"]))
    sql = db("user").update({"data": value}).to_sql()
    assert sql.text == line(
        """
        UPDATE "user" SET "data" = jsonb_set(("user"."data" #- $1), $2, $3, false)
        """
    )
    assert sql.values == [["b"], ["a"], "1"]


def test_subquery_update_value(db: Db):
    bio = db("profile").select("bio").where({"id": 5}).take()
    sql = db("user").update({"name": bio}).to_sql()
    assert sql.text == line(
        """
        UPDATE "user" SET "name" =
        (SELECT "profile"."bio" FROM "profile" WHERE "profile"."id" = $1 LIMIT 1)
        """
    )
    assert sql.values == [5]


def test_deferred_update_items_are_processed_last(db: Db):
    query = db("user").update({"name": "a"})
    data = query.query_data
    data.update_data.insert(0, lambda items: {"age": len(items)})
    sql = SQLBuilder().build(data)
    assert sql.text == 'UPDATE "user" SET "name" = $1, "age" = $2'
    assert sql.values == ["a", 2]


def test_update_with_alias(db: Db):
    sql = db("user").as_("u").where({"id": 1}).update({"name": "x"}).to_sql()
    assert sql.text == 'UPDATE "user" AS "u" SET "name" = $1 WHERE "u"."id" = $2'


# ---------------------------------------------------------------------------
# DELETE
# ---------------------------------------------------------------------------


def test_delete_all(db: Db):
    query = db("user").delete()
    assert query.to_sql().text == 'DELETE FROM "user"'
    assert query.query_data.return_type == "row_count"


def test_delete_returning_star(db: Db):
    assert db("user").select_all().delete().to_sql().text == 'DELETE FROM "user" RETURNING *'


def test_delete_returning_columns(db: Db):
    sql = db("user").select("id", "name").delete().to_sql()
    assert sql.text == 'DELETE FROM "user" RETURNING "user"."id", "user"."name"'


def test_delete_using_join(db: Db):
    sql = (
        db("user")
        .select_all()
        .join("profile", "profile.userId", "=", "user.id")
        .where({"id": 1})
        .delete()
        .to_sql()
    )
    assert sql.text == line(
        """
        DELETE FROM "user" USING "profile"
        WHERE "user"."id" = $1 AND "profile"."userId" = "user"."id"
        RETURNING "user".*
        """
    )
    assert sql.values == [1]


def test_delete_using_join_parenthesises_or_groups(db: Db):
    sql = (
        db("user")
        .join("profile", "userId", "user.id")
        .where({"id": 1})
        .or_where({"name": "a"})
        .delete()
        .to_sql()
    )
    assert sql.text == line(
        """
        DELETE FROM "user" USING "profile"
        WHERE (("user"."id" = $1) OR ("user"."name" = $2))
        AND "profile"."userId" = "user"."id"
        """
    )
