"""Unit tests for mortarql.schema.converters.schema_from_sqlalchemy."""

from __future__ import annotations

import pytest
from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine

from mortarql.query.query import Db
from mortarql.schema.converters import schema_from_sqlalchemy
from mortarql.schema.relations import BelongsTo, HasMany
from mortarql.schema.snapshot import SchemaSnapshot

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _blog_metadata() -> MetaData:
    """users ← posts (author and editor) ← comments."""
    metadata = MetaData()
    Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(100), nullable=False),
        Column("active", Boolean),
    )
    Table(
        "posts",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("author_id", Integer, ForeignKey("users.id"), nullable=False),
        Column("editor_id", Integer, ForeignKey("users.id")),
        Column("title", Text),
    )
    Table(
        "comments",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("posts", Integer, ForeignKey("posts.id")),
        Column("body", Text),
    )
    return metadata


def _make_engine() -> Engine:
    engine = create_engine("sqlite:///:memory:")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE owners (id INTEGER PRIMARY KEY, name TEXT NOT NULL)"))
        conn.execute(
            text(
                """
                CREATE TABLE pets (
                    id       INTEGER PRIMARY KEY,
                    owner_id INTEGER REFERENCES owners(id),
                    name     TEXT
                )
                """
            )
        )
        conn.execute(text("CREATE TABLE audit (id INTEGER PRIMARY KEY)"))
    return engine


@pytest.fixture(scope="module")
def blog() -> SchemaSnapshot:
    return schema_from_sqlalchemy(_blog_metadata())


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


def test_tables_and_columns(blog: SchemaSnapshot):
    assert set(blog.table_names) == {"users", "posts", "comments"}
    users = blog.get_table("users")
    assert users.column_names == ["id", "name", "active"]
    assert users.primary_keys == ["id"]


def test_nullability_and_types(blog: SchemaSnapshot):
    assert blog.get_column("users", "name").nullable is False
    assert blog.get_column("users", "active").nullable is True
    assert blog.get_column("posts", "author_id").type == "INTEGER"


# ---------------------------------------------------------------------------
# Relations
# ---------------------------------------------------------------------------


def test_belongs_to_named_after_foreign_key_column(blog: SchemaSnapshot):
    relations = blog.get_table("posts").relations
    assert relations["author"] == BelongsTo(
        target="users", primary_key="id", foreign_key="author_id"
    )
    assert relations["editor"].foreign_key == "editor_id"


def test_has_many_named_after_child_with_collisions_suffixed(blog: SchemaSnapshot):
    relations = blog.get_table("users").relations
    assert isinstance(relations["posts"], HasMany)
    assert relations["posts"].foreign_key == "author_id"
    assert relations["posts__editor_id"].foreign_key == "editor_id"


def test_relation_colliding_with_column_is_suffixed(blog: SchemaSnapshot):
    comments = blog.get_table("comments").relations
    assert "posts" not in comments
    assert comments["posts__posts"].foreign_key == "posts"
    assert blog.get_table("posts").relations["comments"].target == "comments"


def test_snapshot_drives_queries(blog: SchemaSnapshot):
    sql = Db(None, blog)("posts").insert(
        {"title": "t", "author": {"connect": {"name": "a"}}}
    ).to_sql()
    assert sql.text == 'INSERT INTO "posts"("title", "author_id") VALUES ($1, DEFAULT)'


# ---------------------------------------------------------------------------
# Reflection
# ---------------------------------------------------------------------------


def test_reflects_engine():
    snapshot = schema_from_sqlalchemy(_make_engine())
    assert set(snapshot.table_names) == {"owners", "pets", "audit"}
    assert snapshot.get_table("pets").relations["owner"].target == "owners"
    assert snapshot.get_table("owners").relations["pets"].foreign_key == "owner_id"


def test_reflects_only_included_tables():
    snapshot = schema_from_sqlalchemy(_make_engine(), include_tables=["audit"])
    assert snapshot.table_names == ["audit"]
