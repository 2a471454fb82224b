"""Relation descriptors: a closed tagged variant over the four relation kinds.

The variant set is fixed.  Pydantic parses raw dicts into the right model
through the ``kind`` discriminator, and every consumer dispatches through
:func:`classify_relation` instead of relying on per-class behaviour::

    from mortarql.schema.relations import BelongsTo, HasMany

    author = BelongsTo(target="user", primary_key="id", foreign_key="author_id")
    posts = HasMany(target="post", primary_key="id", foreign_key="author_id")

Nested executors
----------------
Each relation may bind its own ``nested_insert`` / ``nested_update``
coroutine functions.  When they are left unset the defaults from
:mod:`mortarql.query.nested` are used.  Signatures by variant:

* belongs-to insert: ``(query, payloads) -> list[row]`` (one row per payload,
  carrying the relation's ``primary_key``)
* other inserts: ``(query, [(parent_row, payload), ...]) -> None``
* belongs-to update: ``(query, payload) -> row | None``
* other updates: ``(query, parent_rows, payload) -> None``
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mortarql.errors import CompilationError

#: A nested executor coroutine function.
NestedExecutor = Callable[..., Awaitable[Any]]

_FORBID = ConfigDict(extra="forbid", frozen=True)


class BelongsTo(BaseModel):
    """The foreign key lives on the owning row and points at ``target``.

    Attributes:
        target: Name of the referenced table.
        primary_key: Referenced column on ``target``.
        foreign_key: Column on the owning table holding the reference.
    """

    model_config = _FORBID

    kind: Literal["belongs_to"] = "belongs_to"
    target: str
    primary_key: str
    foreign_key: str
    nested_insert: NestedExecutor | None = None
    nested_update: NestedExecutor | None = None


class _OwnedRelation(BaseModel):
    """Shared fields of has-one and has-many.

    Either ``primary_key``/``foreign_key`` (the related row carries the
    foreign key) or ``through``/``source`` (resolved via another relation)
    must be given.
    """

    model_config = _FORBID

    target: str
    primary_key: str | None = None
    foreign_key: str | None = None
    through: str | None = None
    source: str | None = None
    nested_insert: NestedExecutor | None = None
    nested_update: NestedExecutor | None = None

    @model_validator(mode="after")
    def _check_keys(self) -> _OwnedRelation:
        direct = self.primary_key is not None and self.foreign_key is not None
        indirect = self.through is not None and self.source is not None
        if direct == indirect:
            raise ValueError(
                "Provide either primary_key and foreign_key, or through and source."
            )
        return self

    @property
    def is_through(self) -> bool:
        return self.through is not None


class HasOne(_OwnedRelation):
    """A single related row carries the foreign key back to the owner."""

    kind: Literal["has_one"] = "has_one"


class HasMany(_OwnedRelation):
    """Many related rows carry the foreign key back to the owner."""

    kind: Literal["has_many"] = "has_many"


class HasAndBelongsToMany(BaseModel):
    """Many-to-many relation through ``join_table``.

    Attributes:
        primary_key: Column on the owning table.
        foreign_key: Column on ``join_table`` referencing the owner.
        association_primary_key: Column on ``target``.
        association_foreign_key: Column on ``join_table`` referencing ``target``.
        join_table: Name of the join table.
    """

    model_config = _FORBID

    kind: Literal["has_and_belongs_to_many"] = "has_and_belongs_to_many"
    target: str
    primary_key: str
    foreign_key: str
    association_primary_key: str
    association_foreign_key: str
    join_table: str
    nested_insert: NestedExecutor | None = None
    nested_update: NestedExecutor | None = None


Relation = Annotated[
    Union[BelongsTo, HasOne, HasMany, HasAndBelongsToMany],
    Field(discriminator="kind"),
]

#: When a relation's side statements run relative to the main statement.
RelationPhase = Literal["prepend", "append"]


def classify_relation(relation: Relation) -> RelationPhase:
    """Return whether ``relation`` resolves before or after the owning row.

    belongs-to payloads must be written first because the foreign key lives
    on the owning row; every other variant needs the owning row's key and
    therefore runs afterwards.
    """
    if isinstance(relation, BelongsTo):
        return "prepend"
    if isinstance(relation, (HasOne, HasMany, HasAndBelongsToMany)):
        return "append"
    raise CompilationError(f"Unknown relation variant: {type(relation).__name__}")


def returning_key(relation: Relation) -> str:
    """Column of the owning row an append relation needs back from RETURNING."""
    if isinstance(relation, HasAndBelongsToMany):
        return relation.primary_key
    if isinstance(relation, (HasOne, HasMany)):
        if relation.primary_key is None:
            raise CompilationError(
                f"Relation through '{relation.through}' has no direct key to return."
            )
        return relation.primary_key
    raise CompilationError(
        f"Relation variant {type(relation).__name__} does not resolve after the statement."
    )
