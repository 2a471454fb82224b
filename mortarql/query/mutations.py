"""Nested-relation mutation orchestrator.

``apply_insert`` and ``apply_update`` turn a payload that mixes plain
columns with relation payloads into one descriptor plus queued hook
commands:

* belongs-to payloads resolve *before* the statement
  (:class:`~mortarql.query.hooks.ResolveParents` /
  :class:`~mortarql.query.hooks.UpdateParent`); the resolved keys are
  written into the pending statement;
* has-one, has-many and has-and-belongs-to-many payloads resolve *after* it
  (:class:`~mortarql.query.hooks.ResolveChildren` /
  :class:`~mortarql.query.hooks.UpdateChildren`) and need the owning rows'
  keys back from ``RETURNING``.

Any queued relation work sets ``wrap_in_transaction``.  Both functions
mutate the query they receive; callers clone first.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mortarql.errors import QueryUsageError
from mortarql.query.hooks import ResolveChildren, ResolveParents, UpdateChildren, UpdateParent
from mortarql.schema.expressions import UNDEFINED, RawSQL
from mortarql.schema.relations import BelongsTo, Relation, classify_relation, returning_key

if TYPE_CHECKING:
    from mortarql.query.query import Query

InsertData = dict[str, Any] | list[dict[str, Any]]


def apply_insert(query: Query, data: InsertData) -> Query:
    """Turn ``query`` into an insert of ``data``.

    Args:
        query: The query to mutate.
        data: One record, a list of records, or
            ``{"columns": [...], "values": RawSQL(...)}``.

    Returns:
        ``query``.

    Raises:
        QueryUsageError: For an empty batch, or a nested write through an
            indirect relation.
    """
    qd = query.query_data
    relations = query.table.relations
    caller_selected = qd.select is not None

    qd.and_ = []
    qd.or_ = []

    prepend: dict[str, list[tuple[int, int, dict[str, Any]]]] = {}
    append: dict[str, list[tuple[int, dict[str, Any]]]] = {}
    required: list[str] = []

    if isinstance(data, dict) and isinstance(data.get("values"), RawSQL):
        columns = list(data.get("columns", []))
        values: list[list[Any]] | RawSQL = data["values"]
        many = True
    else:
        many = isinstance(data, list)
        records = list(data) if many else [data]
        if not records:
            raise QueryUsageError("Cannot insert an empty list of records.", table=qd.table)
        if qd.defaults:
            records = [{**qd.defaults, **record} for record in records]

        columns = []
        slots: dict[str, int] = {}
        for row_index, record in enumerate(records):
            for key, value in record.items():
                relation = relations.get(key)
                if relation is None:
                    if key not in slots:
                        slots[key] = len(columns)
                        columns.append(key)
                    continue

                if classify_relation(relation) == "prepend":
                    fk = relation.foreign_key
                    if fk not in slots:
                        slots[fk] = len(columns)
                        columns.append(fk)
                    prepend.setdefault(key, []).append((row_index, slots[fk], value))
                else:
                    _check_direct(query, key, relation)
                    pk = returning_key(relation)
                    if pk not in required:
                        required.append(pk)
                    append.setdefault(key, []).append((row_index, value))

        values = [
            [record.get(column, UNDEFINED) for column in columns] for record in records
        ]

    for name, items in prepend.items():
        qd.before.append(
            ResolveParents(
                relation=name,
                slots=tuple((row, col) for row, col, _ in items),
                payloads=tuple(payload for _, _, payload in items),
            )
        )

    for name, items in append.items():
        qd.after.append(ResolveChildren(relation=name, items=tuple(items)))
    if append:
        _widen_returning(query, required)

    qd.kind = "insert"
    qd.columns = columns
    qd.values = values
    if prepend or append:
        qd.wrap_in_transaction = True

    if caller_selected:
        qd.return_type = "all" if many else "one"
    else:
        qd.return_type = "row_count"
    return query


def apply_update(query: Query, data: dict[str, Any] | RawSQL) -> Query:
    """Turn ``query`` into an update with ``data`` appended to its SET list.

    A belongs-to ``{"disconnect": True}`` payload is written as ``fk = NULL``
    directly; ``set`` and ``create`` are resolved before the statement.
    Payloads of other relations run against the updated rows afterwards.

    Raises:
        QueryUsageError: For a nested write through an indirect relation.
    """
    qd = query.query_data
    relations = query.table.relations
    caller_selected = qd.select is not None
    queued = False

    if isinstance(data, RawSQL):
        qd.update_data.append(data)
    else:
        plain: dict[str, Any] = {}
        required: list[str] = []
        for key, value in data.items():
            relation = relations.get(key)
            if relation is None:
                plain[key] = value
            elif isinstance(relation, BelongsTo):
                if value.get("disconnect"):
                    plain[relation.foreign_key] = None
                else:
                    qd.before.append(UpdateParent(relation=key, payload=value))
                    queued = True
            else:
                _check_direct(query, key, relation)
                pk = returning_key(relation)
                if pk not in required:
                    required.append(pk)
                qd.after.append(UpdateChildren(relation=key, payload=value))
                queued = True
        if plain:
            qd.update_data.append(plain)
        if required:
            _widen_returning(query, required)

    qd.kind = "update"
    if queued:
        qd.wrap_in_transaction = True
    qd.return_type = "all" if caller_selected else "row_count"
    return query


def _check_direct(query: Query, name: str, relation: Relation) -> None:
    if getattr(relation, "is_through", False):
        raise QueryUsageError(
            f"Relation '{name}' goes through '{relation.through}'; "
            "nested writes need a direct relation.",
            table=query.table.name,
        )


def _widen_returning(query: Query, required: list[str]) -> None:
    """Add ``required`` columns to RETURNING unless all columns are returned."""
    qd = query.query_data
    if qd.select is None:
        qd.select = list(required)
    elif "*" not in qd.select:
        qd.select = qd.select + [c for c in required if c not in qd.select]
