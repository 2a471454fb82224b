"""Default nested executors, used when a relation binds none of its own.

``insert_executor`` and ``update_executor`` return a coroutine function with
the signature documented in :mod:`mortarql.schema.relations`.  The ``query``
they receive is the owning statement's query, bound to the adapter (and so
the transaction) the statement runs on; side statements are issued through
``query.sibling(table)``.

Payload keys
------------
insert, belongs-to / has-one:  ``create`` (record), ``connect`` (where)
insert, has-many / habtm:      ``create`` / ``connect`` (lists), ``connect_or_create``
                               (list of ``{"where": ..., "create": ...}``)
update, belongs-to:            ``disconnect`` (handled without a hook), ``set``, ``create``
update, others:                ``disconnect``, ``set``, ``create``
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mortarql.errors import RelationResolutionError
from mortarql.schema.relations import (
    BelongsTo,
    HasAndBelongsToMany,
    HasMany,
    HasOne,
    NestedExecutor,
    Relation,
)

if TYPE_CHECKING:
    from mortarql.query.query import Query

Row = dict[str, Any]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def insert_executor(name: str, relation: Relation) -> NestedExecutor:
    """Return the default nested-insert executor for ``relation``."""
    if isinstance(relation, BelongsTo):
        return _BelongsToWriter(name, relation).insert
    if isinstance(relation, (HasOne, HasMany)):
        return _HasWriter(name, relation).insert
    return _HabtmWriter(name, relation).insert


def update_executor(name: str, relation: Relation) -> NestedExecutor:
    """Return the default nested-update executor for ``relation``."""
    if isinstance(relation, BelongsTo):
        return _BelongsToWriter(name, relation).update
    if isinstance(relation, (HasOne, HasMany)):
        return _HasWriter(name, relation).update
    return _HabtmWriter(name, relation).update


# ---------------------------------------------------------------------------
# belongs-to
# ---------------------------------------------------------------------------


class _BelongsToWriter:
    def __init__(self, name: str, relation: BelongsTo) -> None:
        self.name = name
        self.relation = relation

    async def insert(self, query: Query, payloads: list[dict[str, Any]]) -> list[Row]:
        """Create or find one parent per payload, in payload order."""
        target = query.sibling(self.relation.target).select(self.relation.primary_key)
        resolved: list[Row | None] = [None] * len(payloads)

        creates = [(i, p["create"]) for i, p in enumerate(payloads) if "create" in p]
        if creates:
            rows = await target.insert([record for _, record in creates])
            for (i, _), row in zip(creates, rows):
                resolved[i] = row

        for i, payload in enumerate(payloads):
            if "create" in payload:
                continue
            if "connect" not in payload:
                raise RelationResolutionError(
                    self.name, f"Nested '{self.name}' needs 'create' or 'connect'."
                )
            resolved[i] = await self._connect(target, payload["connect"])
        return resolved  # type: ignore[return-value]

    async def update(self, query: Query, payload: dict[str, Any]) -> Row | None:
        target = query.sibling(self.relation.target).select(self.relation.primary_key)
        if "set" in payload:
            return await self._connect(target, payload["set"])
        if "create" in payload:
            return await target.insert(payload["create"])
        return None

    async def _connect(self, target: Query, where: dict[str, Any]) -> Row:
        row = await target.find_by_optional(where)
        if row is None:
            raise RelationResolutionError(
                self.name,
                f"No '{self.relation.target}' record to connect for '{self.name}'.",
                details={"where": where},
            )
        return row


# ---------------------------------------------------------------------------
# has-one / has-many
# ---------------------------------------------------------------------------


class _HasWriter:
    def __init__(self, name: str, relation: HasOne | HasMany) -> None:
        self.name = name
        self.relation = relation

    async def insert(self, query: Query, items: list[tuple[Row, dict[str, Any]]]) -> None:
        rel = self.relation
        target = query.sibling(rel.target)
        creates: list[Row] = []

        for parent, payload in items:
            key = parent[rel.primary_key]
            for record in _as_list(payload.get("create")):
                creates.append({**record, rel.foreign_key: key})

            wheres = _as_list(payload.get("connect"))
            if wheres:
                count = await target.where({"OR": wheres}).update({rel.foreign_key: key})
                if count < len(wheres):
                    raise RelationResolutionError(
                        self.name,
                        f"Expected to connect {len(wheres)} '{rel.target}' record(s) "
                        f"for '{self.name}', connected {count}.",
                        details={"where": wheres},
                    )

            for item in _as_list(payload.get("connect_or_create")):
                count = await target.where(item["where"]).update({rel.foreign_key: key})
                if count == 0:
                    creates.append({**item["create"], rel.foreign_key: key})

        if creates:
            await target.insert(creates)

    async def update(self, query: Query, parents: list[Row], payload: dict[str, Any]) -> None:
        rel = self.relation
        target = query.sibling(rel.target)
        keys = [parent[rel.primary_key] for parent in parents]
        owned = target.where({rel.foreign_key: {"in": keys}})

        if "disconnect" in payload:
            disconnect = payload["disconnect"]
            if disconnect is not True:
                owned = owned.where({"OR": _as_list(disconnect)})
            await owned.update({rel.foreign_key: None})

        if "set" in payload:
            if len(keys) != 1:
                raise RelationResolutionError(
                    self.name,
                    f"'set' on '{self.name}' needs exactly one updated row, got {len(keys)}.",
                )
            await owned.update({rel.foreign_key: None})
            wheres = _as_list(payload["set"])
            await target.where({"OR": wheres}).update({rel.foreign_key: keys[0]})

        if "create" in payload:
            records = [
                {**record, rel.foreign_key: key}
                for key in keys
                for record in _as_list(payload["create"])
            ]
            if records:
                await target.insert(records)


# ---------------------------------------------------------------------------
# has-and-belongs-to-many
# ---------------------------------------------------------------------------


class _HabtmWriter:
    def __init__(self, name: str, relation: HasAndBelongsToMany) -> None:
        self.name = name
        self.relation = relation

    async def insert(self, query: Query, items: list[tuple[Row, dict[str, Any]]]) -> None:
        rel = self.relation
        target = query.sibling(rel.target).select(rel.association_primary_key)
        links: list[Row] = []

        for parent, payload in items:
            key = parent[rel.primary_key]
            for row in await self._resolve_targets(target, payload):
                links.append(
                    {
                        rel.foreign_key: key,
                        rel.association_foreign_key: row[rel.association_primary_key],
                    }
                )

        if links:
            await query.sibling(rel.join_table).insert(links)

    async def update(self, query: Query, parents: list[Row], payload: dict[str, Any]) -> None:
        rel = self.relation
        join_table = query.sibling(rel.join_table)
        target = query.sibling(rel.target).select(rel.association_primary_key)
        keys = [parent[rel.primary_key] for parent in parents]

        if "disconnect" in payload:
            matching = target.where({"OR": _as_list(payload["disconnect"])})
            await join_table.where(
                {
                    rel.foreign_key: {"in": keys},
                    rel.association_foreign_key: {"in": matching},
                }
            ).delete()

        if "set" in payload:
            await join_table.where({rel.foreign_key: {"in": keys}}).delete()
            rows = await target.where({"OR": _as_list(payload["set"])})
            await self._link(join_table, keys, rows)

        if "create" in payload:
            rows = await target.insert(_as_list(payload["create"]))
            await self._link(join_table, keys, rows)

    async def _resolve_targets(self, target: Query, payload: dict[str, Any]) -> list[Row]:
        rel = self.relation
        rows: list[Row] = []
        creates = _as_list(payload.get("create"))
        if creates:
            rows.extend(await target.insert(creates))

        for where in _as_list(payload.get("connect")):
            row = await target.find_by_optional(where)
            if row is None:
                raise RelationResolutionError(
                    self.name,
                    f"No '{rel.target}' record to connect for '{self.name}'.",
                    details={"where": where},
                )
            rows.append(row)

        for item in _as_list(payload.get("connect_or_create")):
            row = await target.find_by_optional(item["where"])
            if row is None:
                row = await target.insert(item["create"])
            rows.append(row)
        return rows

    async def _link(self, join_table: Query, keys: list[Any], rows: list[Row]) -> None:
        rel = self.relation
        links = [
            {
                rel.foreign_key: key,
                rel.association_foreign_key: row[rel.association_primary_key],
            }
            for key in keys
            for row in rows
        ]
        if links:
            await join_table.insert(links)
