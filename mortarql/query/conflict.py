"""Two-phase ``ON CONFLICT`` builder."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mortarql.errors import QueryUsageError
from mortarql.query.data import OnConflict
from mortarql.schema.expressions import RawSQL

if TYPE_CHECKING:
    from mortarql.query.query import Query

ConflictTarget = str | list[str] | RawSQL | None


class OnConflictBuilder:
    """Captures a conflict target, then finalises the action.

    Returned by :meth:`Query.on_conflict`::

        await db("user").insert(data).on_conflict("email").merge()
        await db("user").insert(data).on_conflict().ignore()

    Args:
        query: The pending insert.
        target: Column, column list, raw expression, or ``None`` for any
            conflict.

    Raises:
        QueryUsageError: If ``query`` is not an insert.
    """

    def __init__(self, query: Query, target: ConflictTarget = None) -> None:
        if query.query_data.kind != "insert":
            raise QueryUsageError(
                "on_conflict is only available on insert queries.",
                table=query.table.name,
            )
        self._query = query
        self._target = target

    def ignore(self) -> Query:
        """``ON CONFLICT ... DO NOTHING``."""
        return self._finish(OnConflict(action="ignore", target=self._target))

    def merge(self, update: str | list[str] | dict[str, Any] | RawSQL | None = None) -> Query:
        """``ON CONFLICT ... DO UPDATE SET ...``.

        Args:
            update: Column or columns to take from ``excluded``, a partial
                record of explicit values, or a raw expression.  When
                omitted, every inserted column except the target columns is
                taken from ``excluded``.

        Raises:
            QueryUsageError: If no target was given and none of the inserted
                columns is a primary key to infer it from.
        """
        target = self._target
        if target is None:
            target = self._inferred_target()
        return self._finish(OnConflict(action="merge", target=target, update=update))

    def _inferred_target(self) -> list[str]:
        # DO UPDATE requires an inference target.
        columns = self._query.query_data.columns or []
        target = [pk for pk in self._query.table.primary_keys if pk in columns]
        if not target:
            raise QueryUsageError(
                "merge needs a conflict target; none of the inserted columns is a primary key.",
                table=self._query.table.name,
            )
        return target

    def _finish(self, on_conflict: OnConflict) -> Query:
        query = self._query.clone()
        query.query_data.on_conflict = on_conflict
        return query
