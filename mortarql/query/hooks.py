"""Typed hook commands queued on a descriptor's ``before`` / ``after`` lists.

The mutation orchestrator only *describes* relation work; the
:class:`~mortarql.query.executor.StatementExecutor` interprets the commands
in queue order.  Commands are frozen so that clones of a descriptor can
share them safely.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class ResolveParents:
    """Insert belongs-to parents and write their keys into the value matrix.

    Attributes:
        relation: Relation name on the inserting table.
        slots: ``(row, column)`` positions of the foreign key, one per payload.
        payloads: Nested payloads (``{"create": ...}`` / ``{"connect": ...}``).
    """

    relation: str
    slots: tuple[tuple[int, int], ...]
    payloads: tuple[dict[str, Any], ...]


@dataclass(frozen=True)
class ResolveChildren:
    """Write has-*/habtm children after the owning rows are inserted.

    Attributes:
        relation: Relation name on the inserting table.
        items: ``(row index, payload)`` pairs; the index selects the
            returned row the payload belongs to.
    """

    relation: str
    items: tuple[tuple[int, dict[str, Any]], ...]


@dataclass(frozen=True)
class UpdateParent:
    """Resolve a belongs-to update payload into the foreign key of the SET list."""

    relation: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class UpdateChildren:
    """Apply a has-*/habtm update payload to the updated rows."""

    relation: str
    payload: dict[str, Any]


#: ``fn(query)`` before the statement, ``fn(query, rows)`` after it.
Callback = Callable[..., Union[Awaitable[Any], Any]]


@dataclass(frozen=True)
class RunCallback:
    """A user hook registered with ``before_query`` / ``after_query``."""

    fn: Callback


HookCommand = Union[ResolveParents, ResolveChildren, UpdateParent, UpdateChildren, RunCallback]
