"""The adapter contract the executor and the migration ledger consume."""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class QueryResult:
    """Rows returned by one statement.

    Attributes:
        rows: Dicts from :meth:`Adapter.query`, tuples from :meth:`Adapter.arrays`.
        row_count: Rows affected (or returned) as reported by the driver.
    """

    rows: list[Any] = field(default_factory=list)
    row_count: int = 0


@runtime_checkable
class Adapter(Protocol):
    """Executes SQL text with positional ``$n`` values.

    Every call obtains a connection, executes, and releases the connection
    regardless of outcome.  A transaction-bound adapter keeps one
    connection for its lifetime and reports ``in_transaction``.
    """

    @property
    def in_transaction(self) -> bool:
        """Whether calls already run inside a transaction."""
        ...

    async def query(self, text: str, values: list[Any] | None = None) -> QueryResult:
        """Execute ``text``; rows as dicts keyed by column name."""
        ...

    async def arrays(self, text: str, values: list[Any] | None = None) -> QueryResult:
        """Execute ``text``; rows as positional tuples."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[Adapter]:
        """Open a transaction and yield an adapter bound to it."""
        ...

    async def destroy(self) -> None:
        """Release every pooled connection."""
        ...
