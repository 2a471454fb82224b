"""PostgreSQL adapter over psycopg 3.

Statements are sent through :class:`psycopg.AsyncRawCursor`, so the ``$n``
placeholders produced by the compiler reach the server unchanged.
Connections come from a :class:`psycopg_pool.AsyncConnectionPool`; each
call borrows one and gives it back when it finishes, committing on success
and rolling back on error.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from psycopg import AsyncConnection, AsyncRawCursor
from psycopg.rows import RowFactory, dict_row, tuple_row
from psycopg.types.json import JsonbDumper
from psycopg_pool import AsyncConnectionPool

from mortarql.adapter.base import QueryResult
from mortarql.config import AdapterConfig

logger = logging.getLogger(__name__)


async def _execute(
    conn: AsyncConnection,
    text: str,
    values: list[Any] | None,
    row_factory: RowFactory[Any],
) -> QueryResult:
    async with AsyncRawCursor(conn, row_factory=row_factory) as cur:
        await cur.execute(text, values or None)
        rows = await cur.fetchall() if cur.description is not None else []
        return QueryResult(rows=list(rows), row_count=max(cur.rowcount, 0))


async def _configure(conn: AsyncConnection) -> None:
    # Plain dicts are sent as jsonb.
    conn.adapters.register_dumper(dict, JsonbDumper)


class PostgresAdapter:
    """Pooled PostgreSQL adapter.

    Args:
        config: Pool settings; defaults to :meth:`AdapterConfig.from_env`.

    Usage::

        adapter = PostgresAdapter(AdapterConfig(database_url=dsn))
        await adapter.open()
        try:
            result = await adapter.query('SELECT * FROM "user" WHERE "id" = $1', [1])
        finally:
            await adapter.destroy()
    """

    def __init__(self, config: AdapterConfig | None = None) -> None:
        self.config = config or AdapterConfig.from_env()
        self._pool = AsyncConnectionPool(
            self.config.database_url,
            min_size=self.config.min_size,
            max_size=self.config.max_size,
            timeout=self.config.timeout,
            kwargs={"application_name": self.config.application_name},
            configure=_configure,
            open=False,
        )
        self._opened = False

    @property
    def in_transaction(self) -> bool:
        return False

    async def open(self) -> None:
        """Open the pool; called implicitly by the first statement."""
        if self._opened:
            return
        await self._pool.open()
        self._opened = True
        logger.info(
            "Opened connection pool (min_size=%d, max_size=%d)",
            self.config.min_size,
            self.config.max_size,
        )

    async def query(self, text: str, values: list[Any] | None = None) -> QueryResult:
        await self.open()
        async with self._pool.connection() as conn:
            return await _execute(conn, text, values, dict_row)

    async def arrays(self, text: str, values: list[Any] | None = None) -> QueryResult:
        await self.open()
        async with self._pool.connection() as conn:
            return await _execute(conn, text, values, tuple_row)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionAdapter]:
        await self.open()
        async with self._pool.connection() as conn:
            async with conn.transaction():
                logger.debug("BEGIN")
                yield TransactionAdapter(conn)
        logger.debug("COMMIT")

    async def destroy(self) -> None:
        if not self._opened:
            return
        await self._pool.close()
        self._opened = False
        logger.info("Closed connection pool")

    async def __aenter__(self) -> PostgresAdapter:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.destroy()


class TransactionAdapter:
    """Adapter bound to one connection inside an open transaction.

    Nested :meth:`transaction` calls open a savepoint on the same
    connection and yield the same adapter; a failure inside rolls back to
    the savepoint and leaves the enclosing transaction usable.
    """

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    @property
    def in_transaction(self) -> bool:
        return True

    async def query(self, text: str, values: list[Any] | None = None) -> QueryResult:
        return await _execute(self._conn, text, values, dict_row)

    async def arrays(self, text: str, values: list[Any] | None = None) -> QueryResult:
        return await _execute(self._conn, text, values, tuple_row)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[TransactionAdapter]:
        async with self._conn.transaction():
            yield self

    async def destroy(self) -> None:
        """The connection belongs to the pool; nothing to release here."""
