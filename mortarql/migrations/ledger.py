"""Migration version ledger.

Applied migration versions are single-column rows of one table.  The table
is created on first use: when loading the applied set fails because the
table does not exist (SQLSTATE ``42P01``), the ledger creates it and reports
nothing applied.  The probing SELECT runs in its own transaction, a savepoint
when the adapter is already inside one.
"""
from __future__ import annotations

import logging

from mortarql.adapter.base import Adapter
from mortarql.compile.postgres import PostgresCompiler
from mortarql.config import AdapterConfig
from mortarql.errors import UNDEFINED_TABLE, sqlstate_of

logger = logging.getLogger(__name__)


class MigrationLedger:
    """Records which migration versions have been applied.

    Args:
        adapter: Adapter the ledger statements run on.
        table: Name of the ledger table.
        schema: Optional schema of the ledger table.
    """

    def __init__(
        self,
        adapter: Adapter,
        table: str = "schemaMigrations",
        schema: str | None = None,
    ) -> None:
        self._adapter = adapter
        self._quoted = PostgresCompiler().quote_table(table, schema)
        self._bootstrapped = False

    @classmethod
    def from_config(cls, adapter: Adapter, config: AdapterConfig) -> MigrationLedger:
        return cls(adapter, table=config.migrations_table, schema=config.schema_name)

    async def record(self, version: str) -> None:
        """Mark ``version`` as applied."""
        await self._adapter.arrays(f"INSERT INTO {self._quoted} VALUES ($1)", [version])

    async def unrecord(self, version: str) -> None:
        """Forget ``version``; a no-op when it was never recorded."""
        await self._adapter.arrays(f"DELETE FROM {self._quoted} WHERE version = $1", [version])

    async def load_applied(self) -> dict[str, bool]:
        """Return ``{version: True}`` for every applied version.

        Raises:
            Exception: Any driver error other than a missing ledger table,
                and a missing table once the ledger has already created it.
        """
        try:
            async with self._adapter.transaction() as tx:
                result = await tx.arrays(f"SELECT * FROM {self._quoted}")
        except Exception as exc:
            if sqlstate_of(exc) != UNDEFINED_TABLE or self._bootstrapped:
                raise
            await self._create_table()
            return {}
        return {row[0]: True for row in result.rows}

    async def _create_table(self) -> None:
        self._bootstrapped = True
        logger.warning("Migration ledger %s does not exist, creating it", self._quoted)
        await self._adapter.query(f"CREATE TABLE {self._quoted} ( version TEXT NOT NULL )")
