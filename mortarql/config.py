"""Adapter and ledger configuration.

Settings are a plain pydantic model; :meth:`AdapterConfig.from_env` fills it
from ``MORTARQL_*`` environment variables::

    MORTARQL_DATABASE_URL=postgresql://localhost/app
    MORTARQL_MAX_SIZE=20
"""
from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "MORTARQL_"


class AdapterConfig(BaseModel):
    """Connection pool and migration ledger settings.

    Attributes:
        database_url: libpq connection string or URL.
        min_size: Connections kept open by the pool.
        max_size: Upper bound on pooled connections.
        timeout: Seconds to wait for a pooled connection.
        application_name: Reported to the server as ``application_name``.
        migrations_table: Table the migration ledger writes to.
        schema_name: Schema of the migrations table, if not the search path.
    """

    model_config = ConfigDict(extra="forbid")

    database_url: str = "postgresql://localhost:5432/postgres"
    min_size: int = Field(default=1, ge=0)
    max_size: int = Field(default=10, ge=1)
    timeout: float = Field(default=30.0, gt=0)
    application_name: str = "mortarql"
    migrations_table: str = "schemaMigrations"
    schema_name: str | None = None

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides) -> AdapterConfig:
        """Build a config from ``<prefix><FIELD>`` environment variables.

        Unset variables keep the defaults; keyword arguments win over both.
        Values are validated (and coerced) by pydantic.
        """
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls.model_validate(values)
