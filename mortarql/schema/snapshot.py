"""Pydantic models describing the tables a query can target.

The :class:`SchemaSnapshot` is produced by the caller (hand-written, or via
:func:`~mortarql.schema.converters.schema_from_sqlalchemy`) and handed to
:class:`~mortarql.query.query.Db`.  It is a structural description only:
column keys, their database names, primary keys and declared relations.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mortarql.schema.relations import Relation


class ColumnInfo(BaseModel):
    """Metadata for a single column.

    Attributes:
        name: Column key used in query data (e.g. ``'snakeName'``).
        db_name: Column name in the database when it differs from ``name``
            (e.g. ``'snake_name'``).
        type: SQL type string (e.g. ``'text'``, ``'integer'``).
        nullable: Whether the column can be NULL.
        primary_key: Whether the column is part of the primary key.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    db_name: str | None = None
    type: str = "text"
    nullable: bool = True
    primary_key: bool = False

    @property
    def sql_name(self) -> str:
        """The name to emit in SQL."""
        return self.db_name or self.name


class TableInfo(BaseModel):
    """Metadata for a single table.

    Attributes:
        name: Table name.
        schema_name: Optional database schema prefix.
        columns: Ordered list of column metadata.
        relations: Declared relations keyed by relation name.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    schema_name: str | None = None
    columns: list[ColumnInfo] = Field(default_factory=list)
    relations: dict[str, Relation] = Field(default_factory=dict)

    @property
    def shape(self) -> dict[str, ColumnInfo]:
        """Column key → column metadata."""
        return {c.name: c for c in self.columns}

    @property
    def column_names(self) -> list[str]:
        """Returns all column keys for this table."""
        return [c.name for c in self.columns]

    @property
    def primary_keys(self) -> list[str]:
        """Returns the primary-key column keys in declaration order."""
        return [c.name for c in self.columns if c.primary_key]


class SchemaSnapshot(BaseModel):
    """All tables known to a :class:`~mortarql.query.query.Db`.

    Attributes:
        tables: Table metadata.
    """

    model_config = ConfigDict(extra="forbid")

    tables: list[TableInfo] = Field(default_factory=list)

    def get_table(self, name: str) -> TableInfo | None:
        """Returns the TableInfo for the given table name, or ``None``."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    def get_column(self, table_name: str, column_name: str) -> ColumnInfo | None:
        """Returns the ColumnInfo for a table.column pair, or ``None``."""
        table = self.get_table(table_name)
        if table is None:
            return None
        return table.shape.get(column_name)

    @property
    def table_names(self) -> list[str]:
        """Returns all table names in the snapshot."""
        return [t.name for t in self.tables]
