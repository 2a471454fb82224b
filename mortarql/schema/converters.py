"""Utilities for building a SchemaSnapshot from external sources.

SQLAlchemy converter
--------------------
:func:`schema_from_sqlalchemy` turns a declarative ``MetaData`` (or reflects
a live engine) into a :class:`~mortarql.schema.snapshot.SchemaSnapshot`.

Install the optional dependency before using this module::

    pip install "mortarql[sqlalchemy]"

Example::

    from sqlalchemy import create_engine
    from mortarql.schema.converters import schema_from_sqlalchemy

    engine = create_engine("postgresql+psycopg://user:pw@host/db")
    snapshot = schema_from_sqlalchemy(engine)
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Union

from mortarql.schema.relations import BelongsTo, HasMany, Relation
from mortarql.schema.snapshot import ColumnInfo, SchemaSnapshot, TableInfo

if TYPE_CHECKING:
    from sqlalchemy import Engine, MetaData


def schema_from_sqlalchemy(
    source: Union[Engine, MetaData],
    *,
    include_tables: list[str] | None = None,
    schema: str | None = None,
) -> SchemaSnapshot:
    """Build a :class:`SchemaSnapshot` from SQLAlchemy metadata.

    A ``MetaData`` is converted as is; an ``Engine`` is reflected first
    (optionally limited to *include_tables* in *schema*).

    **Relation naming convention**

    Every foreign key ``child.fk → parent.pk`` produces two relations:

    * ``BelongsTo`` on *child*, named after the FK column without its
      ``_id`` suffix (``author_id`` → ``author``), or after *parent* when
      the column has no such suffix;
    * ``HasMany`` on *parent*, named after *child*.

    A name that collides with a column or an earlier relation of the same
    table gets the FK column appended: ``{name}__{fk_col}``.

    Args:
        source: A ``MetaData`` or a connected ``Engine``.
        include_tables: Optional allowlist of table names to reflect.
        schema: Optional database schema to reflect from.

    Returns:
        A fully populated :class:`SchemaSnapshot`.

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
    """
    try:
        from sqlalchemy import MetaData as _MetaData
    except ImportError as exc:
        raise ImportError(
            "SQLAlchemy is required for schema_from_sqlalchemy(). "
            'Install it with: pip install "mortarql[sqlalchemy]"'
        ) from exc

    if isinstance(source, _MetaData):
        metadata = source
    else:
        metadata = _MetaData()
        with source.connect() as conn:
            metadata.reflect(bind=conn, only=include_tables, schema=schema)

    return _metadata_to_snapshot(metadata)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _metadata_to_snapshot(metadata: MetaData) -> SchemaSnapshot:
    relations: dict[str, dict[str, Relation]] = defaultdict(dict)
    column_names = {t.name: {c.name for c in t.columns} for t in metadata.sorted_tables}

    for table in metadata.sorted_tables:
        for fk in sorted(table.foreign_keys, key=lambda fk: fk.parent.name):
            child = table.name
            fk_col = fk.parent.name
            parent = fk.column.table.name
            pk_col = fk.column.name

            name = fk_col[:-3] if fk_col.endswith("_id") else parent
            name = _unique_name(name, fk_col, relations[child], column_names.get(child, set()))
            relations[child][name] = BelongsTo(
                target=parent, primary_key=pk_col, foreign_key=fk_col
            )

            if parent in column_names:
                name = _unique_name(
                    child, fk_col, relations[parent], column_names[parent]
                )
                relations[parent][name] = HasMany(
                    target=child, primary_key=pk_col, foreign_key=fk_col
                )

    tables = [
        TableInfo(
            name=table.name,
            schema_name=table.schema,
            columns=[
                ColumnInfo(
                    name=col.name,
                    type=str(col.type),
                    # col.nullable is None for some reflected columns; treat
                    # an unset value as nullable.
                    nullable=col.nullable is not False,
                    primary_key=bool(col.primary_key),
                )
                for col in table.columns
            ],
            relations=relations.get(table.name, {}),
        )
        for table in metadata.sorted_tables
    ]
    return SchemaSnapshot(tables=tables)


def _unique_name(
    name: str,
    fk_col: str,
    taken: dict[str, Relation],
    columns: set[str],
) -> str:
    if name in taken or name in columns:
        return f"{name}__{fk_col}"
    return name
