from mortarql.adapter.base import Adapter, QueryResult
from mortarql.adapter.postgres import PostgresAdapter, TransactionAdapter

__all__ = ["Adapter", "QueryResult", "PostgresAdapter", "TransactionAdapter"]
