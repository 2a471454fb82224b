"""Query descriptors, the chain API, and statement execution."""
from mortarql.query.conflict import OnConflictBuilder
from mortarql.query.data import CopyOptions, CopyProgram, QueryData
from mortarql.query.query import Db, Query

__all__ = ["OnConflictBuilder", "CopyOptions", "CopyProgram", "QueryData", "Db", "Query"]
