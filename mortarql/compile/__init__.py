from mortarql.compile.base import CompiledSQL, SQLCompiler
from mortarql.compile.builder import SQLBuilder
from mortarql.compile.postgres import PostgresCompiler

__all__ = ["CompiledSQL", "SQLCompiler", "SQLBuilder", "PostgresCompiler"]
