"""
Database module for SQLite persistence with sqlite-vec vector search.

Provides the pooled data source, reference-counted connection handles and
table definitions for collections.
"""

from .connection import DataSource, create_data_source
from .handle import ConnectionHandle
from .schema import (
    ColumnInfo,
    check_compatible,
    create_table_sql,
    drop_table,
    ensure_table,
    inspect_columns,
    list_tables,
    quote_identifier,
    table_exists,
)

__all__ = [
    "DataSource",
    "create_data_source",
    "ConnectionHandle",
    "ColumnInfo",
    "check_compatible",
    "create_table_sql",
    "drop_table",
    "ensure_table",
    "inspect_columns",
    "list_tables",
    "quote_identifier",
    "table_exists",
]
