"""
Table definitions for vecstore collections.

Each collection is backed by one table named after it: one column per
mapped field, VECTOR(n) columns holding float32 blobs for vector fields,
and the key column as primary key.
"""

import sqlite3
from typing import Dict, List, NamedTuple

from ..core import SchemaMismatchError, get_logger
from ..model import RecordMapping

logger = get_logger(__name__)


class ColumnInfo(NamedTuple):
    """Column description as reported by PRAGMA table_info."""
    name: str
    declared_type: str
    primary_key: bool


def quote_identifier(name: str) -> str:
    """Quote a table or column name for SQL."""
    return '"' + name.replace('"', '""') + '"'


def create_table_sql(table: str, mapping: RecordMapping) -> str:
    """
    Generate the CREATE TABLE statement for a collection.

    Args:
        table: Collection table name.
        mapping: Record mapping of the collection.

    Returns:
        CREATE TABLE IF NOT EXISTS statement.
    """
    key_column = mapping.key.column_name
    lines = []

    for column, sql_type in mapping.columns():
        line = f"    {quote_identifier(column)} {sql_type}"
        if column == key_column:
            line += " PRIMARY KEY NOT NULL"
        lines.append(line)

    columns_sql = ",\n".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n{columns_sql}\n)"


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check whether a collection table exists; SQLite table names ignore case."""
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ? COLLATE NOCASE",
        (table,)
    ).fetchone()
    return row is not None


def list_tables(conn: sqlite3.Connection) -> List[str]:
    """List user tables in the database, sorted by name."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetchall()
    return [row["name"] for row in rows]


def inspect_columns(conn: sqlite3.Connection, table: str) -> Dict[str, ColumnInfo]:
    """
    Read the column layout of an existing table.

    Returns:
        Lower-cased column name -> ColumnInfo.
    """
    rows = conn.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
    return {
        row["name"].lower(): ColumnInfo(row["name"], (row["type"] or "").upper(), bool(row["pk"]))
        for row in rows
    }


def check_compatible(table: str, mapping: RecordMapping, columns: Dict[str, ColumnInfo]) -> None:
    """
    Verify that an existing table can hold the mapping's records.

    Extra columns are allowed. Every mapped column must exist with the
    same declared type, and the key column must be the primary key.

    Raises:
        SchemaMismatchError: Listing every conflicting column.
    """
    conflicts = []
    key_column = mapping.key.column_name

    for column, sql_type in mapping.columns():
        info = columns.get(column.lower())
        if info is None:
            conflicts.append(f"missing column '{column}'")
            continue
        if info.declared_type.replace(" ", "") != sql_type.upper():
            conflicts.append(
                f"column '{column}' is {info.declared_type or 'untyped'}, expected {sql_type}"
            )
        if column == key_column and not info.primary_key:
            conflicts.append(f"key column '{column}' is not the primary key")

    if conflicts:
        raise SchemaMismatchError(
            f"Table '{table}' is incompatible with the collection schema: {'; '.join(conflicts)}",
            collection=table,
            details={"conflicts": conflicts}
        )


def ensure_table(conn: sqlite3.Connection, table: str, mapping: RecordMapping) -> bool:
    """
    Create the collection table when absent, otherwise check its shape.

    Returns:
        True if the table was created, False if it already existed.
    """
    if table_exists(conn, table):
        check_compatible(table, mapping, inspect_columns(conn, table))
        logger.debug(f"Table '{table}' already exists with a compatible layout")
        return False

    conn.execute(create_table_sql(table, mapping))
    conn.commit()

    vector_count = sum(1 for f in mapping.fields.values() if f.storage_type.is_vector)
    logger.info(f"Created table '{table}' with {len(mapping.columns())} columns ({vector_count} vector fields)")
    return True


def drop_table(conn: sqlite3.Connection, table: str) -> bool:
    """
    Drop a collection table if it exists.

    Returns:
        True if a table was dropped.
    """
    existed = table_exists(conn, table)
    conn.execute(f"DROP TABLE IF EXISTS {quote_identifier(table)}")
    conn.commit()

    if existed:
        logger.info(f"Dropped table '{table}'")
    return existed
