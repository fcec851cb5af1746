"""
Table snapshots shared by the database side and the spreadsheet side of the sync.

A snapshot is a header plus rows of text cells. Database NULL is kept as
None so writes can tell "no value" from "empty string"; ``value()`` flattens
both to "" for comparisons.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import inspect, text

logger = logging.getLogger(__name__)


@dataclass
class TableSnapshot:
    columns: List[str]
    rows: List[List[Optional[str]]] = field(default_factory=list)

    def __post_init__(self):
        width = len(self.columns)
        self.rows = [_fit(row, width) for row in self.rows]

    def index_of(self, name):
        """Case-insensitive column lookup; -1 when the column is absent."""
        if not name:
            return -1
        wanted = name.lower()
        for i, col in enumerate(self.columns):
            if col.lower() == wanted:
                return i
        return -1

    def value(self, row, index):
        if index < 0 or index >= len(row):
            return ""
        cell = row[index]
        return "" if cell is None else cell

    def as_values(self):
        """Header plus rows, ready for a RAW values write."""
        return [list(self.columns)] + [
            ["" if cell is None else cell for cell in row] for row in self.rows
        ]


def _fit(row, width):
    row = list(row[:width])
    if len(row) < width:
        row.extend([""] * (width - len(row)))
    return row


def _cell_text(value):
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def quote_name(engine, name):
    return engine.dialect.identifier_preparer.quote(name)


def list_tables(engine):
    """Every user table in the database, sorted by name."""
    return sorted(inspect(engine).get_table_names())


def table_columns(engine, table):
    return [col["name"] for col in inspect(engine).get_columns(table)]


def read_database_table(engine, table) -> TableSnapshot:
    """SELECT * from the table into a snapshot. Query errors propagate."""
    sql = text(f"SELECT * FROM {quote_name(engine, table)}")
    with engine.connect() as conn:
        result = conn.execute(sql)
        columns = [str(c) for c in result.keys()]
        rows = [[_cell_text(v) for v in record] for record in result]
    return TableSnapshot(columns, rows)


def delete_keys(engine, table, key_column, keys):
    """Delete rows by key in one transaction. Returns the number of rows removed."""
    if not keys:
        return 0
    sql = text(
        f"DELETE FROM {quote_name(engine, table)} WHERE {quote_name(engine, key_column)} = :key"
    )
    removed = 0
    with engine.begin() as conn:
        for key in keys:
            result = conn.execute(sql, {"key": key})
            removed += result.rowcount or 0
    return removed


def build_upsert_sql(engine, table, key_column, columns):
    """
    INSERT ... ON CONFLICT upsert where NULL parameters never overwrite stored values.
    MySQL has no ON CONFLICT, so it gets ON DUPLICATE KEY UPDATE.
    """
    q = lambda name: quote_name(engine, name)  # noqa: E731
    qt = q(table)
    col_sql = ", ".join(q(c) for c in columns)
    params = ", ".join(f":p{i}" for i in range(len(columns)))
    others = [c for c in columns if c != key_column]

    if engine.dialect.name == "mysql":
        updates = ", ".join(f"{q(c)} = COALESCE(VALUES({q(c)}), {q(c)})" for c in others)
        if not updates:
            updates = f"{q(key_column)} = {q(key_column)}"
        return f"INSERT INTO {qt} ({col_sql}) VALUES ({params}) ON DUPLICATE KEY UPDATE {updates}"

    if not others:
        return (
            f"INSERT INTO {qt} ({col_sql}) VALUES ({params}) "
            f"ON CONFLICT ({q(key_column)}) DO NOTHING"
        )
    updates = ", ".join(f"{q(c)} = COALESCE(excluded.{q(c)}, {qt}.{q(c)})" for c in others)
    return (
        f"INSERT INTO {qt} ({col_sql}) VALUES ({params}) "
        f"ON CONFLICT ({q(key_column)}) DO UPDATE SET {updates}"
    )
