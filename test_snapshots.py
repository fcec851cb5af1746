import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.dialects import mysql

from sheets_mirror import a1_column_name
from snapshots import (
    TableSnapshot, build_upsert_sql, delete_keys, list_tables, read_database_table, table_columns,
)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE schools (id INTEGER PRIMARY KEY, code TEXT UNIQUE, name TEXT, logo BLOB)"))
        conn.execute(text("INSERT INTO schools (id, code, name, logo) VALUES (1, 'rkp', 'RK Puram', x'6869')"))
        conn.execute(text("INSERT INTO schools (id, code, name) VALUES (2, 'vv', NULL)"))
    return engine


def test_rows_are_fitted_to_the_header():
    snap = TableSnapshot(["id", "Name", "city"], [["1"], ["2", "b", "c", "extra"]])

    assert snap.rows == [["1", "", ""], ["2", "b", "c"]]
    assert snap.index_of("name") == 1
    assert snap.index_of("missing") == -1
    assert snap.value(snap.rows[0], 5) == ""


def test_as_values_flattens_nulls():
    snap = TableSnapshot(["id", "name"], [["1", None]])
    assert snap.as_values() == [["id", "name"], ["1", ""]]


def test_read_database_table(engine):
    snap = read_database_table(engine, "schools")

    assert snap.columns == ["id", "code", "name", "logo"]
    assert snap.rows[0] == ["1", "rkp", "RK Puram", "hi"]
    # NULL stays distinguishable from an empty string
    assert snap.rows[1][2] is None
    assert snap.value(snap.rows[1], 2) == ""


def test_list_tables_and_columns(engine):
    assert list_tables(engine) == ["schools"]
    assert table_columns(engine, "schools") == ["id", "code", "name", "logo"]


def test_delete_keys(engine):
    assert delete_keys(engine, "schools", "code", ["vv", "nope"]) == 1
    assert delete_keys(engine, "schools", "code", []) == 0
    assert [r[1] for r in read_database_table(engine, "schools").rows] == ["rkp"]


def test_upsert_keeps_stored_values_for_null_parameters(engine):
    sql = build_upsert_sql(engine, "schools", "code", ["code", "name"])
    assert "ON CONFLICT" in sql

    with engine.begin() as conn:
        conn.execute(text(sql), {"p0": "rkp", "p1": None})
        conn.execute(text(sql), {"p0": "vv", "p1": "Vasant Valley"})
        conn.execute(text(sql), {"p0": "mod", "p1": "Modern School"})

    rows = {r[1]: r[2] for r in read_database_table(engine, "schools").rows}
    assert rows == {"rkp": "RK Puram", "vv": "Vasant Valley", "mod": "Modern School"}


def test_upsert_with_only_the_key_does_nothing_on_conflict(engine):
    sql = build_upsert_sql(engine, "schools", "code", ["code"])
    assert sql.endswith("DO NOTHING")


def test_mysql_upsert_uses_on_duplicate_key():
    class MySQLEngine:
        dialect = mysql.dialect()

    sql = build_upsert_sql(MySQLEngine(), "schools", "id", ["id", "city"])

    assert "VALUES (:p0, :p1)" in sql
    assert "ON DUPLICATE KEY UPDATE" in sql
    assert "COALESCE(VALUES(" in sql
    assert "ON CONFLICT" not in sql


@pytest.mark.parametrize("index, name", [(0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA")])
def test_a1_column_name(index, name):
    assert a1_column_name(index) == name
